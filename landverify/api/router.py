"""
API route aggregation
"""
from fastapi import APIRouter

from landverify.api.v1 import verifications, admin

api_router = APIRouter(prefix="/api/v1")

# Verification workflow (clients, officers, surveyors)
api_router.include_router(verifications.router)

# Administration
api_router.include_router(admin.router)
