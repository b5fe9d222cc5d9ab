from pydantic import BaseModel

from landverify.core.constants import UserRole


class Principal(BaseModel):
    """Authenticated caller as asserted by the identity provider"""
    id: str
    role: UserRole
