"""
LandVerify - land title verification workflow service
"""
import logging
import traceback
from contextlib import asynccontextmanager

from starlette.requests import Request

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from landverify.config import settings
from landverify.api.router import api_router
from landverify.core.exceptions import AppException
from landverify.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logger.info(f"{settings.APP_NAME} is starting...")
    start_scheduler()
    yield
    stop_scheduler()
    logger.info(f"{settings.APP_NAME} is shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## Land verification workflow

    ### Features:
    - **Requests**: clients open a verification for a land record
    - **Payments**: fee ledger with partial payments, refunds and waivers
    - **Workflow**: staged steps worked by officers, with SLA tracking
    - **Results**: deterministic scoring, red/green flags, certificates

    ### Roles:
    - **citizen / agent / court**: request and follow verifications
    - **surveyor**: work steps and record findings
    - **government**: manage the queue, status, scoring and reports
    - **admin**: everything, plus maintenance jobs
    """,
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors carry their own {"error": {...}} body
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc.error_code, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)


# Request validation errors (422): log the body to ease diagnosis
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "Validation error on %s %s\nBody received: %s\nErrors: %s",
        request.method,
        request.url.path,
        exc.body,
        exc.errors(),
    )
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": jsonable_encoder(exc.errors())},
            }
        },
    )


# Anything unhandled: generic body, details go to the log only
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal error occurred. Please try again later.",
                "details": None,
            }
        },
    )


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "landverify", "version": VERSION}


# Include API routes
app.include_router(api_router)
