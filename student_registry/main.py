# student_registry/main.py

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
import sys

from student_registry.core.config import settings
from student_registry.core.database import init_db, test_connection
from student_registry.core.exceptions import AppError, ErrorKind, ValidationError
from student_registry.core.rate_limiter import limiter

# Routers
from student_registry.api.endpoints import (
    auth as auth_router,
    students as students_router,
)

# ------------------------------------------------------------
# LOGURU CONFIGURATION
# ------------------------------------------------------------
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "<level>{message}</level>",
    colorize=True,
    backtrace=True,
    diagnose=settings.ENV != "prod",
)

# ------------------------------------------------------------
# FASTAPI APP INIT
# ------------------------------------------------------------
app = FastAPI(
    title="Student Registry Backend",
    version="1.0.0",
    description="Role-gated student records service for authority users.",
)

app.state.limiter = limiter


# ------------------------------------------------------------
# ERROR ENVELOPE HANDLERS
# ------------------------------------------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError.from_errors(exc.errors())
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit hit on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": ErrorKind.RateLimited.value,
            "message": f"Too many requests: {exc.detail}",
        },
    )


HTTP_ERROR_KINDS = {
    401: ErrorKind.Unauthorized,
    403: ErrorKind.Forbidden,
    404: ErrorKind.NotFound,
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    kind = HTTP_ERROR_KINDS.get(exc.status_code, ErrorKind.ServerError)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": kind.value, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": ErrorKind.ServerError.value,
            "message": "Internal Server Error",
        },
    )


# ------------------------------------------------------------
# CORS CONFIGURATION
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# ------------------------------------------------------------
# REGISTER ROUTERS
# ------------------------------------------------------------
app.include_router(auth_router.router)
app.include_router(students_router.router)


# ------------------------------------------------------------
# APPLICATION STARTUP EVENTS
# ------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    logger.info("Starting Student Registry Backend...")

    try:
        await test_connection()
        logger.success("Database connection established.")
    except Exception:
        logger.exception("Database connection failed.")
        return

    try:
        await init_db()
        logger.success("Database tables ready.")
    except Exception as e:
        logger.warning(f"Table initialization encountered an issue: {e}")

    logger.success("Backend startup completed.")


# ------------------------------------------------------------
# HEALTH CHECKS
# ------------------------------------------------------------
@app.get("/api/health", tags=["System"])
async def health():
    return {"status": "OK", "message": "Server is running"}


@app.get("/", tags=["System"])
async def root():
    return {
        "status": "ok",
        "service": "Student Registry Backend",
        "version": app.version,
    }
