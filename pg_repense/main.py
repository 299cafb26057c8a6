# pg_repense/main.py - Application entry point
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging
import traceback
import time

from pg_repense.core.config import settings
from pg_repense.core.db import get_engine, health_check, db_manager
from pg_repense.core.errors import ServiceError
from pg_repense.models import Base
from pg_repense.api.routers import public, auth, admin_classes, admin_students, admin_teachers, admin_activity
from pg_repense.api.routers import teacher


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.log_format_string
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting {settings.API_TITLE}...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Database URL: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'local'}")

    engine = get_engine()

    # Create tables if they don't exist (for development)
    if settings.ENV in ("dev", "development"):
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")

    yield

    logger.info(f"Shutting down {settings.API_TITLE}...")
    db_manager.close()


app = FastAPI(
    title=settings.API_TITLE,
    description="Enrollment, attendance and messaging for PG Repense groups",
    version=settings.API_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and duration of every request"""
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"Error processing {request.method} {request.url.path}: {e}")
        raise

    process_time = time.time() - start_time
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")
    return response


app.add_middleware(CORSMiddleware, **settings.get_cors_config())


# ----------------------------------------------------------------------
# Error handlers: every error body carries an "error" message
# ----------------------------------------------------------------------

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} ({exc.message})")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Dados inválidos", "details": details})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    logger.error(traceback.format_exc())

    content = {"error": "Erro interno do servidor"}
    if settings.is_development and settings.DEBUG:
        content["traceback"] = traceback.format_exc()
    return JSONResponse(status_code=500, content=content)


# Health check endpoint
@app.get("/health")
async def health():
    db_status = health_check()
    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "version": settings.API_VERSION,
        "environment": settings.ENV,
        "database": db_status,
    }


@app.get("/")
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs" if settings.is_development else None,
    }


# Include routers
app.include_router(public.router, prefix="/api", tags=["Public"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(admin_classes.router, prefix="/api/admin", tags=["Admin: Classes"])
app.include_router(admin_students.router, prefix="/api/admin", tags=["Admin: Students"])
app.include_router(admin_teachers.router, prefix="/api/admin", tags=["Admin: Facilitators"])
app.include_router(admin_activity.router, prefix="/api/admin", tags=["Admin: Activity"])
app.include_router(admin_activity.superadmin_router, prefix="/api/superadmin", tags=["Superadmin"])
app.include_router(teacher.router, prefix="/api/teacher", tags=["Facilitator"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pg_repense.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.is_development)
