"""
Tablebook - Reservation lifecycle API
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog

from tablebook import __version__
from tablebook.config import settings
from tablebook.log_config import configure_logging
from tablebook.api import jobs, notifications, reservations
from tablebook.services.errors import ReservationError

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Tablebook API", version=__version__)
    yield
    logger.info("Shutting down Tablebook API")


# Create FastAPI application
app = FastAPI(
    title="Tablebook",
    description="Restaurant reservation lifecycle management",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    """Business-rule failures become JSON error bodies"""
    logger.info(
        "Request rejected",
        path=request.url.path,
        error=type(exc).__name__,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": __version__}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from tablebook.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    # Check Redis
    try:
        from tablebook.jobs.celery_app import celery_app
        celery_app.control.ping(timeout=1)
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(
    reservations.router,
    prefix="/restaurants/{restaurant_id}/reservations",
    tags=["Reservations"],
)
app.include_router(
    notifications.router,
    prefix="/restaurants/{restaurant_id}/notifications",
    tags=["Notifications"],
)
app.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tablebook.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
