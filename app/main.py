import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .config import AUTO_JOB_SERVICE_ENABLED
from .database import Base, SessionLocal, engine
from .routes.auto_jobs import router as auto_jobs_router
from .routes.vehicle_locations import router as vehicle_locations_router
from .services.auto_job_service import AutoJobService
from .services.geocoding_service import GeocodingService
from .services.notification_service import NotificationService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_auto_job_service() -> AutoJobService:
    return AutoJobService(
        session_factory=SessionLocal,
        geocoder=GeocodingService(),
        notifier=NotificationService(SessionLocal),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    service = build_auto_job_service()
    app.state.auto_job_service = service

    if AUTO_JOB_SERVICE_ENABLED:
        service.start()
    else:
        logger.warning("⚠️ AutoJobService disabled (AUTO_JOB_SERVICE_ENABLED=false)")

    yield

    logger.info("Application shutting down...")
    await service.stop()


app = FastAPI(title="Field Service Auto Job API", version="1.0.0", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(auto_jobs_router)
app.include_router(vehicle_locations_router)


@app.get("/health")
def health():
    return {"status": "healthy"}
