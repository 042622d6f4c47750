import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fieldservice.db")

# Google Geocoding Configuration
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
GOOGLE_GEOCODE_URL = os.getenv(
    "GOOGLE_GEOCODE_URL", "https://maps.googleapis.com/maps/api/geocode/json"
)
GEOCODING_TIMEOUT_SECONDS = float(os.getenv("GEOCODING_TIMEOUT_SECONDS", "8.0"))
# Job sites rarely move; keep resolved coordinates for a day
GEOCODE_CACHE_SECONDS = int(os.getenv("GEOCODE_CACHE_SECONDS", "86400"))

# Auto Job Lifecycle Configuration
AUTO_JOB_SERVICE_ENABLED = os.getenv("AUTO_JOB_SERVICE_ENABLED", "true").lower() == "true"
AUTO_START_DELAY_MINUTES = int(os.getenv("AUTO_START_DELAY_MINUTES", "10"))
AUTO_COMPLETE_DELAY_MINUTES = int(os.getenv("AUTO_COMPLETE_DELAY_MINUTES", "10"))
PROXIMITY_THRESHOLD_METERS = float(os.getenv("PROXIMITY_THRESHOLD_METERS", "100"))
AUTO_JOB_CHECK_INTERVAL_SECONDS = int(os.getenv("AUTO_JOB_CHECK_INTERVAL_SECONDS", "60"))

# Redis Configuration (geocode cache + ARQ worker)
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"
