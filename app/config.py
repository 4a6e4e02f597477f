import os
from dotenv import load_dotenv

load_dotenv()

REDIS_URL        = os.getenv("REDIS_URL")
DATABASE_URL     = os.getenv("DATABASE_URL")
STORAGE_BACKEND  = os.getenv("STORAGE_BACKEND", "redis" if REDIS_URL else "sql")
LOG_DIR          = os.getenv("LOG_DIR", "logs")
LOG_LEVEL        = os.getenv("LOG_LEVEL", "INFO").upper()
TRACKER_TIMEZONE = os.getenv("TRACKER_TIMEZONE", "UTC")
WRITE_RETRY_ATTEMPTS = int(os.getenv("WRITE_RETRY_ATTEMPTS", 3))

LOCATION_STREAM        = os.getenv("LOCATION_STREAM", "positions")
LOCATION_MAX_AGE_MS    = int(os.getenv("LOCATION_MAX_AGE_MS", 5000))
LOCATION_TIMEOUT_MS    = int(os.getenv("LOCATION_TIMEOUT_MS", 10000))
LOCATION_HIGH_ACCURACY = os.getenv("LOCATION_HIGH_ACCURACY", "true").lower() in {"1", "true", "yes"}
