import os
from dotenv import load_dotenv

load_dotenv()

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")

# ---------------- Redis (durable cache tier) ----------------
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))
REDIS_DECODE_RESPONSES = _env_bool("REDIS_DECODE_RESPONSES", "true")

# ---------------- MongoDB (seen records) ----------------
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "campus_connect")

# ---------------- Seen tracking ----------------
SEEN_CACHE_TTL_MS = int(os.getenv("SEEN_CACHE_TTL_MS", 7 * 24 * 60 * 60 * 1000))
SEEN_RATE_LIMIT_MAX = int(os.getenv("SEEN_RATE_LIMIT_MAX", 60))
SEEN_RATE_LIMIT_WINDOW_MS = int(os.getenv("SEEN_RATE_LIMIT_WINDOW_MS", 60 * 1000))
SEEN_VISIBILITY_THRESHOLD = float(os.getenv("SEEN_VISIBILITY_THRESHOLD", 0.5))
SEEN_DEBOUNCE_MS = int(os.getenv("SEEN_DEBOUNCE_MS", 600))
SEEN_BULK_LIMIT = int(os.getenv("SEEN_BULK_LIMIT", 500))
SEEN_WINDOW_DAYS = int(os.getenv("SEEN_WINDOW_DAYS", 7))
SEEN_CONDITIONAL_WRITE = _env_bool("SEEN_CONDITIONAL_WRITE", "true")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
