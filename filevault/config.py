import os
from dotenv import load_dotenv

load_dotenv()

STORAGE_DIR = os.getenv(
    "STORAGE_DIR", os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "uploads"))
)
DB_URL = os.getenv("DB_URL", "sqlite:///./filevault.db")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

DB_CONNECT_ARGS = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

# Sessions
SESSION_SECRET = os.getenv("SESSION_SECRET", "")
SESSION_MAX_AGE_SECONDS = int(os.getenv("SESSION_MAX_AGE_SECONDS", str(14 * 24 * 60 * 60)))
PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt")

# Uploads and share links
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE_BYTES", str(100 * 1024 * 1024)))
SHARE_ID_BYTES = max(8, min(64, int(os.getenv("SHARE_ID_BYTES", "16"))))
SHARE_TRASHED_FILES = os.getenv("SHARE_TRASHED_FILES", "false").lower() in {"true", "1", "yes"}
CACHE_MAX_AGE_SECONDS = int(os.getenv("CACHE_MAX_AGE_SECONDS", "0"))

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))

# Trash cleaner
ENABLE_CLEANER = os.getenv("ENABLE_CLEANER", "true").lower() in {"true", "1", "yes"}
TRASH_RETENTION_DAYS = int(os.getenv("TRASH_RETENTION_DAYS", "30"))
CLEANER_BATCH_SIZE = int(os.getenv("CLEANER_BATCH_SIZE", "1000"))

# Redis Configuration
REDIS_URL = os.getenv("REDIS_URL", "")
