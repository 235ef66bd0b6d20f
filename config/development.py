import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

STORE_CONFIG = {
    "backend": os.getenv("STORE_BACKEND", "mysql"),
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "gym_attendance"),
    # How often other processes' writes are picked up by subscriptions.
    "poll_seconds": float(os.getenv("STORE_POLL_SECONDS", "5")),
}

MEMBERS_COLLECTION = os.getenv("MEMBERS_COLLECTION", "members")

# Admin confirmation list is re-scanned on this interval (0 disables).
DASHBOARD_REFRESH_SECONDS = float(os.getenv("DASHBOARD_REFRESH_SECONDS", "30"))

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo members on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
