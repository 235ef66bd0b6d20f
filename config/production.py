import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

STORE_CONFIG = {
    "backend": os.getenv("STORE_BACKEND", "mysql"),
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "gym_attendance"),
    "poll_seconds": float(os.getenv("STORE_POLL_SECONDS", "5")),
}

MEMBERS_COLLECTION = os.getenv("MEMBERS_COLLECTION", "members")
DASHBOARD_REFRESH_SECONDS = float(os.getenv("DASHBOARD_REFRESH_SECONDS", "30"))

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
