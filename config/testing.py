SECRET_KEY = "test-secret"

STORE_CONFIG = {
    "backend": "memory",
}

MEMBERS_COLLECTION = "members"
DASHBOARD_REFRESH_SECONDS = 0

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = False
AUTO_SEED_DB = True
