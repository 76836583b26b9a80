import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
users_ms_url = os.environ.get("USERS_MS_URL", "http://localhost:8000")
payments_ms_url = os.environ.get("PAYMENTS_MS_URL", "http://localhost:8003")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "KRW")
# zoneinfo key; slot dates and wall-clock times are read in this zone
TIMEZONE = os.environ.get("TIMEZONE", "UTC")
