import os

DATABASE_URL = os.getenv("CAMPUS_DB")
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS") or "5")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM") or "HS256"

RABBIT_URL = os.getenv("RABBIT_URL")  # optional in dev, required if you want events
REDIS_URL = os.getenv("REDIS_URL")  # optional, enables shared locks + rate limiting

CAMPUS_EMAIL_DOMAIN = (os.getenv("CAMPUS_EMAIL_DOMAIN") or "nec.edu.in").lower()
EMAIL_FROM = os.getenv("EMAIL_FROM") or "no-reply@localhost"

LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS") or "10")
NOTIFIER_QUEUE_SIZE = int(os.getenv("NOTIFIER_QUEUE_SIZE") or "100")
SSE_KEEPALIVE_SECONDS = float(os.getenv("SSE_KEEPALIVE_SECONDS") or "15")
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE") or "120")

LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
LOG_JSON = (os.getenv("LOG_JSON") or "false").lower() in ("1", "true", "yes")
