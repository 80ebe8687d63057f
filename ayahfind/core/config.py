import os


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ayahfind.db")
RUN_MIGRATIONS = _get_bool("RUN_MIGRATIONS")
AUTO_CREATE_TABLES = _get_bool("AUTO_CREATE_TABLES", True)

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = _get_int("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60)
REFRESH_TOKEN_EXPIRE_DAYS = _get_int("REFRESH_TOKEN_EXPIRE_DAYS", 30)
BCRYPT_ROUNDS = _get_int("BCRYPT_ROUNDS", 12)

# ✅ One-time tokens
VERIFICATION_TOKEN_EXPIRE_HOURS = _get_int("VERIFICATION_TOKEN_EXPIRE_HOURS", 24)
PASSWORD_RESET_TOKEN_EXPIRE_HOURS = _get_int("PASSWORD_RESET_TOKEN_EXPIRE_HOURS", 1)

# ✅ Usage limits (per UTC day)
ANONYMOUS_DAILY_SEARCHES = _get_int("ANONYMOUS_DAILY_SEARCHES", 2)
FREE_DAILY_SEARCHES = _get_int("FREE_DAILY_SEARCHES", 5)

# ✅ RevenueCat
REVENUECAT_WEBHOOK_AUTH = os.getenv("REVENUECAT_WEBHOOK_AUTH")
SUBSCRIPTION_SYNC_GRACE_HOURS = _get_int("SUBSCRIPTION_SYNC_GRACE_HOURS", 24)

# ✅ OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_TRANSCRIBE_MODEL = os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1")
OPENAI_MATCH_MODEL = os.getenv("OPENAI_MATCH_MODEL", "gpt-4o-mini")

# ✅ Email
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = _get_int("SMTP_PORT", 587)
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_FROM = os.getenv("SMTP_FROM")
APP_BASE_URL = os.getenv("APP_BASE_URL", "ayahfind://")

# ✅ HTTP
# "*" keeps the API open for the mobile client; set explicit origins in production.
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ Quran data
QURAN_DATA_DIR = os.getenv("QURAN_DATA_DIR")
