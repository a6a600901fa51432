import os

from dotenv import load_dotenv

load_dotenv()


def _truthy(val: str | None) -> bool:
    if not val:
        return False
    return val.strip().lower() in {"1", "true", "yes", "on", "y"}


class Config:
    # --------------------------
    # 🔹 Flask Configuration
    # --------------------------
    SECRET_KEY = os.environ.get("SECRET_KEY", "secret123")
    PROPAGATE_EXCEPTIONS = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")

    # --------------------------
    # 🔹 Storage (key-value rows via SQLAlchemy)
    # --------------------------
    # SQLite by default; point at MySQL/Postgres through the environment
    SQLALCHEMY_DATABASE_URI = os.environ.get("SQLALCHEMY_DATABASE_URI", "sqlite:///feedesk.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    STORAGE_KEYS = {
        "students": os.environ.get("STORAGE_KEY_STUDENTS", "feeManager_studentsData"),
        "users": os.environ.get("STORAGE_KEY_USERS", "feeManager_appUsersData"),
        "session": os.environ.get("STORAGE_KEY_SESSION", "feeManager_loggedInFeeUser"),
    }

    # --------------------------
    # 🔹 Other App Constants
    # --------------------------
    APP_NAME = os.environ.get("APP_NAME", "FeeManager Pro")
    CURRENCY = "INR"
    DISPLAY_TIMEZONE = os.environ.get("DISPLAY_TIMEZONE", "Asia/Kolkata")

    # --------------------------
    # 🔹 Accounts
    # --------------------------
    try:
        MIN_PASSWORD_LENGTH = int(os.environ.get("MIN_PASSWORD_LENGTH", "8"))
    except ValueError:
        MIN_PASSWORD_LENGTH = 8
    PASSWORD_HASH_METHOD = os.environ.get("PASSWORD_HASH_METHOD", "pbkdf2:sha256")
    # First-run admin; change the password right after the first login
    SEED_ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")
    SEED_ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD", "adminpassword")
    SEED_DEMO_DATA = _truthy(os.environ.get("SEED_DEMO_DATA"))

    # --------------------------
    # 🔹 Rate limiting (Flask-Limiter)
    # --------------------------
    RATELIMIT_ENABLED = not _truthy(os.environ.get("DISABLE_RATE_LIMITING"))
    LOGIN_RATE_LIMIT = os.environ.get("LOGIN_RATE_LIMIT", "10 per minute")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test_secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RATELIMIT_ENABLED = False
    # Cheap hashing keeps the suite fast
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    SEED_ADMIN_EMAIL = "admin@x.com"
    SEED_ADMIN_PASSWORD = "adminpassword"
    SEED_DEMO_DATA = False
