"""Environment-aware configuration for the Flask application."""
import os
from datetime import timedelta


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


def _database_uri() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        return os.getenv("SQLITE_URL", f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'civic.db')}")
    # Hosted Postgres providers still hand out the legacy scheme.
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class BaseConfig:
    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")

        self.SQLALCHEMY_DATABASE_URI = _database_uri()
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_size": _env_int("DB_POOL_SIZE", 10),
            "max_overflow": _env_int("DB_MAX_OVERFLOW", 20),
            "pool_timeout": _env_int("DB_POOL_TIMEOUT", 30),
            "pool_recycle": _env_int("DB_POOL_RECYCLE", 1800),
            "pool_pre_ping": True,
        }

        self.SESSION_COOKIE_HTTPONLY = True
        self.SESSION_COOKIE_SAMESITE = "Lax"
        self.REMEMBER_COOKIE_HTTPONLY = True
        self.PERMANENT_SESSION_LIFETIME = timedelta(days=30)
        self.REMEMBER_COOKIE_DURATION = timedelta(days=30)
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.WTF_CSRF_ENABLED = True
        self.WTF_CSRF_TIME_LIMIT = 3600
        self.MAX_CONTENT_LENGTH = _env_int("MAX_REQUEST_BYTES", 1024 * 1024)

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"

        # Empty values skip admin bootstrapping entirely.
        self.DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "")
        self.DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "")

        self.DESCRIPTION_MAX_LENGTH = _env_int("DESCRIPTION_MAX_LENGTH", 2000)
        self.COMPLAINT_LIST_MAX = _env_int("COMPLAINT_LIST_MAX", 100)
        self.DASHBOARD_RECENT_COMPLAINTS = _env_int("DASHBOARD_RECENT_COMPLAINTS", 4)
        self.DASHBOARD_PROJECTS = _env_int("DASHBOARD_PROJECTS", 3)


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False
        self.PREFERRED_URL_SCHEME = "http"


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.SESSION_COOKIE_SECURE = True
        self.REMEMBER_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.SQLALCHEMY_DATABASE_URI = "sqlite://"
        # In-memory SQLite uses a static pool that rejects sizing options.
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.WTF_CSRF_ENABLED = False
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False
        self.PREFERRED_URL_SCHEME = "http"
        self.LOG_TO_FILE = False
        self.LOG_LEVEL = "WARNING"
        self.DEFAULT_ADMIN_EMAIL = ""
        self.DEFAULT_ADMIN_PASSWORD = ""
