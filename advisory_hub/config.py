"""
Advisory Request Hub
Configuration classes for the Flask app factory.

Selected by name in ``create_app(config_name)``; the name defaults to the
``APP_ENV`` environment variable.

Environment:
    DATABASE_URL                    PostgreSQL URL (postgres:// is accepted)
    SECRET_KEY                      required in production
    REDIS_URL                       Flask-Limiter storage, e.g. redis://host:6379/0
    CORS_ORIGINS                    comma-separated origins, "*" outside production
    LOG_LEVEL / LOG_FORMAT          see middleware/logging_config.py
    DAILY_WORK_HOURS                hours in one timesheet day (8)
    DEFAULT_BILLABILITY_PERCENTAGE  used when a request has none (100)
    SLOW_REQUEST_THRESHOLD_MS       timing middleware warning threshold (1000)
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'advisory_hub_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Per-process key; sessions do not survive a restart in development
_DEV_SECRET = secrets.token_hex(32)

_POOL_OPTIONS = {
    "pool_pre_ping": True,
    "pool_size": 5,
    "max_overflow": 10,
    "pool_recycle": 300,
    "pool_timeout": 20,
}


def _database_url(default=None):
    raw = os.getenv("DATABASE_URL", "")
    if not raw:
        return default
    # SQLAlchemy 2.x only knows the postgresql:// scheme
    return raw.replace("postgres://", "postgresql://", 1)


def _env_number(name, default, cast=float):
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = dict(_POOL_OPTIONS)

    REDIS_URL = os.getenv("REDIS_URL", "memory://")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    LOG_LEVEL = os.getenv("LOG_LEVEL")
    LOG_FORMAT = os.getenv("LOG_FORMAT")

    # ── Request workflow ─────────────────────────────────────────────────
    DAILY_WORK_HOURS = _env_number("DAILY_WORK_HOURS", 8.0)
    DEFAULT_BILLABILITY_PERCENTAGE = _env_number("DEFAULT_BILLABILITY_PERCENTAGE", 100.0)
    SLOW_REQUEST_THRESHOLD_MS = _env_number("SLOW_REQUEST_THRESHOLD_MS", 1000, cast=int)


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    # In-memory SQLite runs on a StaticPool, which takes no pool sizing options
    SQLALCHEMY_ENGINE_OPTIONS = {}
    REDIS_URL = "memory://"
    RATELIMIT_ENABLED = False
    LOG_LEVEL = "WARNING"


class ProductionConfig(Config):
    """Instantiated (not just referenced) so missing settings fail at boot."""

    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
    SQLALCHEMY_ENGINE_OPTIONS = {
        **_POOL_OPTIONS,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        missing = [
            name for name, value in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"Production requires: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
