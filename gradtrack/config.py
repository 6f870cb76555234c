"""
GradTrack settings, one class per deployment environment.

``create_app`` picks the class by name (``APP_ENV``) and instantiates it, so
environment checks that must fail fast live in ``__init__``.
"""

import os
import secrets

PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

LOCAL_SQLITE_URI = "sqlite:///" + os.path.join(PROJECT_ROOT, "instance", "gradtrack_dev.db")
IN_MEMORY_SQLITE_URI = "sqlite:///:memory:"


def _database_url(env_var="DATABASE_URL"):
    """Read a DB URL, normalising the legacy ``postgres://`` scheme."""
    raw = os.getenv(env_var, "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else ""


def _int_env(name, default):
    raw = os.getenv(name)
    return int(raw) if raw else default


class Config:
    """Settings shared by every environment."""

    DEBUG = False
    TESTING = False

    # Per-process random key unless SECRET_KEY is set; tokens die on restart.
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = _int_env("JWT_ACCESS_EXPIRES", 900)

    # "true" / "false"; API_KEYS format is documented in gradtrack/auth.py
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    # Read by Flask-Limiter in init_app
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    MILESTONE_RATE_LIMIT = os.getenv("MILESTONE_RATE_LIMIT", "60/minute")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    LOG_LEVEL = os.getenv("LOG_LEVEL")

    # Milestone payloads are small JSON bodies
    MAX_CONTENT_LENGTH = 256 * 1024


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url() or LOCAL_SQLITE_URI
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    """In-memory SQLite, header-based identity, no rate limiting."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL") or IN_MEMORY_SQLITE_URI
    SQLALCHEMY_ENGINE_OPTIONS = {}
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """PostgreSQL behind a pooled engine; CORS origins must be listed."""

    SQLALCHEMY_DATABASE_URI = _database_url() or None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_size": _int_env("DB_POOL_SIZE", 5),
        "max_overflow": _int_env("DB_MAX_OVERFLOW", 10),
        "pool_timeout": 20,
    }

    def __init__(self):
        missing = [
            name for name, value in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            ) if not value
        ]
        if missing:
            raise RuntimeError(f"Production requires: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
