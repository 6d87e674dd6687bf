"""
Configuration classes for Mini Drive.
Supports Development, Testing, and Production environments.
"""
import os
from datetime import timedelta


def _split_csv(value):
    """Split a comma-separated environment value into a clean list."""
    return [item.strip().lower() for item in (value or '').split(',') if item.strip()]


class Config:
    """Base configuration with default settings."""

    # Security - SECRET_KEY is validated in production config
    _secret_key = os.environ.get('SECRET_KEY')
    if not _secret_key:
        import warnings
        warnings.warn(
            "SECRET_KEY not set in environment. Using insecure default key. "
            "Set SECRET_KEY environment variable for production!",
            UserWarning
        )
        _secret_key = 'dev-secret-key-change-in-production'
    SECRET_KEY = _secret_key

    # JWT (separate key for API tokens; falls back to SECRET_KEY if not set)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY')
    ACCESS_TOKEN_MINUTES = int(os.environ.get('ACCESS_TOKEN_MINUTES', 60))
    REFRESH_TOKEN_DAYS = int(os.environ.get('REFRESH_TOKEN_DAYS', 30))

    # Database
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = (
        {}
        if os.environ.get('DATABASE_URL', '').startswith('sqlite')
        else {
            'pool_pre_ping': True,
            'pool_recycle': 300,
        }
    )

    # Rate Limiting
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_DEFAULT = os.environ.get('RATE_LIMIT_GLOBAL', '100/minute')
    RATELIMIT_HEADERS_ENABLED = True

    # Object storage
    STORAGE_ROOT = os.environ.get(
        'STORAGE_ROOT',
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'storage')
    )
    SIGNED_URL_TTL = int(os.environ.get('SIGNED_URL_TTL', 3600))  # 1 hour

    # Uploads: 10 MB per file, request body gets some headroom for multipart framing
    MAX_UPLOAD_BYTES = int(os.environ.get('MAX_UPLOAD_BYTES', 10 * 1024 * 1024))
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 64 * 1024

    # Public base URL used to build share links
    APP_URL = os.environ.get('APP_URL', 'http://localhost:5000')

    # Users registering with one of these e-mails are given the admin role
    ADMIN_EMAILS = _split_csv(os.environ.get('ADMIN_EMAILS'))

    # Pagination
    ITEMS_PER_PAGE = 20

    # Sentry (error monitoring, production only)
    SENTRY_DSN = os.environ.get('SENTRY_DSN')


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'minidrive_dev.db')
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    DEBUG = True

    # Use SQLite in-memory for tests (portable, no external DB required)
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or \
        'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False

    SECRET_KEY = 'testing-secret-key'
    JWT_SECRET_KEY = 'testing-jwt-secret-key-with-enough-length'
    APP_URL = 'http://localhost'
    ADMIN_EMAILS = ['root@test.com']
    MAX_UPLOAD_BYTES = 5 * 1024 * 1024
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 64 * 1024


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False

    # SECRET_KEY and DATABASE_URL - validated in init_app (not at import time)
    SECRET_KEY = os.environ.get('SECRET_KEY')
    # Fix postgres:// → postgresql:// (SQLAlchemy 2.x requires postgresql://)
    _db_url = os.environ.get('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # Redis for rate limiting (shared counters across gunicorn workers)
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL', 'memory://')

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 10,
        'max_overflow': 20,
    }

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization with validation."""
        import logging
        logger = logging.getLogger(__name__)

        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable is required in production")
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable is required in production")

        if not os.environ.get('REDIS_URL'):
            logger.warning(
                "REDIS_URL not set, rate limiter uses in-memory storage. "
                "Each Gunicorn worker has independent counters."
            )

        if not os.environ.get('JWT_SECRET_KEY'):
            logger.warning(
                "JWT_SECRET_KEY not set, JWT tokens signed with SECRET_KEY. "
                "Set JWT_SECRET_KEY for key separation."
            )

        if not cls.ADMIN_EMAILS:
            logger.warning(
                "ADMIN_EMAILS not set, no account is promoted to admin at registration. "
                "Use 'flask create-admin' to create one."
            )


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
