import os
from typing import Final

basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    SECRET_KEY: Final[str] = os.getenv("SECRET_KEY", "change-me-in-production")
    try:
        SQLALCHEMY_DATABASE_URI: Final[str] = os.environ["DATABASE_URL"]
    except KeyError:
        raise RuntimeError("DATABASE_URL environment variable is required (no sqlite fallback)")
    SQLALCHEMY_TRACK_MODIFICATIONS: Final[bool] = False
    SESSION_COOKIE_HTTPONLY: Final[bool] = True
    SESSION_COOKIE_SECURE: Final[bool] = os.getenv("FLASK_ENV") == "production"
    SESSION_COOKIE_SAMESITE: Final[str] = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    REMEMBER_COOKIE_HTTPONLY: Final[bool] = True
    REMEMBER_COOKIE_SECURE: Final[bool] = os.getenv("FLASK_ENV") == "production"
    # Bearer tokens handed out by /auth/login are signed with SECRET_KEY and this salt
    ACCESS_TOKEN_SALT: Final[str] = os.getenv("ACCESS_TOKEN_SALT", "fasticket-access-token")
    ACCESS_TOKEN_MAX_AGE: Final[int] = int(os.getenv("ACCESS_TOKEN_MAX_AGE", "86400"))
    # Booking limits
    MAX_TICKETS_PER_BOOKING: Final[int] = int(os.getenv("MAX_TICKETS_PER_BOOKING", "10"))
    EVENTS_PAGE_SIZE: Final[int] = int(os.getenv("EVENTS_PAGE_SIZE", "20"))
    EVENTS_MAX_PAGE_SIZE: Final[int] = int(os.getenv("EVENTS_MAX_PAGE_SIZE", "100"))
    # Localization
    BABEL_DEFAULT_LOCALE: Final[str] = os.getenv("BABEL_DEFAULT_LOCALE", "en")
    SUPPORTED_LOCALES: Final[tuple] = ("en", "tr")
    # Flask-WTF CSRF settings
    # Time limit for CSRF tokens (seconds). Set via env var `WTF_CSRF_TIME_LIMIT`.
    WTF_CSRF_TIME_LIMIT: Final[int] = int(os.getenv("WTF_CSRF_TIME_LIMIT", "86400"))
    WTF_CSRF_SECRET_KEY: Final[str] = os.getenv("WTF_CSRF_SECRET_KEY", SECRET_KEY)
