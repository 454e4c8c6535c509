"""Query layer for database operations using SQLAlchemy Core."""

from . import notifications, profiles, sessions

__all__ = ["notifications", "profiles", "sessions"]
