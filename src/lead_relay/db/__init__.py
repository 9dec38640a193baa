"""Lead Relay Database Models.

This module contains SQLAlchemy models for the tables the relay reads and
writes: leads, webhook audit logs, user settings and search history.
"""

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# Import models to register them with Base metadata
from .lead import Lead
from .webhook_log import WebhookLog
from .user import SearchHistory, UserSettings

# Import database utilities
from .database import (
    DatabaseManager,
    init_database,
    close_database,
)

__all__ = [
    # Base class
    "Base",
    # Models
    "Lead",
    "WebhookLog",
    "UserSettings",
    "SearchHistory",
    # Database utilities
    "DatabaseManager",
    "init_database",
    "close_database",
]
