"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.sync_report import SyncReport

__all__ = ["Base", "SyncReport"]
