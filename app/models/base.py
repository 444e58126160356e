"""SQLAlchemy declarative Base shared by the sync audit models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
