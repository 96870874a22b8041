"""
Declarative base shared by every ORM model.

Importing authcore.models registers all tables on Base.metadata
(used by Alembic autogenerate and by the test fixtures).
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass
