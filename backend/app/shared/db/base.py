"""
Declarative base shared by every inbox table.
Alembic reads Base.metadata for autogenerate.
"""
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """
    created_at / updated_at for mutable rows (contacts).
    Messages carry their own created_at plus edited_at / deleted_at.
    """
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=func.now()
    )
