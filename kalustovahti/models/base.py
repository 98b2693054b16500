"""
Base Model Classes
Common columns shared by every table
"""

import uuid

from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.sql import func

from kalustovahti.core.database import Base


class TimestampMixin:
    """created_at / updated_at maintained by the database"""
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDMixin:
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    __abstract__ = True
