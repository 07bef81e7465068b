"""Database models for bounce records and the subscribers they affect."""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

from bounce_service.utils.datetime import utcnow

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")

SUBSCRIBER_ENABLED = "enabled"
SUBSCRIBER_BLOCKLISTED = "blocklisted"

# Upper bound of the INTEGER columns.
MAX_INT = 2**31 - 1
SOURCE_MAX_LENGTH = 64


class Subscriber(Base):
    __tablename__ = "subscribers"

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), unique=True, nullable=False, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default=SUBSCRIBER_ENABLED)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Bounce(Base):
    """A single delivery failure reported for a subscriber.

    Rows are only ever inserted or deleted, never updated.
    """

    __tablename__ = "bounces"

    id = Column(Integer, primary_key=True)
    subscriber_uuid = Column(String(36), nullable=True, index=True)
    email = Column(String(320), nullable=True, index=True)
    campaign_id = Column(Integer, nullable=True, index=True)
    source = Column(String(SOURCE_MAX_LENGTH), nullable=False)
    meta = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
