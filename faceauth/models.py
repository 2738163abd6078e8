"""
SQLAlchemy ORM Models for the identity store

Defines the identities table:
CREATE TABLE identities (
    id UUID PRIMARY KEY,
    identifier TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL,
    credential TEXT NOT NULL,
    embedding JSON NOT NULL,
    embedding_dim INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL
);
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Uuid

from faceauth.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class IdentityRecordDB(Base):
    """
    SQLAlchemy model for the identities table.

    One row per enrolled person, holding the single reference embedding.
    The UNIQUE constraint on identifier is what keeps registration race-free.
    """
    __tablename__ = "identities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    identifier = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(Text, nullable=False)
    credential = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    embedding_dim = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<IdentityRecordDB(id={self.id}, identifier='{self.identifier}')>"

