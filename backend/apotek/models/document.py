from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String, Index

from apotek.db.base import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Document(Base):
    """
    One stored record.

    Records of every kind (inventory items, transactions) live here, keyed by
    (collection, id). The payload is JSON; `version` increases by one on
    every committed write and is what atomic operations compare against.
    """
    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_documents_collection_created", "collection", "created_at"),
    )
