"""
Schemaless document storage

Every record the lifecycle touches (orders, leads, payment info, Shakti
cards, commission settings) is a JSON document addressed by
(collection, doc_id).
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func
from snazzpay.models.base import Base


class Document(Base):
    """A single keyed JSON record"""
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String, nullable=False, index=True)
    doc_id = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
