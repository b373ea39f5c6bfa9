"""Document ORM model: one row per path in the key-document store."""
from sqlalchemy import Column, String, DateTime, Integer, JSON
from sqlalchemy.sql import func
from markets.database import Base


class Document(Base):
    __tablename__ = "documents"

    path = Column(String(512), primary_key=True)
    collection = Column(String(512), nullable=False, index=True)  # parent path
    data = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
