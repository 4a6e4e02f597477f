from sqlalchemy import Column, DateTime, Text
from database import Base
from sqlalchemy.sql import func


class KeyValue(Base):
    __tablename__ = "kv_entries"
    key        = Column(Text, primary_key=True)
    value      = Column(Text, nullable=False)          # serialized JSON blob
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
