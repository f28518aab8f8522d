# erapport/models/system_settings.py - Key/value markers (schema and encoding versions)
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from erapport.models.base import Base, JSONDocument


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String(64), primary_key=True)
    value = Column(JSONDocument, nullable=False)
    description = Column(String(255))
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SystemSetting(key={self.key}, value={self.value})>"
