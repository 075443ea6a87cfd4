"""SQLAlchemy database models."""
from datetime import datetime, UTC

from sqlalchemy import Column, DateTime, JSON, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class UIPreference(Base):
    """Persisted UI preference blobs, one row per storage key."""
    __tablename__ = "ui_preferences"

    storage_key = Column(String(100), primary_key=True, index=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return f"<UIPreference(storage_key={self.storage_key})>"
