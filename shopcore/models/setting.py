from sqlalchemy import Column, DateTime, JSON, String, func
from .base import Base


class Setting(Base):
    """Key/value store for admin quick settings (discounts)."""
    __tablename__ = "settings"

    key = Column(String(128), primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
