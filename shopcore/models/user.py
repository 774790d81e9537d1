from sqlalchemy import Column, DateTime, String, func
from .base import Base


class User(Base):
    __tablename__ = "user"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=True, unique=True)
    phone = Column(String(64), nullable=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    deleted_at = Column(DateTime, nullable=True)
