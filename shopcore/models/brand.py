from sqlalchemy import Boolean, Column, String
from .base import Base


class Brand(Base):
    __tablename__ = "brand"

    id = Column(String(36), primary_key=True)
    slug = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
