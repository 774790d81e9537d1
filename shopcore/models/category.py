from sqlalchemy import Boolean, Column, Integer, String
from .base import Base


class Category(Base):
    __tablename__ = "category"

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    parent_id = Column(String(36), nullable=True)
    requires_sizes = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "parentId": self.parent_id,
            "requiresSizes": bool(self.requires_sizes),
        }
