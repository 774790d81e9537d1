from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship
from .base import Base


product_category = Table(
    "product_category",
    Base.metadata,
    Column("product_id", String(36), ForeignKey("product.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", String(36), ForeignKey("category.id", ondelete="CASCADE"), primary_key=True),
)


class Product(Base):
    __tablename__ = "product"

    id = Column(String(36), primary_key=True)
    brand_id = Column(String(36), ForeignKey("brand.id"), nullable=True)
    primary_category_id = Column(String(36), ForeignKey("category.id"), nullable=True)
    media = Column(JSON, nullable=True)
    published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, nullable=True)
    featured = Column(Boolean, nullable=False, default=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)

    brand = relationship("Brand")
    primary_category = relationship("Category", foreign_keys=[primary_category_id])
    categories = relationship("Category", secondary=product_category)
    translations = relationship("ProductTranslation", back_populates="product", cascade="all, delete-orphan")
    labels = relationship("ProductLabel", back_populates="product", cascade="all, delete-orphan")
    product_attributes = relationship("ProductAttribute", back_populates="product", cascade="all, delete-orphan")
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.position",
    )

    @property
    def category_ids(self):
        return [c.id for c in self.categories]

    def translation_for(self, locale="en"):
        translations = list(self.translations or [])
        for t in translations:
            if t.locale == locale:
                return t
        return translations[0] if translations else None

    def requires_sizes(self) -> bool:
        """Size selection is mandatory when the primary category says so."""
        return bool(self.primary_category and self.primary_category.requires_sizes)


class ProductTranslation(Base):
    __tablename__ = "product_translation"
    __table_args__ = (UniqueConstraint("product_id", "locale"),)

    id = Column(String(36), primary_key=True)
    product_id = Column(String(36), ForeignKey("product.id", ondelete="CASCADE"), nullable=False)
    locale = Column(String(8), nullable=False, default="en")
    title = Column(String(255), nullable=False, default="")
    slug = Column(String(255), nullable=False, default="")
    subtitle = Column(String(255), nullable=True)
    description_html = Column(Text, nullable=True)

    product = relationship("Product", back_populates="translations")


class ProductLabel(Base):
    """Badge shown on product cards (e.g. "New", "-20%")."""
    __tablename__ = "product_label"

    id = Column(String(36), primary_key=True)
    product_id = Column(String(36), ForeignKey("product.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False, default="text")
    value = Column(String(255), nullable=False)
    position = Column(String(32), nullable=False, default="top-left")
    color = Column(String(32), nullable=True)

    product = relationship("Product", back_populates="labels")

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "value": self.value,
            "position": self.position,
            "color": self.color,
        }


class ProductAttribute(Base):
    __tablename__ = "product_attribute"
    __table_args__ = (UniqueConstraint("product_id", "attribute_id"),)

    id = Column(String(36), primary_key=True)
    product_id = Column(String(36), ForeignKey("product.id", ondelete="CASCADE"), nullable=False)
    attribute_id = Column(String(36), ForeignKey("attribute.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="product_attributes")
    attribute = relationship("Attribute")
