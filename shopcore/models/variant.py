from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text, func
from sqlalchemy.orm import relationship
from .base import Base


class ProductVariant(Base):
    """One sellable SKU of a product."""
    __tablename__ = "product_variant"

    id = Column(String(36), primary_key=True)
    product_id = Column(String(36), ForeignKey("product.id", ondelete="CASCADE"), nullable=False)
    sku = Column(String(128), nullable=True, unique=True)  # unique across all products
    price = Column(Numeric(12, 2), nullable=False)
    compare_at_price = Column(Numeric(12, 2), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    image_url = Column(Text, nullable=True)  # comma-joined urls / data uris
    published = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)
    attributes = Column(JSON, nullable=True)  # mirror of options: {key: [{valueId, value, attributeKey}]}
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    product = relationship("Product", back_populates="variants")
    options = relationship("ProductVariantOption", back_populates="variant", cascade="all, delete-orphan")


class ProductVariantOption(Base):
    """Links a variant to an AttributeValue, or stores a legacy key/value literal."""
    __tablename__ = "product_variant_option"

    id = Column(String(36), primary_key=True)
    variant_id = Column(String(36), ForeignKey("product_variant.id", ondelete="CASCADE"), nullable=False)
    value_id = Column(String(36), ForeignKey("attribute_value.id", ondelete="SET NULL"), nullable=True)
    attribute_key = Column(String(64), nullable=True)
    value = Column(String(255), nullable=True)

    variant = relationship("ProductVariant", back_populates="options")
    attribute_value = relationship("AttributeValue")
