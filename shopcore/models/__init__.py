from .base import Base
from .user import User
from .brand import Brand
from .category import Category
from .attribute import Attribute, AttributeTranslation, AttributeValue, AttributeValueTranslation
from .product import Product, ProductAttribute, ProductLabel, ProductTranslation, product_category
from .variant import ProductVariant, ProductVariantOption
from .order import (
    FULFILLMENT_STATUSES,
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    Order,
    OrderEvent,
    OrderItem,
    Payment,
)
from .setting import Setting

__all__ = [
    "Base",
    "User",
    "Brand",
    "Category",
    "Attribute",
    "AttributeTranslation",
    "AttributeValue",
    "AttributeValueTranslation",
    "Product",
    "ProductAttribute",
    "ProductLabel",
    "ProductTranslation",
    "product_category",
    "ProductVariant",
    "ProductVariantOption",
    "Order",
    "OrderItem",
    "Payment",
    "OrderEvent",
    "ORDER_STATUSES",
    "PAYMENT_STATUSES",
    "FULFILLMENT_STATUSES",
    "Setting",
]
