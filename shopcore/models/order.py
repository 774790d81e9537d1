from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text, func
from sqlalchemy.orm import relationship
from .base import Base


ORDER_STATUSES = ("pending", "processing", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
FULFILLMENT_STATUSES = ("unfulfilled", "fulfilled", "shipped", "delivered")


class Order(Base):
    __tablename__ = "order"

    id = Column(String(36), primary_key=True)
    number = Column(String(64), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    payment_status = Column(String(32), nullable=False, default="pending")
    fulfillment_status = Column(String(32), nullable=False, default="unfulfilled")
    # stored independently; total is written by checkout and never recomputed here
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(64), nullable=True)
    billing_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)
    shipping_method = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    paid_at = Column(DateTime, nullable=True)
    fulfilled_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    user = relationship("User")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payments = relationship(
        "Payment",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="Payment.created_at",
    )
    events = relationship(
        "OrderEvent",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderEvent.created_at",
    )


class OrderItem(Base):
    __tablename__ = "order_item"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("order.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(String(36), ForeignKey("product_variant.id", ondelete="SET NULL"), nullable=True)
    product_title = Column(String(255), nullable=True)  # snapshot at order time
    sku = Column(String(128), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    total = Column(Numeric(12, 2), nullable=False, default=0)  # line total

    order = relationship("Order", back_populates="items")
    variant = relationship("ProductVariant")


class Payment(Base):
    __tablename__ = "payment"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("order.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(64), nullable=True)
    method = Column(String(64), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    card_last4 = Column(String(4), nullable=True)
    card_brand = Column(String(32), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    order = relationship("Order", back_populates="payments")

    def to_dict(self):
        return {
            "id": self.id,
            "provider": self.provider,
            "method": self.method,
            "amount": float(self.amount or 0),
            "currency": self.currency,
            "status": self.status,
            "cardLast4": self.card_last4,
            "cardBrand": self.card_brand,
        }


class OrderEvent(Base):
    """Append-only audit trail of admin changes to an order."""
    __tablename__ = "order_event"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("order.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    order = relationship("Order", back_populates="events")
