import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional
from uuid import uuid4

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from ..db.session import get_session
from ..models.attribute import AttributeValue
from ..models.order import FULFILLMENT_STATUSES, ORDER_STATUSES, PAYMENT_STATUSES, Order, OrderEvent, OrderItem
from ..models.user import User
from ..models.variant import ProductVariant, ProductVariantOption
from ..utils.dto import iso, money
from ..utils.pagination import normalize_paging, paginated
from .errors import ConflictError, InternalError, NotFoundError, ProblemError, ValidationError
from .logging import log_event


logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "total": Order.total,
    "createdAt": Order.created_at,
    "created_at": Order.created_at,
}


def compute_display_totals(order: Order, default_currency: str = "AMD") -> Dict:
    """Breakdown for the detail view; ``total`` is recomputed, the stored column is not read."""
    subtotal = Decimal(str(order.subtotal or 0))
    discount = Decimal(str(order.discount_amount or 0))
    shipping = Decimal(str(order.shipping_amount or 0))
    tax = Decimal(str(order.tax_amount or 0))
    return {
        "subtotal": float(subtotal),
        "discount": float(discount),
        "shipping": float(shipping),
        "tax": float(tax),
        "total": float(subtotal - discount + shipping + tax),
        "currency": order.currency or default_currency,
    }


def unit_price(total, quantity: int) -> float:
    if quantity and quantity > 0:
        return round(float(total or 0) / quantity, 2)
    return money(total)


def _option_dto(opt: ProductVariantOption, locale: str) -> Dict:
    attr_value = opt.attribute_value
    if attr_value is not None:
        return {
            "attributeKey": attr_value.attribute.key if attr_value.attribute else opt.attribute_key,
            "value": attr_value.value,
            "label": attr_value.label_for(locale),
            "imageUrl": attr_value.image_url,
            "colors": attr_value.colors,
        }
    return {"attributeKey": opt.attribute_key, "value": opt.value, "label": opt.value}


class AdminOrdersService:
    """Admin-side order listing, detail and status changes."""

    def __init__(self, session_factory=get_session, default_currency: str = "AMD"):
        self._session_factory = session_factory
        self._currency = default_currency

    def get_orders(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> Dict:
        p, ps = normalize_paging(page, limit)
        with self._session_factory() as session:
            q = session.query(Order).outerjoin(User, User.id == Order.user_id)
            if status:
                q = q.filter(Order.status == status)
            if payment_status:
                q = q.filter(Order.payment_status == payment_status)
            if search and search.strip():
                like = f"%{search.strip().lower()}%"
                q = q.filter(
                    or_(
                        func.lower(Order.number).like(like),
                        func.lower(Order.customer_email).like(like),
                        func.lower(Order.customer_phone).like(like),
                        func.lower(User.first_name).like(like),
                        func.lower(User.last_name).like(like),
                        func.lower(User.email).like(like),
                        func.lower(User.phone).like(like),
                    )
                )
            total = q.count()
            column = SORT_FIELDS.get(sort_by or "createdAt", Order.created_at)
            ordering = column.asc() if (sort_order or "desc").lower() == "asc" else column.desc()
            rows = (
                q.options(selectinload(Order.items), joinedload(Order.user))
                .order_by(ordering, Order.id)
                .offset((p - 1) * ps)
                .limit(ps)
                .all()
            )
            data = [self._list_row(o) for o in rows]
        return paginated(data, total=total, page=p, limit=ps)

    def _list_row(self, order: Order) -> Dict:
        user = order.user
        return {
            "id": order.id,
            "number": order.number,
            "status": order.status,
            "paymentStatus": order.payment_status,
            "fulfillmentStatus": order.fulfillment_status,
            "total": money(order.total),
            "subtotal": money(order.subtotal),
            "discountAmount": money(order.discount_amount),
            "shippingAmount": money(order.shipping_amount),
            "taxAmount": money(order.tax_amount),
            "currency": order.currency or self._currency,
            "customerEmail": (user.email if user else None) or order.customer_email or "",
            "customerPhone": (user.phone if user else None) or order.customer_phone or "",
            "customerFirstName": (user.first_name if user else None) or "",
            "customerLastName": (user.last_name if user else None) or "",
            "customerId": user.id if user else None,
            "itemsCount": len(order.items),
            "createdAt": iso(order.created_at),
        }

    def get_order_by_id(self, order_id: str, *, locale: str = "en") -> Dict:
        with self._session_factory() as session:
            order = (
                session.query(Order)
                .options(
                    joinedload(Order.user),
                    selectinload(Order.payments),
                    selectinload(Order.items)
                    .joinedload(OrderItem.variant)
                    .selectinload(ProductVariant.options)
                    .joinedload(ProductVariantOption.attribute_value)
                    .selectinload(AttributeValue.translations),
                )
                .filter(Order.id == order_id)
                .first()
            )
            if order is None:
                raise NotFoundError(f"Order with id '{order_id}' does not exist", title="Order not found")
            return self._detail(order, locale)

    def _detail(self, order: Order, locale: str) -> Dict:
        items = []
        for item in order.items:
            variant = item.variant
            product = variant.product if variant is not None else None
            translation = product.translation_for(locale) if product is not None else None
            quantity = item.quantity or 0
            items.append(
                {
                    "id": item.id,
                    "variantId": item.variant_id,
                    "productId": product.id if product is not None else None,
                    "productTitle": (translation.title if translation else None) or item.product_title or "Unknown Product",
                    "sku": (variant.sku if variant is not None else None) or item.sku or "N/A",
                    "quantity": quantity,
                    "total": money(item.total),
                    "unitPrice": unit_price(item.total, quantity),
                    "variantOptions": [_option_dto(o, locale) for o in (variant.options if variant else [])],
                }
            )
        payment = order.payments[0] if order.payments else None
        user = order.user
        return {
            "id": order.id,
            "number": order.number,
            "status": order.status,
            "paymentStatus": order.payment_status,
            "fulfillmentStatus": order.fulfillment_status,
            "total": money(order.total),
            "currency": order.currency or self._currency,
            "totals": compute_display_totals(order, self._currency),
            "customerEmail": order.customer_email or (user.email if user else None),
            "customerPhone": order.customer_phone or (user.phone if user else None),
            "billingAddress": order.billing_address,
            "shippingAddress": order.shipping_address,
            "shippingMethod": order.shipping_method,
            "notes": order.notes,
            "adminNotes": order.admin_notes,
            "ipAddress": order.ip_address,
            "userAgent": order.user_agent,
            "payment": payment.to_dict() if payment else None,
            "customer": (
                {
                    "id": user.id,
                    "email": user.email,
                    "phone": user.phone,
                    "firstName": user.first_name,
                    "lastName": user.last_name,
                }
                if user
                else None
            ),
            "createdAt": iso(order.created_at),
            "updatedAt": iso(order.updated_at),
            "paidAt": iso(order.paid_at),
            "fulfilledAt": iso(order.fulfilled_at),
            "cancelledAt": iso(order.cancelled_at),
            "items": items,
        }

    @staticmethod
    def _validate(data: Dict) -> None:
        checks = (
            ("status", ORDER_STATUSES),
            ("paymentStatus", PAYMENT_STATUSES),
            ("fulfillmentStatus", FULFILLMENT_STATUSES),
        )
        for name, allowed in checks:
            if name in data and data[name] not in allowed:
                raise ValidationError(f"Invalid {name}. Must be one of: {', '.join(allowed)}")

    def update_order(self, order_id: str, data: Dict) -> Dict:
        """Apply status changes; timestamps are stamped only when a status is entered."""
        data = data or {}
        self._validate(data)
        try:
            with self._session_factory() as session:
                order = session.get(Order, order_id)
                if order is None:
                    raise NotFoundError(f"Order with id '{order_id}' does not exist", title="Order not found")

                now = datetime.utcnow()
                previous_status = order.status
                updated_fields = []
                if "status" in data:
                    if data["status"] == "completed" and order.status != "completed":
                        order.fulfilled_at = now
                        updated_fields.append("fulfilledAt")
                    if data["status"] == "cancelled" and order.status != "cancelled":
                        order.cancelled_at = now
                        updated_fields.append("cancelledAt")
                    order.status = data["status"]
                    updated_fields.append("status")
                if "paymentStatus" in data:
                    if data["paymentStatus"] == "paid" and order.payment_status != "paid":
                        order.paid_at = now
                        updated_fields.append("paidAt")
                    order.payment_status = data["paymentStatus"]
                    updated_fields.append("paymentStatus")
                if "fulfillmentStatus" in data:
                    order.fulfillment_status = data["fulfillmentStatus"]
                    updated_fields.append("fulfillmentStatus")
                if "adminNotes" in data:
                    order.admin_notes = data["adminNotes"]
                    updated_fields.append("adminNotes")

                session.add(
                    OrderEvent(
                        id=str(uuid4()),
                        order_id=order.id,
                        type="order_updated",
                        data={
                            "updatedFields": updated_fields,
                            "previousStatus": previous_status,
                            "newStatus": order.status,
                        },
                    )
                )
                session.flush()
                result = {
                    "id": order.id,
                    "number": order.number,
                    "status": order.status,
                    "paymentStatus": order.payment_status,
                    "fulfillmentStatus": order.fulfillment_status,
                    "total": money(order.total),
                    "paidAt": iso(order.paid_at),
                    "fulfilledAt": iso(order.fulfilled_at),
                    "cancelledAt": iso(order.cancelled_at),
                }
        except ProblemError:
            raise
        except SQLAlchemyError as exc:
            logger.error("update_order %s failed: %s", order_id, exc)
            raise InternalError("An error occurred while updating the order", title="Database Error")
        log_event("info", "order.updated", order_id=order_id, fields=updated_fields, previous_status=previous_status)
        return result

    def delete_order(self, order_id: str) -> Dict:
        """Hard delete; items, payments and events go with the order."""
        try:
            with self._session_factory() as session:
                order = session.get(Order, order_id)
                if order is None:
                    raise NotFoundError(f"Order with id '{order_id}' does not exist", title="Order not found")
                number = order.number
                counts = {"items": len(order.items), "payments": len(order.payments), "events": len(order.events)}
                session.delete(order)
                session.flush()
        except ProblemError:
            raise
        except IntegrityError as exc:
            logger.error("delete_order %s violated a constraint: %s", order_id, exc)
            raise ConflictError("Order has related records that cannot be deleted", title="Cannot delete order")
        except SQLAlchemyError as exc:
            logger.error("delete_order %s failed: %s", order_id, exc)
            raise InternalError("Failed to delete order")
        log_event("info", "order.deleted", order_id=order_id, number=number, **counts)
        return {"success": True}
