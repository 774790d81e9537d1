from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload

from ..db.session import get_session
from ..models.order import Order, OrderItem
from ..models.product import Product
from ..models.user import User
from ..models.variant import ProductVariant
from ..utils.dto import first_media_url, iso, money


class AdminStatsService:
    """Dashboard counters and leaderboards."""

    def __init__(self, session_factory=get_session, low_stock_threshold: int = 10, default_currency: str = "AMD"):
        self._session_factory = session_factory
        self._low_stock = low_stock_threshold
        self._currency = default_currency

    def get_stats(self) -> Dict:
        since = datetime.utcnow() - timedelta(days=7)
        with self._session_factory() as session:
            users = session.query(func.count(User.id)).filter(User.deleted_at.is_(None)).scalar() or 0
            products = session.query(func.count(Product.id)).filter(Product.deleted_at.is_(None)).scalar() or 0
            low_stock = (
                session.query(func.count(ProductVariant.id))
                .filter(ProductVariant.stock < self._low_stock, ProductVariant.published.is_(True))
                .scalar()
                or 0
            )
            orders = session.query(func.count(Order.id)).scalar() or 0
            recent = session.query(func.count(Order.id)).filter(Order.created_at >= since).scalar() or 0
            pending = session.query(func.count(Order.id)).filter(Order.status == "pending").scalar() or 0
            earning = (
                session.query(Order.total, Order.currency)
                .filter(or_(Order.status == "completed", Order.payment_status == "paid"))
                .all()
            )
        revenue = sum(money(total) for total, _ in earning)
        currency = next((c for _, c in earning if c), self._currency)
        return {
            "users": {"total": users},
            "products": {"total": products, "lowStock": low_stock},
            "orders": {"total": orders, "recent": recent, "pending": pending},
            "revenue": {"total": revenue, "currency": currency},
        }

    def get_recent_orders(self, limit: int = 5) -> List[Dict]:
        with self._session_factory() as session:
            rows = (
                session.query(Order)
                .options(selectinload(Order.items))
                .order_by(Order.created_at.desc(), Order.id)
                .limit(limit)
                .all()
            )
            return [
                {
                    "id": o.id,
                    "number": o.number,
                    "status": o.status,
                    "paymentStatus": o.payment_status,
                    "total": money(o.total),
                    "currency": o.currency or self._currency,
                    "customerEmail": o.customer_email,
                    "customerPhone": o.customer_phone,
                    "itemsCount": len(o.items),
                    "createdAt": iso(o.created_at),
                }
                for o in rows
            ]

    def get_top_products(self, limit: int = 5) -> List[Dict]:
        """Variants ranked by revenue across all order lines."""
        stats: Dict[str, Dict] = {}
        with self._session_factory() as session:
            items = (
                session.query(OrderItem)
                .filter(OrderItem.variant_id.isnot(None))
                .options(selectinload(OrderItem.variant).selectinload(ProductVariant.product))
                .all()
            )
            for item in items:
                variant = item.variant
                if variant is None:
                    continue
                product = variant.product
                entry = stats.get(variant.id)
                if entry is None:
                    translation = product.translation_for("en") if product else None
                    entry = stats[variant.id] = {
                        "variantId": variant.id,
                        "productId": variant.product_id,
                        "title": (translation.title if translation else None) or item.product_title or "Unknown Product",
                        "sku": variant.sku or item.sku or "N/A",
                        "totalQuantity": 0,
                        "totalRevenue": 0.0,
                        "orderCount": 0,
                        "image": first_media_url(product.media) if product else None,
                    }
                entry["totalQuantity"] += item.quantity or 0
                entry["totalRevenue"] += money(item.total)
                entry["orderCount"] += 1
        ranked = sorted(stats.values(), key=lambda s: s["totalRevenue"], reverse=True)
        return ranked[:limit]
