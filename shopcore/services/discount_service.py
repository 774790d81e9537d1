from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from ..db.session import get_session
from ..models.product import Product
from ..models.setting import Setting
from ..utils.validators import parse_decimal
from .errors import NotFoundError, ValidationError
from .logging import log_event


GLOBAL_KEY = "globalDiscount"
CATEGORY_KEY = "categoryDiscounts"
BRAND_KEY = "brandDiscounts"


@dataclass
class DiscountSettings:
    global_discount: float = 0.0
    category_discounts: Dict[str, float] = field(default_factory=dict)
    brand_discounts: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "globalDiscount": self.global_discount,
            "categoryDiscounts": dict(self.category_discounts),
            "brandDiscounts": dict(self.brand_discounts),
        }


def validate_percent(value: Any, field_name: str = "discount") -> float:
    try:
        percent = parse_decimal(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be a number between 0 and 100")
    percent = percent if percent is not None else Decimal("0")
    if percent < 0 or percent > 100:
        raise ValidationError(f"{field_name} must be between 0 and 100")
    return float(percent)


def resolve_discount(
    product_discount: Any,
    primary_category_id: Optional[str],
    brand_id: Optional[str],
    settings: DiscountSettings,
) -> float:
    """Product discount, else primary category, else brand, else global."""
    own = float(product_discount or 0)
    if own > 0:
        return own
    if primary_category_id and settings.category_discounts.get(primary_category_id):
        return float(settings.category_discounts[primary_category_id])
    if brand_id and settings.brand_discounts.get(brand_id):
        return float(settings.brand_discounts[brand_id])
    return settings.global_discount if settings.global_discount > 0 else 0.0


def apply_discount(price: Any, percent: float) -> float:
    original = float(price or 0)
    if percent > 0 and original > 0:
        return round(original * (1 - percent / 100), 2)
    return original


class DiscountSettingsService:
    """Global, per-category and per-brand discounts kept in the settings table."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def get_settings(self) -> DiscountSettings:
        with self._session_factory() as session:
            rows = {
                s.key: s.value
                for s in session.query(Setting).filter(Setting.key.in_([GLOBAL_KEY, CATEGORY_KEY, BRAND_KEY]))
            }
        return DiscountSettings(
            global_discount=float(rows.get(GLOBAL_KEY) or 0),
            category_discounts={k: float(v) for k, v in (rows.get(CATEGORY_KEY) or {}).items()},
            brand_discounts={k: float(v) for k, v in (rows.get(BRAND_KEY) or {}).items()},
        )

    def _put(self, key: str, value: Any) -> None:
        with self._session_factory() as session:
            row = session.get(Setting, key)
            if row is None:
                session.add(Setting(key=key, value=value))
            else:
                row.value = value

    def set_global_discount(self, percent: Any) -> DiscountSettings:
        self._put(GLOBAL_KEY, validate_percent(percent, "globalDiscount"))
        log_event("info", "discounts.updated", scope="global")
        return self.get_settings()

    def set_category_discounts(self, discounts: Dict[str, Any]) -> DiscountSettings:
        cleaned = {k: validate_percent(v, f"categoryDiscounts.{k}") for k, v in (discounts or {}).items()}
        self._put(CATEGORY_KEY, {k: v for k, v in cleaned.items() if v > 0})
        log_event("info", "discounts.updated", scope="category", count=len(cleaned))
        return self.get_settings()

    def set_brand_discounts(self, discounts: Dict[str, Any]) -> DiscountSettings:
        cleaned = {k: validate_percent(v, f"brandDiscounts.{k}") for k, v in (discounts or {}).items()}
        self._put(BRAND_KEY, {k: v for k, v in cleaned.items() if v > 0})
        log_event("info", "discounts.updated", scope="brand", count=len(cleaned))
        return self.get_settings()

    def set_product_discount(self, product_id: str, percent: Any) -> Dict:
        value = validate_percent(percent, "discountPercent")
        with self._session_factory() as session:
            product = session.get(Product, product_id)
            if product is None or product.deleted_at is not None:
                raise NotFoundError(f"Product with id '{product_id}' does not exist", title="Product not found")
            product.discount_percent = value
        log_event("info", "discounts.updated", scope="product", product_id=product_id, percent=value)
        return {"id": product_id, "discountPercent": value}
