from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse form/JSON money input; blanks give None, garbage raises ValueError."""
    if is_blank(value):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid number: {value!r}") from exc
    if not number.is_finite():
        raise ValueError(f"Invalid number: {value!r}")
    return number


def parse_stock(value: Any) -> Optional[int]:
    """Whole, non-negative stock; blanks give None."""
    if is_blank(value):
        return None
    text = str(value).strip()
    try:
        number = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid stock value: {value!r}") from exc
    if not number.is_finite() or number != number.to_integral_value() or number < 0:
        raise ValueError(f"Invalid stock value: {value!r}")
    return int(number)


def split_filter_list(value: Optional[str], lower: bool = False) -> List[str]:
    """Comma-joined query values, dropping placeholders like "undefined" or "null"."""
    if not value or not isinstance(value, str):
        return []
    invalid = {"undefined", "null", ""}
    items = [v.strip() for v in value.split(",")]
    items = [v for v in items if v.lower() not in invalid]
    return [v.lower() for v in items] if lower else items
