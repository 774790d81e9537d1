from typing import Any, Dict, List, Optional

from .options import resolve_option


def money(value: Any) -> float:
    return float(value or 0)


def money_or_none(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_option_dtos(variant: Any, locale: Optional[str] = None) -> List[Dict]:
    """Variant options projected to ``{key, value, valueId, label}`` with a localized label."""
    out = []
    for raw in getattr(variant, "options", None) or []:
        opt = resolve_option(raw)
        if opt is None:
            continue
        payload = opt.to_dict()
        attr_value = getattr(raw, "attribute_value", None)
        if attr_value is not None:
            payload["label"] = attr_value.label_for(locale)
            payload["imageUrl"] = attr_value.image_url
            payload["colors"] = attr_value.colors
        out.append(payload)
    return out


def to_variant_dto(row: Any, locale: Optional[str] = None) -> Dict:
    return {
        "id": getattr(row, "id", None),
        "sku": getattr(row, "sku", None),
        "price": money(getattr(row, "price", 0)),
        "compareAtPrice": money_or_none(getattr(row, "compare_at_price", None)),
        "stock": getattr(row, "stock", 0) or 0,
        "imageUrl": getattr(row, "image_url", None),
        "published": bool(getattr(row, "published", True)),
        "isFeatured": bool(getattr(row, "is_featured", False)),
        "position": getattr(row, "position", 0) or 0,
        "attributes": getattr(row, "attributes", None) or {},
        "options": to_option_dtos(row, locale),
    }


def first_media_url(media: Any) -> Optional[str]:
    for item in media or []:
        url = item.get("url") if isinstance(item, dict) else item
        if url:
            return str(url)
    return None
