from typing import Optional
from uuid import uuid4

from sqlalchemy import func

from ..models.attribute import Attribute, AttributeValue, AttributeValueTranslation
from ..utils.options import COLOR_KEYS


def find_attribute(session, key: str) -> Optional[Attribute]:
    wanted = (key or "").strip().lower()
    if not wanted:
        return None
    candidates = COLOR_KEYS if wanted in COLOR_KEYS else (wanted,)
    for candidate in candidates:
        attribute = session.query(Attribute).filter(func.lower(Attribute.key) == candidate).first()
        if attribute is not None:
            return attribute
    return None


def find_or_create_attribute_value(session, key: str, value: str, locale: str = "en") -> Optional[AttributeValue]:
    """Value of attribute ``key`` matching ``value`` (or one of its labels), created when missing.

    Returns None when the attribute itself does not exist; callers then store a literal option.
    """
    attribute = find_attribute(session, key)
    if attribute is None:
        return None
    wanted = (value or "").strip()
    lowered = wanted.lower()
    for existing in attribute.values:
        if (existing.value or "").strip().lower() == lowered:
            return existing
        if any((t.label or "").strip().lower() == lowered for t in existing.translations):
            return existing

    created = AttributeValue(
        id=str(uuid4()),
        attribute=attribute,
        value=wanted,
        label=wanted,
        position=len(attribute.values),
    )
    created.translations.append(AttributeValueTranslation(id=str(uuid4()), locale=locale or "en", label=wanted))
    session.add(created)
    return created
