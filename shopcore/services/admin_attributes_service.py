"""
Admin attribute management
Attributes (color, size, ...) and their values, as used by variant options and swatches.
"""
import re
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..db.session import get_session
from ..models.attribute import Attribute, AttributeTranslation, AttributeValue, AttributeValueTranslation
from ..models.variant import ProductVariantOption
from ..utils.validators import is_blank
from .cache import CacheInvalidator
from .errors import ConflictError, NotFoundError, ValidationError
from .logging import log_event


def normalize_value(label: str) -> str:
    """Stored value for a new label: trimmed, lower-cased, whitespace runs become dashes."""
    return re.sub(r"\s+", "-", (label or "").strip().lower())


def _attribute_not_found(attribute_id: str) -> NotFoundError:
    return NotFoundError(f"Attribute with id '{attribute_id}' does not exist", title="Attribute not found")


class AdminAttributesService:
    def __init__(self, session_factory=get_session, invalidator: Optional[CacheInvalidator] = None, locale: str = "en"):
        self._session_factory = session_factory
        self._invalidator = invalidator or CacheInvalidator()
        self._locale = locale

    def _load(self, session, attribute_id: str) -> Attribute:
        attribute = (
            session.query(Attribute)
            .options(
                selectinload(Attribute.translations),
                selectinload(Attribute.values).selectinload(AttributeValue.translations),
            )
            .filter(Attribute.id == attribute_id)
            .first()
        )
        if attribute is None:
            raise _attribute_not_found(attribute_id)
        return attribute

    def list_attributes(self, locale: Optional[str] = None) -> List[Dict]:
        locale = locale or self._locale
        with self._session_factory() as session:
            rows = (
                session.query(Attribute)
                .options(
                    selectinload(Attribute.translations),
                    selectinload(Attribute.values).selectinload(AttributeValue.translations),
                )
                .order_by(Attribute.position, Attribute.key)
                .all()
            )
            return [a.to_dict(locale) for a in rows]

    def create_attribute(self, data: Dict) -> Dict:
        data = data or {}
        key = (data.get("key") or "").strip()
        name = (data.get("name") or "").strip()
        if not key:
            raise ValidationError("Attribute key is required")
        if not name:
            raise ValidationError("Attribute name is required")
        locale = data.get("locale") or self._locale
        with self._session_factory() as session:
            exists = session.query(Attribute.id).filter(func.lower(Attribute.key) == key.lower()).first()
            if exists is not None:
                raise ValidationError(f"Attribute with key '{key}' already exists", title="Attribute already exists")
            position = session.query(func.count(Attribute.id)).scalar() or 0
            attribute = Attribute(
                id=str(uuid4()),
                key=key,
                name=name,
                type=data.get("type") or "select",
                filterable=data.get("filterable") is not False,
                position=position,
            )
            attribute.translations.append(AttributeTranslation(id=str(uuid4()), locale=locale, name=name))
            session.add(attribute)
            session.flush()
            result = attribute.to_dict(locale)
        log_event("info", "attribute.created", attribute_id=result["id"], key=key)
        return result

    def update_attribute_translation(self, attribute_id: str, data: Dict) -> Dict:
        data = data or {}
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Attribute name is required")
        locale = data.get("locale") or self._locale
        with self._session_factory() as session:
            attribute = self._load(session, attribute_id)
            translation = next((t for t in attribute.translations if t.locale == locale), None)
            if translation is None:
                attribute.translations.append(AttributeTranslation(id=str(uuid4()), locale=locale, name=name))
            else:
                translation.name = name
            session.flush()
            result = attribute.to_dict(locale)
        self._invalidator.revalidate_tag("products")
        return result

    def delete_attribute(self, attribute_id: str) -> Dict:
        with self._session_factory() as session:
            attribute = self._load(session, attribute_id)
            self._ensure_unused(session, [v.id for v in attribute.values])
            session.delete(attribute)
        self._invalidator.revalidate_tag("products")
        log_event("info", "attribute.deleted", attribute_id=attribute_id)
        return {"success": True}

    # --- values ----------------------------------------------------------

    def add_attribute_value(self, attribute_id: str, data: Dict) -> Dict:
        data = data or {}
        label = (data.get("label") or "").strip()
        if not label:
            raise ValidationError("Value label is required")
        locale = data.get("locale") or self._locale
        value = normalize_value(label)
        with self._session_factory() as session:
            attribute = self._load(session, attribute_id)
            if any((v.value or "").lower() == value for v in attribute.values):
                raise ValidationError(
                    f"Value '{label}' already exists for this attribute", title="Value already exists"
                )
            created = AttributeValue(
                id=str(uuid4()),
                value=value,
                label=label,
                colors=[],
                position=len(attribute.values),
            )
            created.translations.append(AttributeValueTranslation(id=str(uuid4()), locale=locale, label=label))
            attribute.values.append(created)
            session.flush()
            result = attribute.to_dict(locale)
        log_event("info", "attribute.value_added", attribute_id=attribute_id, value=value)
        return result

    def update_attribute_value(self, attribute_id: str, value_id: str, data: Dict) -> Dict:
        """Partial update: only ``label``, ``colors`` and ``imageUrl`` keys present in ``data`` change."""
        data = data or {}
        locale = data.get("locale") or self._locale
        with self._session_factory() as session:
            attribute_value = self._load_value(session, attribute_id, value_id)
            if "colors" in data:
                colors = data.get("colors")
                attribute_value.colors = [str(c) for c in colors if not is_blank(c)] if isinstance(colors, list) else []
            if "imageUrl" in data:
                attribute_value.image_url = data.get("imageUrl") or None
            if "label" in data:
                label = (data.get("label") or "").strip()
                if not label:
                    raise ValidationError("Value label must not be empty")
                translation = next((t for t in attribute_value.translations if t.locale == locale), None)
                if translation is None:
                    attribute_value.translations.append(
                        AttributeValueTranslation(id=str(uuid4()), locale=locale, label=label)
                    )
                else:
                    translation.label = label
            session.flush()
            result = self._load(session, attribute_id).to_dict(locale)
        self._invalidator.revalidate_tag("products")
        log_event("info", "attribute.value_updated", attribute_id=attribute_id, value_id=value_id)
        return result

    def delete_attribute_value(self, attribute_id: str, value_id: str) -> Dict:
        with self._session_factory() as session:
            attribute_value = self._load_value(session, attribute_id, value_id)
            self._ensure_unused(session, [attribute_value.id])
            session.delete(attribute_value)
        self._invalidator.revalidate_tag("products")
        log_event("info", "attribute.value_deleted", attribute_id=attribute_id, value_id=value_id)
        return {"success": True}

    @staticmethod
    def _load_value(session, attribute_id: str, value_id: str) -> AttributeValue:
        attribute_value = session.get(AttributeValue, value_id)
        if attribute_value is None:
            raise NotFoundError(
                f"Attribute value with id '{value_id}' does not exist", title="Attribute value not found"
            )
        if attribute_value.attribute_id != attribute_id:
            raise ValidationError("Attribute value does not belong to the specified attribute")
        return attribute_value

    @staticmethod
    def _ensure_unused(session, value_ids: List[str]) -> None:
        if not value_ids:
            return
        used = (
            session.query(func.count(ProductVariantOption.id))
            .filter(ProductVariantOption.value_id.in_(value_ids))
            .scalar()
            or 0
        )
        if used:
            raise ConflictError(
                f"Attribute value is used by {used} variant option(s)", title="Attribute value in use"
            )
