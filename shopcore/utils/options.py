"""Variant options in their two stored shapes.

A ``ProductVariantOption`` either references an ``AttributeValue`` (new format) or keeps
the attribute key and value as plain strings (legacy format). API payloads add a few
more spellings (``key``, ``attribute``, nested ``attributeValue``). Everything that
compares options goes through ``resolve_option`` so call sites only ever see one
``(key, value)`` projection.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Union


COLOR_KEYS = ("color", "colour")


@dataclass(frozen=True)
class OptionByReference:
    value_id: str
    attribute_key: Optional[str] = None
    value: Optional[str] = None
    label: Optional[str] = None
    attribute_id: Optional[str] = None


@dataclass(frozen=True)
class OptionByLiteral:
    attribute_key: str
    value: str


VariantOption = Union[OptionByReference, OptionByLiteral]


@dataclass(frozen=True)
class ResolvedOption:
    key: str
    value: str
    value_id: Optional[str] = None
    label: Optional[str] = None
    attribute_id: Optional[str] = None

    @property
    def normalized_value(self) -> str:
        return self.value.strip().lower()

    def matches(self, selected: str) -> bool:
        """Case-insensitive value match, or exact value-ID match."""
        if selected is None:
            return False
        if self.normalized_value == str(selected).strip().lower():
            return True
        return bool(self.value_id) and self.value_id == selected

    def to_dict(self):
        return {
            "key": self.key,
            "attributeKey": self.key,
            "value": self.value,
            "valueId": self.value_id,
            "label": self.label or self.value,
            "attributeId": self.attribute_id,
        }


def _get(raw: Any, *names: str) -> Any:
    for name in names:
        if isinstance(raw, dict):
            value = raw.get(name)
        else:
            value = getattr(raw, name, None)
        if value not in (None, ""):
            return value
    return None


def parse_option(raw: Any) -> Optional[VariantOption]:
    """Read an ORM row or a dict into the tagged union."""
    if raw is None:
        return None
    if isinstance(raw, (OptionByReference, OptionByLiteral)):
        return raw

    attr_value = _get(raw, "attributeValue", "attribute_value")
    value_id = _get(raw, "valueId", "value_id")
    key = _get(raw, "attributeKey", "attribute_key", "key")
    attribute = _get(raw, "attribute")
    if key is None and isinstance(attribute, str):
        key = attribute
    value = _get(raw, "value")
    label = _get(raw, "label")
    attribute_id = _get(raw, "attributeId", "attribute_id")

    if attr_value is not None:
        nested_attr = _get(attr_value, "attribute")
        if nested_attr is not None:
            key = _get(nested_attr, "key") or key
        key = key or _get(attr_value, "attributeKey")
        value = _get(attr_value, "value") or value
        label_for = getattr(attr_value, "label_for", None)
        label = label_for() if callable(label_for) else (_get(attr_value, "label") or label)
        value_id = value_id or _get(attr_value, "id")
        attribute_id = attribute_id or _get(attr_value, "attribute_id", "attributeId")

    if value_id:
        return OptionByReference(
            value_id=str(value_id),
            attribute_key=str(key) if key else None,
            value=str(value) if value is not None else None,
            label=str(label) if label else None,
            attribute_id=str(attribute_id) if attribute_id else None,
        )
    if key and value is not None:
        return OptionByLiteral(attribute_key=str(key), value=str(value))
    return None


def resolve_option(option: Any) -> Optional[ResolvedOption]:
    """Project either shape onto ``ResolvedOption``; unresolvable references give None."""
    parsed = parse_option(option)
    if isinstance(parsed, OptionByLiteral):
        return ResolvedOption(key=parsed.attribute_key.strip().lower(), value=parsed.value)
    if isinstance(parsed, OptionByReference):
        if not parsed.attribute_key or parsed.value is None:
            return None
        return ResolvedOption(
            key=parsed.attribute_key.strip().lower(),
            value=parsed.value,
            value_id=parsed.value_id,
            label=parsed.label,
            attribute_id=parsed.attribute_id,
        )
    return None


def resolve_options(options: Optional[Iterable[Any]]) -> List[ResolvedOption]:
    resolved = []
    for raw in options or []:
        opt = resolve_option(raw)
        if opt is not None:
            resolved.append(opt)
    return resolved


def options_for_key(options: Optional[Iterable[Any]], key: str) -> List[ResolvedOption]:
    keys = COLOR_KEYS if key in COLOR_KEYS else (key,)
    return [o for o in resolve_options(options) if o.key in keys]
