"""Storefront variant selection.

Variants are storefront dicts (``id``, ``stock``, ``imageUrl``, ``options`` and optionally
plain ``color``/``size`` fields). A variant may list several values for one attribute key,
so every check scans all of its options for that key.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..utils.images import smart_split_urls
from ..utils.options import COLOR_KEYS, ResolvedOption, resolve_options
from ..utils.validators import is_blank


def canonical_key(key: str) -> str:
    k = (key or "").strip().lower()
    return "color" if k in COLOR_KEYS else k


def variant_options(variant: Dict[str, Any]) -> List[ResolvedOption]:
    """Resolved options plus the plain ``color``/``size`` fields when no option covers them."""
    opts = resolve_options(variant.get("options"))
    for name in ("color", "size"):
        explicit = variant.get(name)
        if is_blank(explicit):
            continue
        if not any(canonical_key(o.key) == name for o in opts):
            opts.append(ResolvedOption(key=name, value=str(explicit).strip()))
    return opts


def _for_key(variant: Dict[str, Any], key: str) -> List[ResolvedOption]:
    wanted = canonical_key(key)
    return [o for o in variant_options(variant) if canonical_key(o.key) == wanted]


def get_option_value(options: Optional[Sequence[Any]], key: str) -> Optional[str]:
    wanted = canonical_key(key)
    for opt in resolve_options(options):
        if canonical_key(opt.key) == wanted:
            return opt.value
    return None


def variant_has_value(variant: Dict[str, Any], key: str, selected: Any) -> bool:
    if is_blank(selected):
        return False
    return any(opt.matches(str(selected)) for opt in _for_key(variant, key))


def variant_has_color(variant: Dict[str, Any], color: Any) -> bool:
    return variant_has_value(variant, "color", color)


def is_variant_compatible(
    variant: Dict[str, Any],
    selections: Dict[str, Any],
    exclude_key: Optional[str] = None,
) -> bool:
    excluded = canonical_key(exclude_key) if exclude_key else None
    for key, selected in (selections or {}).items():
        if is_blank(selected) or canonical_key(key) == excluded:
            continue
        if not variant_has_value(variant, key, selected):
            return False
    return True


def _selections(color: Any, size: Any, other: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    selections: Dict[str, Any] = {}
    for key, value in (other or {}).items():
        if not is_blank(value):
            selections[canonical_key(key)] = value
    if not is_blank(color):
        selections["color"] = color
    if not is_blank(size):
        selections["size"] = size
    return selections


def _stock(variant: Dict[str, Any]) -> int:
    try:
        return int(variant.get("stock") or 0)
    except (TypeError, ValueError):
        return 0


def find_variant_by_color_and_size(
    variants: Sequence[Dict[str, Any]],
    color: Any = None,
    size: Any = None,
) -> Optional[Dict[str, Any]]:
    selections = _selections(color, size, None)
    if not selections:
        return None
    for v in variants or []:
        if is_variant_compatible(v, selections):
            return v
    return None


def find_variant_by_all_attributes(
    variants: Sequence[Dict[str, Any]],
    color: Any = None,
    size: Any = None,
    other: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Best variant for a partial selection.

    Exact match with an image, then any exact match, then color+size only,
    then the first in-stock variant, then the first variant.
    """
    variants = list(variants or [])
    if not variants:
        return None

    selections = _selections(color, size, other)
    if selections:
        compatible = [v for v in variants if is_variant_compatible(v, selections)]
        for v in compatible:
            if smart_split_urls(v.get("imageUrl")):
                return v
        if compatible:
            return compatible[0]
        if not is_blank(color) or not is_blank(size):
            match = find_variant_by_color_and_size(variants, color, size)
            if match is not None:
                return match

    for v in variants:
        if _stock(v) > 0:
            return v
    return variants[0]


@dataclass
class AttributeGroupValue:
    value: str
    label: str
    value_id: Optional[str] = None
    stock: int = 0
    variant_ids: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    colors: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valueId": self.value_id,
            "value": self.value,
            "label": self.label,
            "stock": self.stock,
            "available": self.stock > 0,
            "variantIds": self.variant_ids,
            "imageUrl": self.image_url,
            "colors": self.colors,
        }


def _carries(variant: Dict[str, Any], key: str, group_value: AttributeGroupValue) -> bool:
    for opt in _for_key(variant, key):
        if opt.matches(group_value.value):
            return True
        if group_value.value_id and opt.value_id == group_value.value_id:
            return True
    return False


def _same_value(a: AttributeGroupValue, opt: ResolvedOption) -> bool:
    if a.value_id and opt.value_id:
        return a.value_id == opt.value_id
    return a.value.strip().lower() == opt.normalized_value


def build_attribute_groups(
    product: Dict[str, Any],
    *,
    selected_color: Any = None,
    selected_size: Any = None,
    selected_values: Optional[Dict[str, Any]] = None,
) -> "OrderedDict[str, List[AttributeGroupValue]]":
    """Selectable values per attribute key with the stock reachable under the current selection."""
    variants = list(product.get("variants") or [])
    selections = _selections(selected_color, selected_size, selected_values)
    groups: "OrderedDict[str, List[AttributeGroupValue]]" = OrderedDict()

    for link in product.get("productAttributes") or []:
        attribute = link.get("attribute") or {}
        key = canonical_key(attribute.get("key") or "")
        if not key:
            continue
        bucket = groups.setdefault(key, [])
        for raw in attribute.get("values") or []:
            bucket.append(
                AttributeGroupValue(
                    value=str(raw.get("value") or ""),
                    label=str(raw.get("label") or raw.get("value") or ""),
                    value_id=raw.get("id"),
                    image_url=raw.get("imageUrl"),
                    colors=raw.get("colors"),
                )
            )

    # values only present on variants (legacy literals or unlinked attributes)
    for v in variants:
        for opt in variant_options(v):
            key = canonical_key(opt.key)
            bucket = groups.setdefault(key, [])
            if not any(_same_value(gv, opt) for gv in bucket):
                bucket.append(
                    AttributeGroupValue(value=opt.value, label=opt.label or opt.value, value_id=opt.value_id)
                )

    for key, values in groups.items():
        others = {k: s for k, s in selections.items() if k != key}
        for gv in values:
            carriers = [v for v in variants if _carries(v, key, gv)]
            if others:
                carriers = [v for v in carriers if is_variant_compatible(v, selections, exclude_key=key)]
            gv.stock = sum(_stock(v) for v in carriers)
            gv.variant_ids = [str(v.get("id")) for v in carriers if v.get("id") is not None]
            if not gv.image_url:
                for v in carriers:
                    images = smart_split_urls(v.get("imageUrl"))
                    if images and key == "color":
                        gv.image_url = images[0]
                        break
    return groups
