"""Admin product editor state <-> flat variant rows.

The editor groups variants by color ("color buckets"); each color owns its images,
optional price overrides and either a base stock (no sizes) or one stock per size.
``build_variant_rows`` flattens that state into one row per (color, size) for the
update service, and ``build_color_buckets`` groups stored variants back for editing.
"""

import logging
import random
import re
import string
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..utils.images import clean_image_urls, merge_images, separate_main_and_variant_images, smart_split_urls
from ..utils.options import options_for_key, resolve_options
from ..utils.validators import is_blank, parse_decimal, parse_stock
from .errors import ValidationError


logger = logging.getLogger(__name__)

DEFAULT_COLOR = "default"
DEFAULT_COLOR_LABEL = "Default"


@dataclass
class ColorData:
    color_value: str
    color_label: str = ""
    images: List[str] = field(default_factory=list)
    stock: str = ""
    price: str = ""
    compare_at_price: str = ""
    sku: str = ""
    sizes: List[str] = field(default_factory=list)
    size_stocks: Dict[str, str] = field(default_factory=dict)
    size_prices: Dict[str, str] = field(default_factory=dict)
    size_compare_at_prices: Dict[str, str] = field(default_factory=dict)
    size_skus: Dict[str, str] = field(default_factory=dict)
    size_labels: Dict[str, str] = field(default_factory=dict)
    is_featured: bool = False

    @property
    def label(self) -> str:
        return self.color_label or self.color_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "colorValue": self.color_value,
            "colorLabel": self.color_label,
            "images": list(self.images),
            "stock": self.stock,
            "price": self.price,
            "compareAtPrice": self.compare_at_price,
            "sku": self.sku,
            "sizes": list(self.sizes),
            "sizeStocks": dict(self.size_stocks),
            "sizePrices": dict(self.size_prices),
            "sizeCompareAtPrices": dict(self.size_compare_at_prices),
            "sizeSkus": dict(self.size_skus),
            "sizeLabels": dict(self.size_labels),
            "isFeatured": self.is_featured,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColorData":
        def _map(name: str) -> Dict[str, str]:
            raw = data.get(name) or {}
            return {str(k): "" if v is None else str(v) for k, v in raw.items()}

        return cls(
            color_value=str(data.get("colorValue") or ""),
            color_label=str(data.get("colorLabel") or ""),
            images=[str(u) for u in (data.get("images") or []) if u],
            stock="" if data.get("stock") is None else str(data.get("stock")),
            price="" if data.get("price") is None else str(data.get("price")),
            compare_at_price="" if data.get("compareAtPrice") is None else str(data.get("compareAtPrice")),
            sku=str(data.get("sku") or ""),
            sizes=[str(s) for s in (data.get("sizes") or [])],
            size_stocks=_map("sizeStocks"),
            size_prices=_map("sizePrices"),
            size_compare_at_prices=_map("sizeCompareAtPrices"),
            size_skus=_map("sizeSkus"),
            size_labels=_map("sizeLabels"),
            is_featured=bool(data.get("isFeatured")),
        )


@dataclass
class VariantForm:
    price: str = ""
    compare_at_price: str = ""
    sku: str = ""
    colors: List[ColorData] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": self.price,
            "compareAtPrice": self.compare_at_price,
            "sku": self.sku,
            "colors": [c.to_dict() for c in self.colors],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VariantForm":
        return cls(
            price="" if data.get("price") is None else str(data.get("price")),
            compare_at_price="" if data.get("compareAtPrice") is None else str(data.get("compareAtPrice")),
            sku=str(data.get("sku") or ""),
            colors=[ColorData.from_dict(c) for c in (data.get("colors") or [])],
        )


@dataclass
class VariantRow:
    color: str
    size: Optional[str]
    sku: str
    price: Decimal
    compare_at_price: Optional[Decimal]
    stock: int
    image_url: str
    is_featured: bool = False
    published: bool = True
    sku_generated: bool = field(default=False, repr=False)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sku": self.sku,
            "price": str(self.price),
            "compareAtPrice": str(self.compare_at_price) if self.compare_at_price is not None else None,
            "stock": self.stock,
            "imageUrl": self.image_url,
            "color": self.color or None,
            "size": self.size or None,
            "isFeatured": self.is_featured,
            "published": self.published,
        }


# --- forward transform (save) ----------------------------------------------


def _money(raw: Any, what: str) -> Optional[Decimal]:
    try:
        return parse_decimal(raw)
    except ValueError:
        raise ValidationError(f"Invalid {what}: {raw!r}")


def _stock(raw: Any, what: str) -> int:
    if is_blank(raw):
        raise ValidationError(f"Stock is required for {what}")
    try:
        return parse_stock(raw)
    except ValueError:
        raise ValidationError(f"Stock for {what} must be a whole number >= 0")


def _first_present(*values: Any) -> Any:
    for v in values:
        if not is_blank(v):
            return v
    return None


def _slug_token(slug: str) -> str:
    token = re.sub(r"[^A-Z0-9]+", "-", (slug or "").upper()).strip("-")
    return token or "PROD"


def _random_suffix(rng: random.Random, length: int = 4) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(rng.choice(alphabet) for _ in range(length))


def _validate_explicit_skus(colors: Sequence[ColorData]) -> None:
    seen: Dict[str, str] = {}
    for color in colors:
        explicit = [color.sku] if not color.sizes else [color.size_skus.get(s, "") for s in color.sizes]
        for sku in explicit:
            if is_blank(sku):
                continue
            key = sku.strip().lower()
            if key in seen:
                raise ValidationError(f"SKU '{sku.strip()}' is used more than once")
            seen[key] = sku


def _size_stock(color: ColorData, size: str, requires_sizes: bool) -> int:
    what = f"size '{size}' of color '{color.label}'"
    if size in color.size_stocks:
        # an empty per-size value is an error, never a silent 0
        return _stock(color.size_stocks[size], what)
    if requires_sizes:
        raise ValidationError(f"Stock is required for {what}")
    return _stock(color.stock, what)


def _ensure_unique_skus(rows: List[VariantRow], rng: random.Random) -> None:
    taken = {r.sku.lower() for r in rows if not r.sku_generated}
    for row in rows:
        if not row.sku_generated:
            continue
        candidate = row.sku
        while candidate.lower() in taken:
            candidate = f"{row.sku}-{_random_suffix(rng)}"
        row.sku = candidate
        taken.add(candidate.lower())


def _featured_index(colors: Sequence[ColorData]) -> Optional[int]:
    for i, color in enumerate(colors):
        if color.is_featured:
            return i
    for i, color in enumerate(colors):
        if color.images:
            return i
    return None


def build_variant_rows(
    form: VariantForm,
    *,
    slug: str = "",
    requires_sizes: bool = False,
    timestamp: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[VariantRow]:
    """Flatten editor state into one row per (color, size); raise on the first invalid field."""
    colors = list(form.colors or [])
    if not colors:
        raise ValidationError("At least one variant is required")

    _validate_explicit_skus(colors)

    base_price = _money(form.price, "price")
    _money(form.compare_at_price, "compare at price")
    for color in colors:
        price = _money(color.price, f"price of color '{color.label}'")
        resolved = price if price is not None else base_price
        if resolved is None or resolved <= 0:
            raise ValidationError(f"Color '{color.label}' must have a price greater than 0")
        for size in color.sizes:
            size_price = _money(color.size_prices.get(size), f"price of size '{size}'")
            if size_price is not None and size_price <= 0:
                raise ValidationError(f"Size '{size}' of color '{color.label}' must have a price greater than 0")

    stocks: List[List[int]] = []
    for color in colors:
        if requires_sizes and not color.sizes:
            raise ValidationError(f"Color '{color.label}' requires at least one size")
        if color.sizes:
            stocks.append([_size_stock(color, size, requires_sizes) for size in color.sizes])
        else:
            stocks.append([_stock(color.stock, f"color '{color.label}'")])

    rng = rng or random.Random()
    ts = timestamp if timestamp is not None else int(time.time() * 1000)
    base_sku = (form.sku or "").strip()
    multi = len(colors) > 1 or any(len(c.sizes) > 1 for c in colors)
    featured = _featured_index(colors)

    rows: List[VariantRow] = []
    for ci, color in enumerate(colors):
        color_price = _first_present(color.price, form.price)
        color_compare = _first_present(color.compare_at_price, form.compare_at_price)
        image_url = ",".join(u for u in color.images if u)
        sizes: List[Optional[str]] = list(color.sizes) or [None]
        for si, size in enumerate(sizes):
            explicit = color.size_skus.get(size, "") if size is not None else color.sku
            generated = False
            if not is_blank(explicit):
                sku = explicit.strip()
            elif base_sku:
                if not multi:
                    sku = base_sku
                elif size is None:
                    sku = f"{base_sku}-{ci + 1}"
                else:
                    sku = f"{base_sku}-{ci + 1}-{si + 1}"
                generated = True
            else:
                sku = f"{_slug_token(slug)}-{ts}-{ci}-{si}"
                generated = True

            price = _money(_first_present(color.size_prices.get(size) if size else None, color_price), "price")
            compare = _money(
                _first_present(color.size_compare_at_prices.get(size) if size else None, color_compare),
                "compare at price",
            )
            rows.append(
                VariantRow(
                    color=(color.color_value or "").strip(),
                    size=size,
                    sku=sku,
                    price=price,
                    compare_at_price=compare,
                    stock=stocks[ci][si],
                    image_url=image_url,
                    is_featured=(featured == ci),
                    sku_generated=generated,
                )
            )

    _ensure_unique_skus(rows, rng)

    if not any(r.color for r in rows):
        raise ValidationError("At least one variant must have a color")
    if requires_sizes and not any(r.size for r in rows):
        raise ValidationError("At least one variant must have a size")
    return rows


# --- inverse transform (load for edit) -------------------------------------

Resolver = Tuple[Callable[[Dict[str, Any]], bool], Callable[[Dict[str, Any]], str]]


def _has_field(name: str) -> Callable[[Dict[str, Any]], bool]:
    return lambda v: not is_blank(v.get(name))


def _field(name: str) -> Callable[[Dict[str, Any]], str]:
    return lambda v: str(v.get(name)).strip()


def _has_option(key: str) -> Callable[[Dict[str, Any]], bool]:
    return lambda v: bool(options_for_key(v.get("options"), key))


def _option(key: str) -> Callable[[Dict[str, Any]], str]:
    return lambda v: options_for_key(v.get("options"), key)[0].value.strip()


def _sku_parts(v: Dict[str, Any]) -> List[str]:
    return str(v.get("sku") or "").split("-")


def _sku_color_applies(v: Dict[str, Any]) -> bool:
    parts = _sku_parts(v)
    return len(parts) >= 2 and bool(parts[1].strip()) and not parts[1].strip().isdigit()


def _sku_size_applies(v: Dict[str, Any]) -> bool:
    parts = _sku_parts(v)
    return len(parts) >= 3 and bool(parts[2].strip())


COLOR_RESOLVERS: List[Resolver] = [
    (_has_field("color"), _field("color")),
    (_has_option("color"), _option("color")),
    (_sku_color_applies, lambda v: _sku_parts(v)[1].strip()),
]

SIZE_RESOLVERS: List[Resolver] = [
    (_has_field("size"), _field("size")),
    (_has_option("size"), _option("size")),
    (_sku_size_applies, lambda v: _sku_parts(v)[2].strip()),
]


def resolve_first(chain: Sequence[Resolver], variant: Dict[str, Any]) -> str:
    for predicate, extractor in chain:
        if predicate(variant):
            value = extractor(variant)
            if value:
                return value
    return ""


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _add_stock(current: str, extra: str) -> str:
    if is_blank(current) and is_blank(extra):
        return ""
    return str(_int_or_zero(current) + _int_or_zero(extra))


def _int_or_zero(value: str) -> int:
    try:
        return int(Decimal(str(value).strip()))
    except (ArithmeticError, ValueError):
        return 0


def _color_label(value: str, labels: Optional[Dict[str, str]]) -> str:
    if value == DEFAULT_COLOR:
        return DEFAULT_COLOR_LABEL
    if labels and labels.get(value):
        return labels[value]
    return value[:1].upper() + value[1:].replace("-", " ")


def _merge_into(bucket: ColorData, variant: Dict[str, Any], size: str) -> None:
    stock = _text(variant.get("stock"))
    sku = _text(variant.get("sku")).strip()
    bucket.images = merge_images(bucket.images, smart_split_urls(variant.get("imageUrl")))
    if size:
        if size not in bucket.sizes:
            bucket.sizes.append(size)
            bucket.size_stocks[size] = stock
        else:
            bucket.size_stocks[size] = _add_stock(bucket.size_stocks.get(size, ""), stock)
        if variant.get("price") is not None:
            bucket.size_prices.setdefault(size, _text(variant.get("price")))
        if not is_blank(variant.get("compareAtPrice")):
            bucket.size_compare_at_prices.setdefault(size, _text(variant.get("compareAtPrice")))
        if sku:
            bucket.size_skus.setdefault(size, sku)
        if variant.get("sizeLabel"):
            bucket.size_labels[size] = str(variant["sizeLabel"])
    else:
        bucket.stock = _add_stock(bucket.stock, stock)
        bucket.sku = bucket.sku or sku
    if variant.get("isFeatured"):
        bucket.is_featured = True


def build_color_buckets(
    variants: Sequence[Dict[str, Any]],
    *,
    color_labels: Optional[Dict[str, str]] = None,
) -> List[ColorData]:
    """Group flat variants by color; every merge is additive."""
    buckets: "OrderedDict[str, ColorData]" = OrderedDict()
    for variant in variants or []:
        color = resolve_first(COLOR_RESOLVERS, variant) or DEFAULT_COLOR
        size = resolve_first(SIZE_RESOLVERS, variant)
        bucket = buckets.get(color)
        if bucket is None:
            bucket = ColorData(
                color_value=color,
                color_label=_color_label(color, color_labels),
                price=_text(variant.get("price")),
                compare_at_price=_text(variant.get("compareAtPrice")),
            )
            buckets[color] = bucket
        _merge_into(bucket, variant, size)

    for bucket in buckets.values():
        if bucket.sizes and not is_blank(bucket.stock):
            logger.warning(
                "color %s mixes sized and unsized variants; base stock %s dropped in favour of size stocks",
                bucket.color_value,
                bucket.stock,
            )
            bucket.stock = ""
    return list(buckets.values())


@dataclass
class EditForm:
    product_id: str
    title: str
    slug: str
    description_html: str
    brand_ids: List[str]
    primary_category_id: str
    category_ids: List[str]
    attribute_ids: List[str]
    published: bool
    featured: bool
    image_urls: List[str]
    featured_image_index: int
    main_product_image: str
    variant: VariantForm
    labels: List[Dict[str, Any]]
    product_type: str
    simple: Dict[str, str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "title": self.title,
            "slug": self.slug,
            "descriptionHtml": self.description_html,
            "brandIds": self.brand_ids,
            "primaryCategoryId": self.primary_category_id,
            "categoryIds": self.category_ids,
            "attributeIds": self.attribute_ids,
            "published": self.published,
            "featured": self.featured,
            "imageUrls": self.image_urls,
            "featuredImageIndex": self.featured_image_index,
            "mainProductImage": self.main_product_image,
            "variant": self.variant.to_dict(),
            "labels": self.labels,
            "productType": self.product_type,
            "simple": self.simple,
        }


def _has_structured_attributes(variant: Dict[str, Any]) -> bool:
    attributes = variant.get("attributes")
    if isinstance(attributes, dict) and attributes:
        return True
    return bool(variant.get("options"))


def _positive_text(value: Any) -> str:
    amount = parse_decimal(value) if not is_blank(value) else None
    return str(value) if amount is not None and amount > 0 else ""


def load_edit_form(product: Dict[str, Any], *, color_labels: Optional[Dict[str, str]] = None) -> EditForm:
    """Build the editor state for an admin product detail (``get_product_by_id`` shape)."""
    variants = list(product.get("variants") or [])
    colors = build_color_buckets(variants, color_labels=color_labels)
    first = variants[0] if variants else {}
    variant_form = VariantForm(
        price=_positive_text(first.get("price")),
        compare_at_price=_positive_text(first.get("compareAtPrice")),
        sku=_text(first.get("sku")),
        colors=colors,
    )

    variant_images: List[str] = []
    for color in colors:
        variant_images.extend(color.images)
    for v in variants:
        variant_images.extend(smart_split_urls(v.get("imageUrl")))
    media = list(product.get("media") or [])
    main, _ = separate_main_and_variant_images(media, variant_images)
    image_urls = clean_image_urls(main)
    featured_index = next(
        (i for i, item in enumerate(main) if isinstance(item, dict) and item.get("isFeatured")),
        0,
    )
    if featured_index >= len(image_urls):
        featured_index = 0

    if any(_has_structured_attributes(v) for v in variants):
        product_type = "variable"
        simple = {"price": "", "compareAtPrice": "", "sku": "", "quantity": "0"}
    else:
        product_type = "simple"
        simple = {
            "price": _positive_text(first.get("price")),
            "compareAtPrice": _positive_text(first.get("compareAtPrice")),
            "sku": _text(first.get("sku")),
            "quantity": _text(first.get("stock") or 0),
        }

    brand_id = product.get("brandId")
    return EditForm(
        product_id=str(product.get("id") or ""),
        title=product.get("title") or "",
        slug=product.get("slug") or "",
        description_html=product.get("descriptionHtml") or "",
        brand_ids=[brand_id] if brand_id else [],
        primary_category_id=product.get("primaryCategoryId") or "",
        category_ids=list(product.get("categoryIds") or []),
        attribute_ids=list(product.get("attributeIds") or []),
        published=bool(product.get("published")),
        featured=bool(product.get("featured")),
        image_urls=image_urls,
        featured_image_index=featured_index,
        main_product_image=image_urls[featured_index] if image_urls else "",
        variant=variant_form,
        labels=[
            {
                "id": label.get("id") or "",
                "type": label.get("type") or "text",
                "value": label.get("value") or "",
                "position": label.get("position") or "top-left",
                "color": label.get("color"),
            }
            for label in (product.get("labels") or [])
        ],
        product_type=product_type,
        simple=simple,
    )


# --- pending conversion ----------------------------------------------------


class PendingVariantArena:
    """Variants loaded for edit that still await conversion, keyed by product ID."""

    def __init__(self) -> None:
        self._pending: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def stash(self, product_id: str, variants: Sequence[Dict[str, Any]]) -> None:
        if not variants:
            return
        with self._lock:
            self._pending[product_id] = list(variants)

    def has(self, product_id: str) -> bool:
        with self._lock:
            return product_id in self._pending

    def consume(self, product_id: str) -> List[Dict[str, Any]]:
        """Return and forget the stashed variants."""
        with self._lock:
            return self._pending.pop(product_id, [])


@dataclass
class GeneratedVariant:
    id: str
    selected_value_ids: List[str]
    price: str
    compare_at_price: str
    stock: str
    sku: str
    image: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "selectedValueIds": self.selected_value_ids,
            "price": self.price,
            "compareAtPrice": self.compare_at_price,
            "stock": self.stock,
            "sku": self.sku,
            "image": self.image,
        }


def _value_ids(variant: Dict[str, Any]) -> List[str]:
    ids: List[str] = []
    for opt in resolve_options(variant.get("options")):
        if opt.value_id and opt.value_id not in ids:
            ids.append(opt.value_id)
    attributes = variant.get("attributes")
    if isinstance(attributes, dict):
        for entries in attributes.values():
            for entry in entries or []:
                value_id = entry.get("valueId") if isinstance(entry, dict) else None
                if value_id and value_id not in ids:
                    ids.append(value_id)
    return ids


def convert_to_generated_variants(variants: Sequence[Dict[str, Any]]) -> List[GeneratedVariant]:
    """Rows for the multi-attribute variant table."""
    out = []
    for index, v in enumerate(variants or []):
        images = smart_split_urls(v.get("imageUrl"))
        out.append(
            GeneratedVariant(
                id=str(v.get("id") or f"variant-{index}"),
                selected_value_ids=_value_ids(v),
                price=_text(v.get("price")),
                compare_at_price=_text(v.get("compareAtPrice")),
                stock=_text(v.get("stock")),
                sku=_text(v.get("sku")),
                image=images[0] if images else None,
            )
        )
    return out
