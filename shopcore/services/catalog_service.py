from typing import Any, Dict, List, Optional, Tuple
import time
from sqlalchemy import func, or_
from sqlalchemy.orm import joinedload, selectinload
from ..db.session import get_session
from ..models.attribute import Attribute, AttributeValue
from ..models.brand import Brand
from ..models.category import Category
from ..models.product import Product, ProductAttribute, ProductTranslation
from ..models.variant import ProductVariant, ProductVariantOption
from ..utils.pagination import normalize_paging, paginated, parse_sort
from ..utils.dto import first_media_url, iso, money, to_variant_dto
from ..utils.validators import parse_decimal, split_filter_list
from .cache import CacheInvalidator
from .discount_service import DiscountSettingsService, apply_discount, resolve_discount
from .errors import NotFoundError, ValidationError
from .variant_matching import build_attribute_groups, find_variant_by_all_attributes, variant_options


class CatalogService:
    """Storefront catalog: listing with filters, product detail and variant selection.

    Responsibilities:
    - List/search published products with category, brand, color, size and price filters
    - Resolve the applicable discount per product
    - Product detail by slug and attribute-aware variant selection
    - Drop cached results when the admin side invalidates products
    """

    _cache_ttl_seconds: int = 60

    def __init__(
        self,
        session_factory=get_session,
        discounts: Optional[DiscountSettingsService] = None,
        invalidator: Optional[CacheInvalidator] = None,
        default_locale: str = "en",
    ):
        self._session_factory = session_factory
        self._discounts = discounts or DiscountSettingsService(session_factory)
        self._default_locale = default_locale
        # naive in-process cache: key -> (ts, result)
        self._cache: Dict[Tuple, Tuple[float, Any]] = {}
        if invalidator is not None:
            invalidator.add_listener(self._on_invalidate)

    def _on_invalidate(self, kind: str, target: str) -> None:
        self.invalidate_cache_for_product()

    def _cached(self, key: Tuple):
        cached = self._cache.get(key)
        if cached and time.time() - cached[0] <= self._cache_ttl_seconds:
            return cached[1]
        return None

    def _base_query(self, session):
        return (
            session.query(Product)
            .filter(Product.published.is_(True), Product.deleted_at.is_(None))
            .options(
                selectinload(Product.translations),
                selectinload(Product.categories),
                selectinload(Product.labels),
                joinedload(Product.brand),
                selectinload(Product.variants)
                .selectinload(ProductVariant.options)
                .joinedload(ProductVariantOption.attribute_value)
                .options(joinedload(AttributeValue.attribute), selectinload(AttributeValue.translations)),
            )
        )

    def list_products(
        self,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        colors: Optional[str] = None,
        sizes: Optional[str] = None,
        min_price=None,
        max_price=None,
        sort: Optional[str] = None,
        page: int = 1,
        limit: int = 24,
        lang: Optional[str] = None,
    ) -> Dict:
        """Return dict: { data: [ProductCard], meta: {total, page, limit, totalPages} }"""
        p, ps = normalize_paging(page, limit)
        locale = lang or self._default_locale
        try:
            low, high = parse_decimal(min_price), parse_decimal(max_price)
        except ValueError as exc:
            raise ValidationError(str(exc))
        cache_key = ("list", search or "", category or "", brand or "", colors or "", sizes or "",
                     str(low), str(high), sort or "", p, ps, locale)
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        settings = self._discounts.get_settings()
        with self._session_factory() as session:
            q = self._base_query(session)
            if search and search.strip():
                like = f"%{search.strip().lower()}%"
                q = q.filter(
                    or_(
                        Product.translations.any(func.lower(ProductTranslation.title).like(like)),
                        Product.variants.any(func.lower(ProductVariant.sku).like(like)),
                    )
                )
            category_keys = split_filter_list(category)
            if category_keys:
                matches = or_(Category.slug.in_(category_keys), Category.id.in_(category_keys))
                q = q.filter(
                    or_(
                        Product.primary_category.has(matches),
                        Product.categories.any(matches),
                    )
                )
            brand_keys = split_filter_list(brand)
            if brand_keys:
                q = q.filter(Product.brand.has(or_(Brand.id.in_(brand_keys), Brand.slug.in_(brand_keys))))
            products = q.all()
            cards = [self._card(prod, locale, settings) for prod in products]

        wanted_colors = set(split_filter_list(colors, lower=True))
        wanted_sizes = set(split_filter_list(sizes, lower=True))
        if wanted_colors:
            cards = [c for c in cards if wanted_colors & set(c["colors"])]
        if wanted_sizes:
            cards = [c for c in cards if wanted_sizes & set(c["sizes"])]
        if low is not None:
            cards = [c for c in cards if c["price"] >= float(low)]
        if high is not None:
            cards = [c for c in cards if c["price"] <= float(high)]

        cards = self._sorted(cards, sort)
        total = len(cards)
        result = paginated(cards[(p - 1) * ps:p * ps], total=total, page=p, limit=ps)
        self._cache[cache_key] = (time.time(), result)
        return result

    @staticmethod
    def _sorted(cards: List[Dict], sort: Optional[str]) -> List[Dict]:
        field, direction = parse_sort(sort, default_direction="desc")
        if field == "price":
            # plain "price" means cheapest first
            descending = sort in ("price-desc",)
            return sorted(cards, key=lambda c: c["price"], reverse=descending)
        if field == "title":
            return sorted(cards, key=lambda c: c["title"].lower(), reverse=(sort == "title-desc"))
        return sorted(cards, key=lambda c: c["createdAt"] or "", reverse=(direction == "desc"))

    @staticmethod
    def _option_values(product: Product, key: str, locale: str) -> List[str]:
        values: List[str] = []
        for v in product.variants:
            if not v.published:
                continue
            for raw in v.options:
                av = raw.attribute_value
                opt_key = (av.attribute.key if av is not None and av.attribute is not None else raw.attribute_key) or ""
                opt_key = "color" if opt_key.lower() in ("color", "colour") else opt_key.lower()
                if opt_key != key:
                    continue
                for candidate in ((av.value if av else raw.value), (av.label_for(locale) if av else None)):
                    if candidate and candidate.strip().lower() not in values:
                        values.append(candidate.strip().lower())
        return values

    def _card(self, product: Product, locale: str, settings) -> Dict:
        translation = product.translation_for(locale)
        variants = sorted((v for v in product.variants if v.published), key=lambda v: v.price)
        cheapest = variants[0] if variants else None
        original = money(cheapest.price) if cheapest else 0.0
        percent = resolve_discount(product.discount_percent, product.primary_category_id, product.brand_id, settings)
        compare = money(cheapest.compare_at_price) if cheapest and cheapest.compare_at_price is not None else None
        return {
            "id": product.id,
            "slug": translation.slug if translation else "",
            "title": translation.title if translation else "",
            "brand": {"id": product.brand.id, "name": product.brand.name} if product.brand else None,
            "categories": [{"id": c.id, "slug": c.slug, "title": c.title} for c in product.categories],
            "price": apply_discount(original, percent),
            "originalPrice": original if percent > 0 else compare,
            "compareAtPrice": compare,
            "discountPercent": percent if percent > 0 else None,
            "image": first_media_url(product.media),
            "inStock": any((v.stock or 0) > 0 for v in variants),
            "labels": [label.to_dict() for label in product.labels],
            "colors": self._option_values(product, "color", locale),
            "sizes": self._option_values(product, "size", locale),
            "createdAt": iso(product.created_at),
        }

    def get_product_by_slug(self, slug: str, *, lang: Optional[str] = None) -> Dict:
        locale = lang or self._default_locale
        cache_key = ("detail", slug, locale)
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        settings = self._discounts.get_settings()
        with self._session_factory() as session:
            product = (
                self._base_query(session)
                .options(
                    selectinload(Product.product_attributes)
                    .joinedload(ProductAttribute.attribute)
                    .selectinload(Attribute.values)
                    .selectinload(AttributeValue.translations)
                )
                .filter(Product.translations.any(ProductTranslation.slug == slug))
                .first()
            )
            if product is None:
                raise NotFoundError(f"Product with slug '{slug}' does not exist", title="Product not found")
            result = self._detail(product, locale, settings)
        self._cache[cache_key] = (time.time(), result)
        return result

    def _detail(self, product: Product, locale: str, settings) -> Dict:
        translation = product.translation_for(locale)
        percent = resolve_discount(product.discount_percent, product.primary_category_id, product.brand_id, settings)
        variants = []
        for v in product.variants:
            if not v.published:
                continue
            dto = to_variant_dto(v, locale)
            dto["originalPrice"] = dto["price"]
            dto["price"] = apply_discount(dto["price"], percent)
            variants.append(dto)
        links = sorted(product.product_attributes, key=lambda pa: pa.position or 0)
        return {
            "id": product.id,
            "slug": translation.slug if translation else "",
            "title": translation.title if translation else "",
            "subtitle": translation.subtitle if translation else None,
            "descriptionHtml": translation.description_html if translation else None,
            "media": list(product.media or []),
            "brand": {"id": product.brand.id, "name": product.brand.name} if product.brand else None,
            "categories": [{"id": c.id, "slug": c.slug, "title": c.title} for c in product.categories],
            "labels": [label.to_dict() for label in product.labels],
            "discountPercent": percent if percent > 0 else None,
            "productAttributes": [
                {
                    "attributeId": pa.attribute_id,
                    "attribute": {
                        "id": pa.attribute.id,
                        "key": pa.attribute.key,
                        "name": pa.attribute.name_for(locale),
                        "values": [val.to_dict(locale) for val in pa.attribute.values],
                    },
                }
                for pa in links
                if pa.attribute is not None
            ],
            "variants": variants,
        }

    def select_variant(
        self,
        slug: str,
        *,
        color: Optional[str] = None,
        size: Optional[str] = None,
        other: Optional[Dict[str, str]] = None,
        lang: Optional[str] = None,
    ) -> Dict:
        """Best variant for the current selection plus per-value availability."""
        product = self.get_product_by_slug(slug, lang=lang)
        variant = find_variant_by_all_attributes(product["variants"], color, size, other)
        groups = build_attribute_groups(
            product,
            selected_color=color,
            selected_size=size,
            selected_values=other,
        )
        return {
            "variant": variant,
            "selectedOptions": [o.to_dict() for o in variant_options(variant)] if variant else [],
            "attributeGroups": {key: [gv.to_dict() for gv in values] for key, values in groups.items()},
        }

    def invalidate_cache_for_product(self, product_id: Optional[str] = None) -> None:
        """Invalidate query caches. For simplicity, clear all cache or by product if needed."""
        self._cache.clear()
