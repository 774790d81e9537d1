import concurrent.futures
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import joinedload, selectinload

from ..db.session import get_session
from ..models.attribute import AttributeValue
from ..models.category import Category
from ..models.product import Product, ProductAttribute, ProductTranslation
from ..models.variant import ProductVariant, ProductVariantOption
from ..utils.dto import first_media_url, iso, money, money_or_none, to_option_dtos
from ..utils.options import COLOR_KEYS, resolve_options
from ..utils.pagination import normalize_paging, paginated, parse_sort
from ..utils.validators import parse_decimal
from .errors import NotFoundError, ValidationError


logger = logging.getLogger(__name__)


def _variant_loader():
    return (
        selectinload(Product.variants)
        .selectinload(ProductVariant.options)
        .joinedload(ProductVariantOption.attribute_value)
        .options(joinedload(AttributeValue.attribute), selectinload(AttributeValue.translations))
    )


def attributes_from_options(options) -> Dict[str, List[Dict]]:
    """Denormalized ``{key: [{valueId, value, attributeKey}]}`` built from variant options."""
    out: Dict[str, List[Dict]] = OrderedDict()
    for opt in resolve_options(options):
        entries = out.setdefault(opt.key, [])
        if opt.value_id and any(e.get("valueId") == opt.value_id for e in entries):
            continue
        if not opt.value_id and any(e.get("value") == opt.value for e in entries):
            continue
        entries.append({"valueId": opt.value_id, "value": opt.value, "attributeKey": opt.key})
    return out


def _values_for(attributes: Dict, keys: Sequence[str]) -> List[str]:
    values: List[str] = []
    for key in keys:
        for item in (attributes or {}).get(key) or []:
            value = item.get("value") if isinstance(item, dict) else item
            if value and value not in values:
                values.append(str(value))
    return values


class AdminProductsReadService:
    """Admin product listing and detail."""

    def __init__(self, session_factory=get_session, count_timeout: float = 10.0, locale: str = "en"):
        self._session_factory = session_factory
        self._count_timeout = count_timeout
        self._locale = locale

    def _filtered(self, session, filters: Dict):
        q = session.query(Product).filter(Product.deleted_at.is_(None))
        search = (filters.get("search") or "").strip()
        if search:
            like = f"%{search.lower()}%"
            q = q.filter(
                or_(
                    Product.translations.any(func.lower(ProductTranslation.title).like(like)),
                    Product.variants.any(func.lower(ProductVariant.sku).like(like)),
                )
            )
        category_ids = list(filters.get("categories") or [])
        if not category_ids and filters.get("category"):
            category_ids = [filters["category"]]
        if category_ids:
            q = q.filter(
                or_(
                    Product.primary_category_id.in_(category_ids),
                    Product.categories.any(Category.id.in_(category_ids)),
                )
            )
        sku = (filters.get("sku") or "").strip()
        if sku:
            q = q.filter(Product.variants.any(func.lower(ProductVariant.sku).like(f"%{sku.lower()}%")))
        min_price, max_price = filters.get("min_price"), filters.get("max_price")
        if min_price is not None or max_price is not None:
            conditions = []
            if min_price is not None:
                conditions.append(ProductVariant.price >= min_price)
            if max_price is not None:
                conditions.append(ProductVariant.price <= max_price)
            q = q.filter(Product.variants.any(and_(*conditions)))
        return q

    def _count(self, filters: Dict) -> int:
        with self._session_factory() as session:
            return self._filtered(session, filters).count()

    def _count_with_timeout(self, filters: Dict, fallback: int) -> int:
        ex = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            fut = ex.submit(self._count, filters)
            return fut.result(timeout=self._count_timeout)
        except concurrent.futures.TimeoutError:
            logger.warning("product count exceeded %ss, using estimated total %s", self._count_timeout, fallback)
            return fallback
        finally:
            ex.shutdown(wait=False, cancel_futures=True)

    def _ordering(self, sort: Optional[str]):
        field, direction = parse_sort(sort)
        if field == "price":
            column = (
                select(func.min(ProductVariant.price))
                .where(ProductVariant.product_id == Product.id)
                .correlate(Product)
                .scalar_subquery()
            )
        elif field == "updatedAt":
            column = Product.updated_at
        else:
            column = Product.created_at
        return column.asc() if direction == "asc" else column.desc()

    def get_products(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        category: Optional[str] = None,
        categories: Optional[List[str]] = None,
        sku: Optional[str] = None,
        min_price=None,
        max_price=None,
        sort: Optional[str] = None,
    ) -> Dict:
        p, ps = normalize_paging(page, limit)
        try:
            filters = {
                "search": search,
                "category": category,
                "categories": categories,
                "sku": sku,
                "min_price": parse_decimal(min_price),
                "max_price": parse_decimal(max_price),
            }
        except ValueError as exc:
            raise ValidationError(str(exc))

        with self._session_factory() as session:
            rows = (
                self._filtered(session, filters)
                .options(selectinload(Product.translations), _variant_loader())
                .order_by(self._ordering(sort), Product.id)
                .offset((p - 1) * ps)
                .limit(ps)
                .all()
            )
            data = [self._list_row(r) for r in rows]

        total = self._count_with_timeout(filters, fallback=len(data) or ps)
        return paginated(data, total=total, page=p, limit=ps)

    def _list_row(self, product: Product) -> Dict:
        translation = product.translation_for(self._locale)
        published = [v for v in product.variants if v.published]
        cheapest = min(published, key=lambda v: v.price) if published else None

        color_stocks: "OrderedDict[str, int]" = OrderedDict()
        for v in product.variants:
            for opt in resolve_options(v.options):
                if opt.key in COLOR_KEYS:
                    color_stocks[opt.value] = color_stocks.get(opt.value, 0) + (v.stock or 0)

        return {
            "id": product.id,
            "slug": translation.slug if translation else "",
            "title": translation.title if translation else "",
            "published": bool(product.published),
            "featured": bool(product.featured),
            "price": money(cheapest.price) if cheapest else 0,
            "stock": cheapest.stock if cheapest else 0,
            "compareAtPrice": money_or_none(cheapest.compare_at_price) if cheapest else None,
            "discountPercent": money(product.discount_percent),
            "colorStocks": [{"color": c, "stock": s} for c, s in color_stocks.items()],
            "image": first_media_url(product.media),
            "createdAt": iso(product.created_at),
        }

    def get_product_by_id(self, product_id: str) -> Dict:
        with self._session_factory() as session:
            product = (
                session.query(Product)
                .options(
                    selectinload(Product.translations),
                    selectinload(Product.labels),
                    selectinload(Product.categories),
                    joinedload(Product.primary_category),
                    selectinload(Product.product_attributes)
                    .joinedload(ProductAttribute.attribute),
                    _variant_loader(),
                )
                .filter(Product.id == product_id)
                .first()
            )
            if product is None:
                raise NotFoundError(f"Product with id '{product_id}' does not exist", title="Product not found")
            return self._detail(product)

    def _detail(self, product: Product) -> Dict:
        translation = product.translation_for(self._locale)
        links = sorted(product.product_attributes, key=lambda pa: pa.position or 0)
        return {
            "id": product.id,
            "title": translation.title if translation else "",
            "slug": translation.slug if translation else "",
            "subtitle": translation.subtitle if translation else None,
            "descriptionHtml": translation.description_html if translation else None,
            "brandId": product.brand_id,
            "primaryCategoryId": product.primary_category_id,
            "categoryIds": product.category_ids,
            "requiresSizes": product.requires_sizes(),
            "attributeIds": [pa.attribute_id for pa in links],
            "productAttributes": [
                {"attributeId": pa.attribute_id, "attribute": pa.attribute.to_dict() if pa.attribute else None}
                for pa in links
            ],
            "published": bool(product.published),
            "featured": bool(product.featured),
            "discountPercent": money(product.discount_percent),
            "media": list(product.media or []),
            "labels": [label.to_dict() for label in product.labels],
            "variants": [self._variant(v) for v in product.variants],
            "createdAt": iso(product.created_at),
            "updatedAt": iso(product.updated_at),
        }

    def _variant(self, variant: ProductVariant) -> Dict:
        attributes = variant.attributes or attributes_from_options(variant.options) or None
        color_values = _values_for(attributes, COLOR_KEYS)
        size_values = _values_for(attributes, ("size",))
        return {
            "id": variant.id,
            "price": str(variant.price),
            "compareAtPrice": str(variant.compare_at_price) if variant.compare_at_price is not None else "",
            "stock": str(variant.stock or 0),
            "sku": variant.sku or "",
            "color": color_values[0] if color_values else "",
            "size": size_values[0] if size_values else "",
            "imageUrl": variant.image_url or "",
            "published": bool(variant.published),
            "isFeatured": bool(variant.is_featured),
            "attributes": attributes,
            "options": to_option_dtos(variant, self._locale),
            "colorValues": color_values,
            "sizeValues": size_values,
        }
