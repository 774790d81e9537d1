import logging
import re
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db.session import get_session
from ..models.attribute import AttributeValue
from ..models.brand import Brand
from ..models.category import Category
from ..models.product import Product, ProductAttribute, ProductLabel, ProductTranslation
from ..models.variant import ProductVariant, ProductVariantOption
from ..utils.images import (
    clean_image_urls,
    join_image_urls,
    process_image_url,
    separate_main_and_variant_images,
    smart_split_urls,
)
from ..utils.options import COLOR_KEYS
from ..utils.validators import is_blank, parse_decimal, parse_stock
from .attribute_values import find_or_create_attribute_value
from .cache import CacheInvalidator
from .errors import ConflictError, InternalError, NotFoundError, ProblemError, ValidationError
from .logging import log_event


logger = logging.getLogger(__name__)


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").strip().lower()).strip("-")
    return slug or "product"


def _join_variant_images(value) -> Optional[str]:
    return join_image_urls(smart_split_urls(value)) or None


def _has_swatch(colors) -> bool:
    if not colors:
        return False
    if isinstance(colors, str):
        return colors.strip() not in ("", "[]")
    return len(colors) > 0


class AdminProductsUpdateService:
    """Transactional create/update of a product with its translation, labels, attribute links and variants."""

    def __init__(self, session_factory=get_session, invalidator: Optional[CacheInvalidator] = None, locale: str = "en"):
        self._session_factory = session_factory
        self._invalidator = invalidator or CacheInvalidator()
        self._locale = locale

    # --- public API -----------------------------------------------------

    def update_product(self, product_id: str, data: Dict) -> Dict:
        data = data or {}
        try:
            with self._session_factory() as session:
                product = session.get(Product, product_id)
                if product is None:
                    raise NotFoundError(f"Product with id '{product_id}' does not exist", title="Product not found")
                self._apply(session, product, data)
                result = self._summary(product, data.get("locale"))
        except ProblemError:
            raise
        except IntegrityError as exc:
            logger.error("update_product %s violated a constraint: %s", product_id, exc)
            raise ConflictError("Product data conflicts with an existing record")
        except SQLAlchemyError as exc:
            logger.error("update_product %s failed: %s", product_id, exc)
            raise InternalError("An error occurred while updating the product", title="Database Error")

        self._invalidator.revalidate_product(product_id, result["slug"])
        log_event("info", "product.updated", product_id=product_id, variants=len(result["variants"]))
        return result

    def create_product(self, data: Dict) -> Dict:
        data = dict(data or {})
        if is_blank(data.get("title")):
            raise ValidationError("Title is required")
        if is_blank(data.get("slug")):
            data["slug"] = slugify(data["title"])
        try:
            with self._session_factory() as session:
                product = Product(id=str(uuid4()), published=False, featured=False, discount_percent=0, media=[])
                session.add(product)
                self._apply(session, product, data)
                result = self._summary(product, data.get("locale"))
        except ProblemError:
            raise
        except IntegrityError as exc:
            logger.error("create_product violated a constraint: %s", exc)
            raise ConflictError("Product data conflicts with an existing record")
        except SQLAlchemyError as exc:
            logger.error("create_product failed: %s", exc)
            raise InternalError("An error occurred while creating the product", title="Database Error")

        self._invalidator.revalidate_product(result["id"], result["slug"])
        log_event("info", "product.created", product_id=result["id"], variants=len(result["variants"]))
        return result

    def delete_product(self, product_id: str) -> Dict:
        """Soft delete; the row stays for order history."""
        with self._session_factory() as session:
            product = session.get(Product, product_id)
            if product is None or product.deleted_at is not None:
                raise NotFoundError(f"Product with id '{product_id}' does not exist", title="Product not found")
            product.deleted_at = datetime.utcnow()
            translation = product.translation_for(self._locale)
            slug = translation.slug if translation else ""
        self._invalidator.revalidate_product(product_id, slug)
        log_event("info", "product.deleted", product_id=product_id)
        return {"success": True}

    # --- pipeline -------------------------------------------------------

    def _apply(self, session, product: Product, data: Dict) -> None:
        locale = data.get("locale") or self._locale

        if "variants" in data:
            variant_images = []
            for v in data.get("variants") or []:
                variant_images.extend(smart_split_urls(v.get("imageUrl")))
        else:
            variant_images = []
            for v in product.variants:
                variant_images.extend(smart_split_urls(v.image_url))

        self._apply_base_fields(session, product, data, variant_images)
        self._upsert_translation(product, data, locale)
        if "labels" in data:
            self._replace_labels(session, product, data.get("labels") or [])
        if "attributeIds" in data:
            self._replace_attribute_links(session, product, data.get("attributeIds") or [])
        if "variants" in data:
            self._reconcile_variants(session, product, data.get("variants") or [], locale)

        session.flush()
        try:
            with session.begin_nested():
                self._backfill_attribute_images(session, product)
        except Exception as exc:
            logger.warning("attribute value image back-fill skipped for product %s: %s", product.id, exc)

    def _apply_base_fields(self, session, product: Product, data: Dict, variant_images: List[str]) -> None:
        if "brandId" in data:
            brand_id = data.get("brandId") or None
            if brand_id and session.get(Brand, brand_id) is None:
                raise ValidationError(f"Unknown brand id: {brand_id}")
            product.brand_id = brand_id
        if "primaryCategoryId" in data:
            category_id = data.get("primaryCategoryId") or None
            if category_id and session.get(Category, category_id) is None:
                raise ValidationError(f"Unknown primary category id: {category_id}")
            product.primary_category_id = category_id
        if "categoryIds" in data:
            ids = list(OrderedDict.fromkeys(data.get("categoryIds") or []))
            found = session.query(Category).filter(Category.id.in_(ids)).all() if ids else []
            missing = set(ids) - {c.id for c in found}
            if missing:
                raise ValidationError(f"Unknown category id(s): {', '.join(sorted(missing))}")
            product.categories = found
        if "media" in data:
            product.media = self._clean_media(data.get("media") or [], variant_images)
        if "published" in data:
            product.published = bool(data.get("published"))
            if product.published and product.published_at is None:
                product.published_at = datetime.utcnow()
        if "featured" in data:
            product.featured = bool(data.get("featured"))
        if "discountPercent" in data:
            percent = parse_decimal(data.get("discountPercent")) or 0
            if percent < 0 or percent > 100:
                raise ValidationError("discountPercent must be between 0 and 100")
            product.discount_percent = percent

    @staticmethod
    def _clean_media(media: List, variant_images: List[str]) -> List[str]:
        """Main images only, featured first."""
        main, _ = separate_main_and_variant_images(media, variant_images)
        cleaned = clean_image_urls(main)
        featured = next((m.get("url") for m in main if isinstance(m, dict) and m.get("isFeatured")), None)
        featured = process_image_url(featured)
        if featured and featured in cleaned:
            cleaned.remove(featured)
            cleaned.insert(0, featured)
        return cleaned

    @staticmethod
    def _upsert_translation(product: Product, data: Dict, locale: str) -> None:
        touched = any(k in data for k in ("title", "slug", "subtitle", "descriptionHtml"))
        if not touched:
            return
        translation = next((t for t in product.translations if t.locale == locale), None)
        if translation is None:
            translation = ProductTranslation(id=str(uuid4()), locale=locale, title="", slug="")
            product.translations.append(translation)
        if data.get("title"):
            translation.title = data["title"]
        if data.get("slug"):
            translation.slug = data["slug"]
        if "subtitle" in data:
            translation.subtitle = data.get("subtitle") or None
        if "descriptionHtml" in data:
            translation.description_html = data.get("descriptionHtml") or None

    @staticmethod
    def _replace_labels(session, product: Product, labels: List[Dict]) -> None:
        for label in list(product.labels):
            product.labels.remove(label)
        session.flush()
        for raw in labels:
            if is_blank(raw.get("value")):
                continue
            product.labels.append(
                ProductLabel(
                    id=str(uuid4()),
                    type=raw.get("type") or "text",
                    value=str(raw["value"]),
                    position=raw.get("position") or "top-left",
                    color=raw.get("color") or None,
                )
            )

    @staticmethod
    def _replace_attribute_links(session, product: Product, attribute_ids: List[str]) -> None:
        for link in list(product.product_attributes):
            product.product_attributes.remove(link)
        # the unique (product_id, attribute_id) pair must be gone before re-inserting
        session.flush()
        for position, attribute_id in enumerate(OrderedDict.fromkeys(a for a in attribute_ids if a)):
            product.product_attributes.append(
                ProductAttribute(id=str(uuid4()), attribute_id=attribute_id, position=position)
            )

    # --- variants -------------------------------------------------------

    def _build_options(self, session, payload: Dict, locale: str) -> Tuple[List[ProductVariantOption], Optional[Dict]]:
        options: List[ProductVariantOption] = []
        attributes: "OrderedDict[str, List[Dict]]" = OrderedDict()

        def add_reference(av: AttributeValue) -> None:
            key = av.attribute.key if av.attribute is not None else ""
            entries = attributes.setdefault(key, [])
            if any(e["valueId"] == av.id for e in entries):
                return
            options.append(ProductVariantOption(id=str(uuid4()), attribute_value=av))
            entries.append({"valueId": av.id, "value": av.value, "attributeKey": key})

        def add_by_key(key: str, value: str) -> None:
            av = find_or_create_attribute_value(session, key, value, locale)
            if av is not None:
                add_reference(av)
                return
            options.append(ProductVariantOption(id=str(uuid4()), attribute_key=key, value=value))
            attributes.setdefault(key, []).append({"valueId": None, "value": value, "attributeKey": key})

        raw_options = payload.get("options") or []
        if raw_options:
            for raw in raw_options:
                value_id = raw.get("valueId")
                key = raw.get("attributeKey") or raw.get("key")
                value = raw.get("value")
                if value_id:
                    av = session.get(AttributeValue, value_id)
                    if av is None:
                        raise ValidationError(f"Attribute value '{value_id}' does not exist")
                    add_reference(av)
                elif not is_blank(key) and not is_blank(value):
                    add_by_key(str(key).strip(), str(value).strip())
        else:
            for key in ("color", "size"):
                if not is_blank(payload.get(key)):
                    add_by_key(key, str(payload[key]).strip())
        return options, (dict(attributes) or None)

    @staticmethod
    def _numbers(payload: Dict):
        try:
            price = parse_decimal(payload.get("price"))
            compare = parse_decimal(payload.get("compareAtPrice"))
        except ValueError:
            raise ValidationError(f"Invalid price value: {payload.get('price')!r}")
        if price is None or price < 0:
            raise ValidationError(f"Invalid price value: {payload.get('price')!r}")
        try:
            stock = parse_stock(payload.get("stock"))
        except ValueError:
            raise ValidationError(f"Invalid stock value: {payload.get('stock')!r}")
        return price, compare, stock or 0

    def _reconcile_variants(self, session, product: Product, incoming: List[Dict], locale: str) -> None:
        """Match incoming rows by ID, then by trimmed lower-case SKU; create the rest, drop the unmatched."""
        existing = list(product.variants)
        by_id = {v.id: v for v in existing}
        by_sku = {v.sku.strip().lower(): v for v in existing if v.sku}

        plan: List[Tuple[Dict, Optional[ProductVariant]]] = []
        claimed = set()
        for payload in incoming:
            sku = (payload.get("sku") or "").strip() or None
            target = by_id.get(payload.get("id")) if payload.get("id") else None
            if target is None and sku:
                target = by_sku.get(sku.lower())
                if target is None:
                    clash = (
                        session.query(ProductVariant)
                        .filter(func.lower(ProductVariant.sku) == sku.lower(), ProductVariant.product_id != product.id)
                        .first()
                    )
                    if clash is not None:
                        raise ConflictError(
                            f'SKU "{sku}" already exists in another product. Please use a unique SKU.',
                            title="Duplicate SKU",
                        )
            if target is not None:
                if target.id in claimed:
                    raise ValidationError(f'SKU "{sku or target.sku}" is used by more than one variant')
                claimed.add(target.id)
            plan.append((payload, target))

        removed = 0
        for variant in existing:
            if variant.id not in claimed:
                product.variants.remove(variant)
                removed += 1
        # freed SKUs must be gone before surviving rows take them over
        session.flush()

        created = updated = 0
        for position, (payload, target) in enumerate(plan):
            price, compare, stock = self._numbers(payload)
            options, attributes = self._build_options(session, payload, locale)
            if target is None:
                target = ProductVariant(id=str(uuid4()))
                product.variants.append(target)
                created += 1
            else:
                for opt in list(target.options):
                    target.options.remove(opt)
                updated += 1

            target.sku = (payload.get("sku") or "").strip() or None
            target.price = price
            target.compare_at_price = compare
            target.stock = stock
            target.image_url = _join_variant_images(payload.get("imageUrl"))
            target.published = payload.get("published") is not False
            target.is_featured = bool(payload.get("isFeatured"))
            target.position = position
            target.attributes = attributes
            target.options.extend(options)

        log_event(
            "info",
            "variants.reconciled",
            product_id=product.id,
            created=created,
            updated=updated,
            removed=removed,
        )

    @staticmethod
    def _backfill_attribute_images(session, product: Product) -> None:
        """Give attribute values a picture from the first image of a variant that uses them."""
        for variant in product.variants:
            urls = smart_split_urls(variant.image_url)
            first = process_image_url(urls[0]) if urls else None
            if not first:
                continue
            for opt in variant.options:
                av = opt.attribute_value
                if av is None:
                    continue
                no_image = is_blank(av.image_url)
                is_color = av.attribute is not None and (av.attribute.key or "").lower() in COLOR_KEYS
                if (is_color and no_image) or (_has_swatch(av.colors) and no_image):
                    continue
                upgrade = first.startswith("data:image/") and not (av.image_url or "").startswith("data:image/")
                if no_image or upgrade:
                    av.image_url = first
        session.flush()

    def _summary(self, product: Product, locale: Optional[str]) -> Dict:
        translation = product.translation_for(locale or self._locale)
        return {
            "id": product.id,
            "title": translation.title if translation else "",
            "slug": translation.slug if translation else "",
            "published": bool(product.published),
            "featured": bool(product.featured),
            "media": list(product.media or []),
            "variants": [
                {"id": v.id, "sku": v.sku, "stock": v.stock, "price": float(v.price)}
                for v in sorted(product.variants, key=lambda v: v.position or 0)
            ],
        }
