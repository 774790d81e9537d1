"""Admin product editor: loads editor state and saves it through the update service."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from shopcore.models.category import Category
from shopcore.services.admin_products_read_service import AdminProductsReadService
from shopcore.services.admin_products_update_service import AdminProductsUpdateService
from shopcore.services.attribute_values import find_attribute
from shopcore.services.errors import ValidationError
from shopcore.services.variant_matrix import (
    PendingVariantArena,
    VariantForm,
    build_variant_rows,
    convert_to_generated_variants,
    load_edit_form,
)
from shopcore.utils.validators import is_blank, parse_decimal, parse_stock


PASSTHROUGH_FIELDS = (
    "title",
    "slug",
    "descriptionHtml",
    "primaryCategoryId",
    "categoryIds",
    "attributeIds",
    "published",
    "featured",
    "labels",
    "locale",
)


class ProductEditorService:
    def __init__(
        self,
        session_factory,
        products_read: AdminProductsReadService,
        products_update: AdminProductsUpdateService,
        pending: PendingVariantArena,
        locale: str = "en",
    ):
        self._session_factory = session_factory
        self._read = products_read
        self._update = products_update
        self._pending = pending
        self._locale = locale

    def color_labels(self, locale: Optional[str] = None) -> Dict[str, str]:
        with self._session_factory() as session:
            attribute = find_attribute(session, "color")
            if attribute is None:
                return {}
            return {v.value: v.label_for(locale or self._locale) for v in attribute.values}

    def load(self, product_id: str) -> Dict[str, Any]:
        """Editor state for a product; variable products keep their raw variants pending conversion."""
        detail = self._read.get_product_by_id(product_id)
        form = load_edit_form(detail, color_labels=self.color_labels())
        if form.product_type == "variable":
            self._pending.stash(product_id, detail["variants"])
        state = form.to_dict()
        state["requiresSizes"] = bool(detail.get("requiresSizes"))
        state["hasPendingVariants"] = self._pending.has(product_id)
        return state

    def consume_generated_variants(self, product_id: str) -> List[Dict[str, Any]]:
        return [g.to_dict() for g in convert_to_generated_variants(self._pending.consume(product_id))]

    def _requires_sizes(self, product_id: Optional[str], payload: Dict[str, Any]) -> bool:
        category_id = payload.get("primaryCategoryId")
        if not category_id and product_id:
            category_id = self._read.get_product_by_id(product_id).get("primaryCategoryId")
        if not category_id:
            return False
        with self._session_factory() as session:
            category = session.get(Category, category_id)
            return bool(category and category.requires_sizes)

    @staticmethod
    def _simple_variant(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        simple = payload.get("simple") or {}
        try:
            price = parse_decimal(simple.get("price"))
        except ValueError:
            price = None
        if price is None or price <= 0:
            raise ValidationError("Price must be greater than 0")
        try:
            stock = parse_stock(simple.get("quantity"))
        except ValueError:
            raise ValidationError("Quantity must be a whole number >= 0")
        return [
            {
                "sku": (simple.get("sku") or "").strip() or None,
                "price": str(price),
                "compareAtPrice": simple.get("compareAtPrice") or None,
                "stock": stock or 0,
                "isFeatured": True,
            }
        ]

    def save_editor_form(
        self,
        product_id: Optional[str],
        payload: Dict[str, Any],
        requires_sizes: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Validate and flatten the editor state, then create or update the product."""
        payload = payload or {}
        if requires_sizes is None:
            requires_sizes = self._requires_sizes(product_id, payload)

        if payload.get("productType") == "simple":
            variants = self._simple_variant(payload)
        else:
            form = VariantForm.from_dict(payload.get("variant") or {})
            rows = build_variant_rows(form, slug=payload.get("slug") or "", requires_sizes=requires_sizes)
            variants = [row.to_payload() for row in rows]

        data: Dict[str, Any] = {k: payload[k] for k in PASSTHROUGH_FIELDS if k in payload}
        if "brandIds" in payload:
            brand_ids = [b for b in (payload.get("brandIds") or []) if not is_blank(b)]
            data["brandId"] = brand_ids[0] if brand_ids else None
        if "imageUrls" in payload:
            featured_index = int(payload.get("featuredImageIndex") or 0)
            data["media"] = [
                {"url": url, "isFeatured": i == featured_index}
                for i, url in enumerate(payload.get("imageUrls") or [])
            ]
        data["variants"] = variants

        if product_id:
            return self._update.update_product(product_id, data)
        return self._update.create_product(data)
