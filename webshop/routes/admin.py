"""Admin JSON API."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from shopcore.models.category import Category
from shopcore.services.errors import ValidationError
from shopcore.utils.validators import split_filter_list


admin_bp = Blueprint("shop_admin", __name__, url_prefix="/api/v1/admin")


def _components() -> Dict[str, Any]:
    return current_app.extensions["shop_components"]


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer")


# --- orders ----------------------------------------------------------------


@admin_bp.get("/orders")
def list_orders():
    sort_by = request.args.get("sortBy")
    sort_order = request.args.get("sortOrder")
    sort = request.args.get("sort")
    if sort and not sort_by:
        sort_by, _, sort_order = sort.partition("-")
    result = _components()["orders"].get_orders(
        page=_int_arg("page", 1),
        limit=_int_arg("limit", 20),
        status=request.args.get("status") or None,
        payment_status=request.args.get("paymentStatus") or None,
        search=request.args.get("search") or None,
        sort_by=sort_by or None,
        sort_order=sort_order or None,
    )
    return jsonify(result)


@admin_bp.get("/orders/<order_id>")
def get_order(order_id: str):
    locale = request.args.get("lang") or current_app.config["WEBSHOP_CONFIG"].core.default_locale
    return jsonify(_components()["orders"].get_order_by_id(order_id, locale=locale))


@admin_bp.put("/orders/<order_id>")
def update_order(order_id: str):
    return jsonify(_components()["orders"].update_order(order_id, _json_body()))


@admin_bp.delete("/orders/<order_id>")
def delete_order(order_id: str):
    return jsonify(_components()["orders"].delete_order(order_id))


# --- products --------------------------------------------------------------


@admin_bp.get("/products")
def list_products():
    result = _components()["products_read"].get_products(
        page=_int_arg("page", 1),
        limit=_int_arg("limit", 20),
        search=request.args.get("search") or None,
        category=request.args.get("category") or None,
        categories=split_filter_list(request.args.get("categories")),
        sku=request.args.get("sku") or None,
        min_price=request.args.get("minPrice"),
        max_price=request.args.get("maxPrice"),
        sort=request.args.get("sort") or None,
    )
    return jsonify(result)


@admin_bp.post("/products")
def create_product():
    created = _components()["products_update"].create_product(_json_body())
    return jsonify(_components()["products_read"].get_product_by_id(created["id"])), 201


@admin_bp.get("/products/<product_id>")
def get_product(product_id: str):
    return jsonify(_components()["products_read"].get_product_by_id(product_id))


@admin_bp.put("/products/<product_id>")
def update_product(product_id: str):
    _components()["products_update"].update_product(product_id, _json_body())
    return jsonify(_components()["products_read"].get_product_by_id(product_id))


@admin_bp.delete("/products/<product_id>")
def delete_product(product_id: str):
    return jsonify(_components()["products_update"].delete_product(product_id))


@admin_bp.get("/products/<product_id>/editor")
def load_editor(product_id: str):
    return jsonify(_components()["editor"].load(product_id))


@admin_bp.put("/products/<product_id>/editor")
def save_editor(product_id: str):
    payload = _json_body()
    requires_sizes = payload.pop("requiresSizes", None)
    saved = _components()["editor"].save_editor_form(product_id, payload, requires_sizes=requires_sizes)
    return jsonify(saved)


@admin_bp.post("/products/<product_id>/editor/generated-variants")
def consume_generated_variants(product_id: str):
    return jsonify({"data": _components()["editor"].consume_generated_variants(product_id)})


@admin_bp.put("/products/<product_id>/discount")
def set_product_discount(product_id: str):
    body = _json_body()
    result = _components()["discounts"].set_product_discount(product_id, body.get("discountPercent"))
    _components()["invalidator"].revalidate_product(product_id)
    return jsonify(result)


# --- attributes --------------------------------------------------------------


@admin_bp.get("/attributes")
def list_attributes():
    return jsonify({"data": _components()["attributes"].list_attributes(request.args.get("lang"))})


@admin_bp.post("/attributes")
def create_attribute():
    return jsonify({"data": _components()["attributes"].create_attribute(_json_body())}), 201


@admin_bp.put("/attributes/<attribute_id>")
def update_attribute(attribute_id: str):
    return jsonify({"data": _components()["attributes"].update_attribute_translation(attribute_id, _json_body())})


@admin_bp.delete("/attributes/<attribute_id>")
def delete_attribute(attribute_id: str):
    return jsonify(_components()["attributes"].delete_attribute(attribute_id))


@admin_bp.post("/attributes/<attribute_id>/values")
def add_attribute_value(attribute_id: str):
    return jsonify({"data": _components()["attributes"].add_attribute_value(attribute_id, _json_body())}), 201


@admin_bp.put("/attributes/<attribute_id>/values/<value_id>")
def update_attribute_value(attribute_id: str, value_id: str):
    service = _components()["attributes"]
    return jsonify({"data": service.update_attribute_value(attribute_id, value_id, _json_body())})


@admin_bp.delete("/attributes/<attribute_id>/values/<value_id>")
def delete_attribute_value(attribute_id: str, value_id: str):
    return jsonify(_components()["attributes"].delete_attribute_value(attribute_id, value_id))


# --- settings, categories, stats ---------------------------------------------


@admin_bp.get("/settings/discounts")
def get_discount_settings():
    return jsonify(_components()["discounts"].get_settings().to_dict())


@admin_bp.put("/settings/discounts")
def update_discount_settings():
    body = _json_body()
    service = _components()["discounts"]
    if "globalDiscount" in body:
        service.set_global_discount(body["globalDiscount"])
    if "categoryDiscounts" in body:
        service.set_category_discounts(body["categoryDiscounts"] or {})
    if "brandDiscounts" in body:
        service.set_brand_discounts(body["brandDiscounts"] or {})
    _components()["invalidator"].revalidate_tag("products")
    return jsonify(service.get_settings().to_dict())


@admin_bp.get("/categories")
def list_categories():
    with _components()["session_factory"]() as session:
        rows = (
            session.query(Category)
            .filter(Category.is_active.is_(True))
            .order_by(Category.sort_order, Category.title)
            .all()
        )
        data = [c.to_dict() for c in rows]
    return jsonify({"data": data})


@admin_bp.get("/stats")
def stats():
    return jsonify(_components()["stats"].get_stats())


@admin_bp.get("/stats/recent-orders")
def recent_orders():
    return jsonify({"data": _components()["stats"].get_recent_orders(_int_arg("limit", 5))})


@admin_bp.get("/stats/top-products")
def top_products():
    return jsonify({"data": _components()["stats"].get_top_products(_int_arg("limit", 5))})
