"""Storefront JSON API."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request


api_bp = Blueprint("shop_api", __name__, url_prefix="/api/v1")

SELECTION_PARAMS = {"color", "size", "lang"}


def _components() -> Dict[str, Any]:
    return current_app.extensions["shop_components"]


@api_bp.get("/products")
def list_products():
    args = request.args
    result = _components()["catalog"].list_products(
        search=args.get("search") or None,
        category=args.get("category") or args.get("categories") or None,
        brand=args.get("brand") or None,
        colors=args.get("colors") or None,
        sizes=args.get("sizes") or None,
        min_price=args.get("minPrice"),
        max_price=args.get("maxPrice"),
        sort=args.get("sort") or None,
        page=args.get("page", 1, type=int),
        limit=args.get("limit", 24, type=int),
        lang=args.get("lang") or None,
    )
    return jsonify(result)


@api_bp.get("/products/<slug>")
def get_product(slug: str):
    return jsonify(_components()["catalog"].get_product_by_slug(slug, lang=request.args.get("lang") or None))


@api_bp.get("/products/<slug>/variant")
def select_variant(slug: str):
    """``?color=red&size=M&material=cotton`` -> best variant and per-value availability."""
    args = request.args
    other = {k: v for k, v in args.items() if k not in SELECTION_PARAMS and v}
    result = _components()["catalog"].select_variant(
        slug,
        color=args.get("color") or None,
        size=args.get("size") or None,
        other=other,
        lang=args.get("lang") or None,
    )
    return jsonify(result)
