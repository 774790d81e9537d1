"""Shop admin and storefront Flask application."""

from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from shopcore.db.session import SessionFactory, build_session_factory, init_db
from shopcore.services.admin_attributes_service import AdminAttributesService
from shopcore.services.admin_orders_service import AdminOrdersService
from shopcore.services.admin_products_read_service import AdminProductsReadService
from shopcore.services.admin_products_update_service import AdminProductsUpdateService
from shopcore.services.admin_stats_service import AdminStatsService
from shopcore.services.cache import CacheInvalidator
from shopcore.services.catalog_service import CatalogService
from shopcore.services.discount_service import DiscountSettingsService
from shopcore.services import errors
from shopcore.services.errors import ProblemError, configure_problem_base_url
from shopcore.services.logging import configure_logging
from shopcore.services.variant_matrix import PendingVariantArena

from .config import WebConfig
from .routes import admin, api
from .services import ProductEditorService


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ProblemError)
    def handle_problem(exc: ProblemError):
        return jsonify(exc.to_dict(instance=request.path)), exc.status

    @app.errorhandler(HTTPException)
    def handle_http(exc: HTTPException):
        slug = (exc.name or "error").lower().replace(" ", "-")
        body = {
            "type": f"{errors.PROBLEM_BASE_URL}/{slug}",
            "title": exc.name,
            "status": exc.code,
            "detail": exc.description,
            "instance": request.path,
        }
        return jsonify(body), exc.code


def create_app(config: Optional[WebConfig] = None, session_factory: Optional[SessionFactory] = None) -> Flask:
    config = config or WebConfig.load()
    core = config.core
    configure_logging(core.log_level)
    configure_problem_base_url(core.problem_base_url)

    if session_factory is None:
        session_factory = build_session_factory(core.database_url)
        init_db(session_factory.engine)  # type: ignore[attr-defined]

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["WEBSHOP_CONFIG"] = config
    app.json.sort_keys = False

    invalidator = CacheInvalidator()
    discounts = DiscountSettingsService(session_factory)
    products_read = AdminProductsReadService(
        session_factory,
        count_timeout=core.count_timeout_seconds,
        locale=core.default_locale,
    )
    products_update = AdminProductsUpdateService(session_factory, invalidator, locale=core.default_locale)
    pending_variants = PendingVariantArena()

    components = {
        "session_factory": session_factory,
        "invalidator": invalidator,
        "discounts": discounts,
        "catalog": CatalogService(session_factory, discounts, invalidator, default_locale=core.default_locale),
        "orders": AdminOrdersService(session_factory, default_currency=core.currency),
        "attributes": AdminAttributesService(session_factory, invalidator, locale=core.default_locale),
        "products_read": products_read,
        "products_update": products_update,
        "stats": AdminStatsService(
            session_factory,
            low_stock_threshold=core.low_stock_threshold,
            default_currency=core.currency,
        ),
        "pending_variants": pending_variants,
        "editor": ProductEditorService(session_factory, products_read, products_update, pending_variants),
    }
    app.extensions["shop_components"] = components

    _register_error_handlers(app)
    app.register_blueprint(admin.admin_bp)
    app.register_blueprint(api.api_bp)

    return app


def main() -> None:
    config = WebConfig.load()
    app = create_app(config)
    app.run(host=config.host, port=config.port, debug=config.debug)


if __name__ == "__main__":
    main()
