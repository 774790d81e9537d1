"""Request-side helpers for the web application."""

from .admin_client import AdminApiClient, BulkResult, bulk_delete_orders, bulk_delete_products, run_bulk
from .product_editor import ProductEditorService

__all__ = [
    "AdminApiClient",
    "BulkResult",
    "bulk_delete_orders",
    "bulk_delete_products",
    "run_bulk",
    "ProductEditorService",
]
