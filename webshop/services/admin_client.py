"""HTTP client for the admin API and concurrent bulk actions."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from shopcore.services.errors import ProblemError
from shopcore.services.logging import log_event


logger = logging.getLogger(__name__)


class AdminApiClient:
    """Thin wrapper over ``/api/v1/admin``; non-2xx responses raise ``ProblemError``."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 15, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}/api/v1/admin{path}"
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {"detail": response.text or response.reason}
            if not isinstance(payload, dict):
                payload = {"detail": str(payload)}
            raise ProblemError.from_dict(payload, fallback_status=response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def list_orders(self, **params) -> Dict:
        return self._request("GET", "/orders", params=params)

    def delete_order(self, order_id: str) -> Any:
        return self._request("DELETE", f"/orders/{order_id}")

    def update_order(self, order_id: str, data: Dict) -> Any:
        return self._request("PUT", f"/orders/{order_id}", json=data)

    def list_products(self, **params) -> Dict:
        return self._request("GET", "/products", params=params)

    def delete_product(self, product_id: str) -> Any:
        return self._request("DELETE", f"/products/{product_id}")


@dataclass
class BulkResult:
    total: int
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return f"{len(self.succeeded)} of {self.total} succeeded"

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
            "message": self.message,
        }


def run_bulk(
    ids: Sequence[str],
    action: Callable[[str], Any],
    *,
    refresh: Optional[Callable[[], Any]] = None,
    max_workers: int = 8,
) -> BulkResult:
    """Run ``action`` for every id concurrently and wait for all of them.

    Individual failures are recorded, never raised. ``refresh`` runs once, after everything settled.
    """
    ids = list(ids)
    result = BulkResult(total=len(ids))
    if ids:
        ex = concurrent.futures.ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(ids))))
        try:
            futures = {ex.submit(action, item_id): item_id for item_id in ids}
            outcomes: Dict[str, Optional[str]] = {}
            for fut in concurrent.futures.as_completed(futures):
                item_id = futures[fut]
                try:
                    fut.result()
                    outcomes[item_id] = None
                except Exception as exc:
                    logger.warning("bulk action failed for %s: %s", item_id, exc)
                    outcomes[item_id] = str(exc)
        finally:
            ex.shutdown(wait=True)
        for item_id in ids:
            error = outcomes.get(item_id)
            if error is None:
                result.succeeded.append(item_id)
            else:
                result.failed[item_id] = error

    if refresh is not None:
        refresh()
    log_event("info", "bulk.finished", total=result.total, succeeded=len(result.succeeded), failed=len(result.failed))
    return result


def bulk_delete_orders(client: AdminApiClient, ids: Sequence[str], *, refresh: Optional[Callable[[], Any]] = None) -> BulkResult:
    return run_bulk(ids, client.delete_order, refresh=refresh)


def bulk_delete_products(client: AdminApiClient, ids: Sequence[str], *, refresh: Optional[Callable[[], Any]] = None) -> BulkResult:
    return run_bulk(ids, client.delete_product, refresh=refresh)
