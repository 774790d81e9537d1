import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, List

from .logging import log_event


logger = logging.getLogger(__name__)

Listener = Callable[[str, str], None]


class CacheInvalidator:
    """Fan-out for page/tag revalidation after admin writes.

    Listeners receive ``(kind, target)`` where kind is ``"path"`` or ``"tag"``.
    Invalidation never fails the caller: listener errors are logged and dropped.
    """

    def __init__(self, history_size: int = 200):
        self._listeners: List[Listener] = []
        self._history: Deque[Dict] = deque(maxlen=history_size)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def revalidate_path(self, path: str) -> None:
        self._notify("path", path)

    def revalidate_tag(self, tag: str) -> None:
        self._notify("tag", tag)

    def revalidate_product(self, product_id: str, slug: str = "") -> None:
        if slug:
            self.revalidate_path(f"/products/{slug}")
        self.revalidate_path("/")
        self.revalidate_path("/products")
        self.revalidate_tag("products")
        self.revalidate_tag(f"product-{product_id}")

    @property
    def history(self) -> List[Dict]:
        return list(self._history)

    def _notify(self, kind: str, target: str) -> None:
        self._history.append({"kind": kind, "target": target, "at": datetime.utcnow().isoformat() + "Z"})
        for listener in list(self._listeners):
            try:
                listener(kind, target)
            except Exception as exc:
                logger.warning("cache invalidation failed for %s %s: %s", kind, target, exc)
        log_event("info", "cache.revalidated", kind=kind, target=target)
