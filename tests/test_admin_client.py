import threading

import pytest

from shopcore.services.errors import ConflictError, NotFoundError
from webshop.services import AdminApiClient, bulk_delete_orders, run_bulk


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = "Error"
        self.content = b"" if payload is None and not text else b"x"

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self.calls = []
        self._responses = responses
        self._lock = threading.Lock()

    def request(self, method, url, timeout=None, **kwargs):
        with self._lock:
            self.calls.append((method, url, kwargs))
        return self._responses(method, url)


def test_run_bulk_settles_every_item_and_refreshes_once():
    refreshed = []

    def action(item_id):
        if item_id == "b":
            raise RuntimeError("boom")
        return item_id

    result = run_bulk(["a", "b", "c"], action, refresh=lambda: refreshed.append(True))
    assert result.succeeded == ["a", "c"]
    assert result.failed == {"b": "boom"}
    assert result.message == "2 of 3 succeeded"
    assert not result.ok
    assert refreshed == [True]
    assert result.to_dict()["failed"] == {"b": "boom"}


def test_run_bulk_with_no_ids_still_refreshes():
    refreshed = []
    result = run_bulk([], lambda _id: None, refresh=lambda: refreshed.append(True))
    assert result.ok
    assert result.message == "0 of 0 succeeded"
    assert refreshed == [True]


def test_client_raises_problem_errors():
    def responses(method, url):
        if url.endswith("/orders/missing"):
            return FakeResponse(404, {"title": "Order not found", "status": 404, "detail": "gone"})
        if url.endswith("/orders/locked"):
            return FakeResponse(409, text="<html>conflict</html>")
        return FakeResponse(200, {"success": True})

    session = FakeSession(responses)
    client = AdminApiClient("http://shop.local/", token="t0k", session=session)
    assert session.headers["Authorization"] == "Bearer t0k"
    assert client.delete_order("order-1") == {"success": True}
    assert session.calls[0][:2] == ("DELETE", "http://shop.local/api/v1/admin/orders/order-1")

    with pytest.raises(NotFoundError) as err:
        client.delete_order("missing")
    assert err.value.title == "Order not found"
    assert err.value.detail == "gone"

    with pytest.raises(ConflictError):
        client.delete_order("locked")


def test_bulk_delete_orders_through_client():
    def responses(method, url):
        if url.endswith("/orders/bad"):
            return FakeResponse(404, {"status": 404, "detail": "Order with id 'bad' does not exist"})
        return FakeResponse(200, {"success": True})

    session = FakeSession(responses)
    refreshed = []
    result = bulk_delete_orders(
        AdminApiClient("http://shop.local", session=session),
        ["o1", "bad", "o2"],
        refresh=lambda: refreshed.append(True),
    )
    assert result.succeeded == ["o1", "o2"]
    assert list(result.failed) == ["bad"]
    assert len(session.calls) == 3
    assert refreshed == [True]
