import pytest

from shopcore.services.admin_stats_service import AdminStatsService
from shopcore.services.cache import CacheInvalidator
from shopcore.services.discount_service import (
    DiscountSettings,
    DiscountSettingsService,
    apply_discount,
    resolve_discount,
    validate_percent,
)
from shopcore.services.errors import NotFoundError, ValidationError


SETTINGS = DiscountSettings(global_discount=5, category_discounts={"c1": 20}, brand_discounts={"b1": 15})


@pytest.mark.parametrize(
    "own,category,brand,expected",
    [
        (30, "c1", "b1", 30.0),
        (0, "c1", "b1", 20.0),
        (0, "c2", "b1", 15.0),
        (0, None, None, 5),
    ],
)
def test_resolve_discount_precedence(own, category, brand, expected):
    assert resolve_discount(own, category, brand, SETTINGS) == expected


def test_apply_discount_rounds_to_cents():
    assert apply_discount(19.99, 15) == 16.99
    assert apply_discount(10, 0) == 10.0
    assert apply_discount(None, 50) == 0.0


@pytest.mark.parametrize("value", [-1, 101, "abc", "NaN"])
def test_validate_percent_rejects(value):
    with pytest.raises(ValidationError):
        validate_percent(value)


def test_validate_percent_blank_is_zero():
    assert validate_percent("") == 0.0
    assert validate_percent("12.5") == 12.5


def test_settings_persist(session_factory):
    service = DiscountSettingsService(session_factory)
    assert service.get_settings() == DiscountSettings()
    service.set_global_discount("7")
    settings = service.set_category_discounts({"cat-shirts": 10, "cat-bags": 0})
    assert settings.global_discount == 7.0
    assert settings.category_discounts == {"cat-shirts": 10.0}
    service.set_global_discount(3)
    assert DiscountSettingsService(session_factory).get_settings().to_dict() == {
        "globalDiscount": 3.0,
        "categoryDiscounts": {"cat-shirts": 10.0},
        "brandDiscounts": {},
    }
    with pytest.raises(ValidationError):
        service.set_brand_discounts({"brand-acme": 200})


def test_product_discount(session_factory):
    service = DiscountSettingsService(session_factory)
    assert service.set_product_discount("prod-tee", 25) == {"id": "prod-tee", "discountPercent": 25.0}
    with pytest.raises(NotFoundError):
        service.set_product_discount("nope", 5)


def test_dashboard_stats(session_factory):
    stats = AdminStatsService(session_factory, low_stock_threshold=3).get_stats()
    assert stats["users"] == {"total": 1}
    assert stats["products"] == {"total": 3, "lowStock": 3}
    assert stats["orders"]["total"] == 2
    assert stats["orders"]["pending"] == 1
    assert stats["revenue"] == {"total": 100.0, "currency": "AMD"}


def test_recent_orders_and_top_products(session_factory):
    service = AdminStatsService(session_factory)
    recent = service.get_recent_orders(limit=1)
    assert [o["number"] for o in recent] == ["1002"]
    assert recent[0]["itemsCount"] == 1
    top = service.get_top_products()
    assert [t["sku"] for t in top] == ["BAG-1", "TEE-RED-M", "TEE-RED-S"]
    assert top[0]["totalQuantity"] == 2
    assert top[0]["title"] == "Canvas Bag"
    assert top[0]["image"] == "/img/bag.jpg"


def test_invalidator_survives_failing_listener():
    invalidator = CacheInvalidator(history_size=3)
    seen = []

    def broken(kind, target):
        raise RuntimeError("down")

    invalidator.add_listener(broken)
    invalidator.add_listener(lambda kind, target: seen.append((kind, target)))
    invalidator.revalidate_product("p1", "tee")
    assert seen == [
        ("path", "/products/tee"),
        ("path", "/"),
        ("path", "/products"),
        ("tag", "products"),
        ("tag", "product-p1"),
    ]
    assert [h["target"] for h in invalidator.history] == ["/products", "products", "product-p1"]

    invalidator.remove_listener(broken)
    invalidator.revalidate_path("/x")
    assert seen[-1] == ("path", "/x")
