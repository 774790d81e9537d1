import pytest

from shopcore.services.admin_products_update_service import AdminProductsUpdateService
from shopcore.services.cache import CacheInvalidator
from shopcore.services.catalog_service import CatalogService
from shopcore.services.discount_service import DiscountSettingsService
from shopcore.services.errors import NotFoundError, ValidationError


@pytest.fixture
def invalidator():
    return CacheInvalidator()


@pytest.fixture
def discounts(session_factory):
    return DiscountSettingsService(session_factory)


@pytest.fixture
def catalog(session_factory, discounts, invalidator):
    return CatalogService(session_factory, discounts, invalidator)


def _slugs(result):
    return [c["slug"] for c in result["data"]]


def test_only_published_products_are_listed(catalog):
    result = catalog.list_products()
    assert _slugs(result) == ["canvas-bag", "classic-tee"]
    assert result["meta"]["total"] == 2


def test_card_prices_apply_product_discount(catalog):
    cards = {c["slug"]: c for c in catalog.list_products()["data"]}
    bag = cards["canvas-bag"]
    assert bag["price"] == 45.0
    assert bag["originalPrice"] == 50.0
    assert bag["discountPercent"] == 10.0
    tee = cards["classic-tee"]
    assert tee["price"] == 20.0
    assert tee["discountPercent"] is None
    assert tee["colors"] == ["red", "blue"]
    assert tee["sizes"] == ["s", "m"]
    assert tee["inStock"] is True
    assert tee["brand"] == {"id": "brand-acme", "name": "Acme"}


def test_filters(catalog):
    assert _slugs(catalog.list_products(search="canvas")) == ["canvas-bag"]
    assert _slugs(catalog.list_products(category="shirts")) == ["classic-tee"]
    assert _slugs(catalog.list_products(category="cat-bags,undefined")) == ["canvas-bag"]
    assert _slugs(catalog.list_products(brand="acme")) == ["classic-tee"]
    assert _slugs(catalog.list_products(colors="BLUE")) == ["classic-tee"]
    assert _slugs(catalog.list_products(sizes="xl")) == []
    assert _slugs(catalog.list_products(min_price="40")) == ["canvas-bag"]
    assert _slugs(catalog.list_products(max_price="40")) == ["classic-tee"]
    with pytest.raises(ValidationError):
        catalog.list_products(min_price="lots")


def test_sorting(catalog):
    assert _slugs(catalog.list_products(sort="price")) == ["classic-tee", "canvas-bag"]
    assert _slugs(catalog.list_products(sort="price-desc")) == ["canvas-bag", "classic-tee"]
    assert _slugs(catalog.list_products(sort="title")) == ["canvas-bag", "classic-tee"]


def test_category_discount_beats_global(catalog, discounts, invalidator):
    discounts.set_global_discount(20)
    discounts.set_category_discounts({"cat-shirts": 50})
    invalidator.revalidate_tag("products")
    cards = {c["slug"]: c for c in catalog.list_products()["data"]}
    assert cards["classic-tee"]["price"] == 10.0
    assert cards["classic-tee"]["originalPrice"] == 20.0
    # the bag keeps its own discount
    assert cards["canvas-bag"]["price"] == 45.0


def test_admin_writes_invalidate_cached_listing(catalog, session_factory, invalidator):
    assert catalog.list_products()["data"][1]["title"] == "Classic Tee"
    AdminProductsUpdateService(session_factory, invalidator).update_product("prod-tee", {"title": "Renamed Tee"})
    assert catalog.list_products()["data"][1]["title"] == "Renamed Tee"


def test_detail_by_slug(catalog):
    detail = catalog.get_product_by_slug("classic-tee")
    assert [v["sku"] for v in detail["variants"]] == ["TEE-RED-S", "TEE-RED-M", "TEE-BLUE-M"]
    assert {o["label"] for o in detail["variants"][0]["options"]} == {"Red", "S"}
    keys = [pa["attribute"]["key"] for pa in detail["productAttributes"]]
    assert keys == ["color", "size"]
    with pytest.raises(NotFoundError):
        catalog.get_product_by_slug("draft-hat")


def test_detail_variants_carry_discounted_price(catalog):
    variant = catalog.get_product_by_slug("canvas-bag")["variants"][0]
    assert variant["price"] == 45.0
    assert variant["originalPrice"] == 50.0


def test_select_variant(catalog):
    selection = catalog.select_variant("classic-tee", color="red", size="M")
    assert selection["variant"]["id"] == "v-red-m"
    assert {o["key"]: o["value"] for o in selection["selectedOptions"]} == {"color": "red", "size": "M"}
    sizes = {v["value"]: v for v in selection["attributeGroups"]["size"]}
    assert sizes["M"]["available"] is False
    assert sizes["S"]["available"] is True
    colors = {v["value"]: v for v in selection["attributeGroups"]["color"]}
    assert colors["red"]["imageUrl"] == "/img/tee-red.jpg"
    assert colors["blue"]["stock"] == 3


def test_select_variant_without_selection_picks_first_in_stock(catalog):
    assert catalog.select_variant("classic-tee")["variant"]["id"] == "v-red-s"
