import time

import pytest

from shopcore.models import AttributeValue, Product, ProductVariant
from shopcore.services.admin_products_read_service import AdminProductsReadService, attributes_from_options
from shopcore.services.admin_products_update_service import AdminProductsUpdateService, slugify
from shopcore.services.cache import CacheInvalidator
from shopcore.services.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def reader(session_factory):
    return AdminProductsReadService(session_factory, count_timeout=5.0)


@pytest.fixture
def invalidator():
    return CacheInvalidator()


@pytest.fixture
def writer(session_factory, invalidator):
    return AdminProductsUpdateService(session_factory, invalidator)


def _ids(result):
    return [p["id"] for p in result["data"]]


# --- read -------------------------------------------------------------------


def test_list_includes_drafts_and_sorts_newest_first(reader):
    result = reader.get_products()
    assert _ids(result) == ["prod-bag", "prod-draft", "prod-tee"]
    assert result["meta"]["total"] == 3


def test_list_filters(reader):
    assert _ids(reader.get_products(search="TEE")) == ["prod-tee"]
    assert _ids(reader.get_products(sku="bag-")) == ["prod-bag"]
    assert _ids(reader.get_products(category="cat-shirts")) == ["prod-tee"]
    assert _ids(reader.get_products(min_price="30")) == ["prod-bag"]
    assert _ids(reader.get_products(max_price="16")) == ["prod-draft"]
    # search and category narrow together
    assert _ids(reader.get_products(search="bag", categories=["cat-shirts"])) == []


def test_list_sorting_by_cheapest_variant(reader):
    assert _ids(reader.get_products(sort="price-asc")) == ["prod-draft", "prod-tee", "prod-bag"]
    assert _ids(reader.get_products(sort="price-desc")) == ["prod-bag", "prod-tee", "prod-draft"]


def test_list_rejects_bad_price(reader):
    with pytest.raises(ValidationError):
        reader.get_products(min_price="cheap")


def test_list_row_reports_cheapest_variant_and_color_stock(reader):
    row = next(r for r in reader.get_products()["data"] if r["id"] == "prod-tee")
    assert row["price"] == 20.0
    assert row["title"] == "Classic Tee"
    assert row["image"] == "/img/tee-main.jpg"
    assert row["colorStocks"] == [{"color": "red", "stock": 5}, {"color": "blue", "stock": 3}]


def test_slow_count_falls_back_to_page_estimate(session_factory):
    reader = AdminProductsReadService(session_factory, count_timeout=0.05)

    def slow_count(filters):
        time.sleep(0.5)
        return 999

    reader._count = slow_count
    result = reader.get_products(limit=2)
    assert len(result["data"]) == 2
    assert result["meta"]["total"] == 2


def test_detail(reader):
    detail = reader.get_product_by_id("prod-tee")
    assert detail["requiresSizes"] is True
    assert detail["attributeIds"] == ["attr-color", "attr-size"]
    assert detail["productAttributes"][0]["attribute"]["key"] == "color"
    variant = detail["variants"][0]
    assert variant["sku"] == "TEE-RED-S"
    assert variant["color"] == "red"
    assert variant["size"] == "S"
    assert variant["stock"] == "5"
    assert variant["compareAtPrice"] == ""
    assert {o["valueId"] for o in variant["options"]} == {"val-red", "val-s"}


def test_detail_of_missing_product(reader):
    with pytest.raises(NotFoundError):
        reader.get_product_by_id("nope")


def test_attributes_from_options_dedupes():
    options = [
        {"key": "color", "value": "red", "valueId": "val-red"},
        {"key": "color", "value": "red", "valueId": "val-red"},
        {"key": "material", "value": "silk"},
        {"key": "material", "value": "silk"},
    ]
    assert attributes_from_options(options) == {
        "color": [{"valueId": "val-red", "value": "red", "attributeKey": "color"}],
        "material": [{"valueId": None, "value": "silk", "attributeKey": "material"}],
    }


# --- update -----------------------------------------------------------------


def _variant_rows(session_factory, product_id):
    with session_factory() as session:
        rows = (
            session.query(ProductVariant)
            .filter(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.position)
            .all()
        )
        return [(v.id, v.sku, v.stock, sorted(o.attribute_value.value for o in v.options if o.attribute_value)) for v in rows]


def test_reconcile_matches_by_id_then_sku_and_drops_the_rest(writer, session_factory, invalidator):
    result = writer.update_product(
        "prod-tee",
        {
            "title": "Classic Tee v2",
            "variants": [
                {"id": "v-red-s", "sku": "TEE-RED-S", "price": "21", "stock": 9, "color": "red", "size": "S"},
                {"sku": " tee-red-m ", "price": "22", "stock": 1, "color": "Red", "size": "M"},
                {"sku": "TEE-GREEN-M", "price": "23", "stock": 4, "color": "green", "size": "M"},
            ],
        },
    )
    assert result["title"] == "Classic Tee v2"
    rows = _variant_rows(session_factory, "prod-tee")
    assert [r[0] for r in rows[:2]] == ["v-red-s", "v-red-m"]
    assert rows[0][2] == 9
    assert rows[1][1] == "tee-red-m"
    assert rows[2][3] == ["M", "green"]
    assert "v-blue-m" not in [r[0] for r in rows]

    with session_factory() as session:
        green = session.query(AttributeValue).filter(AttributeValue.value == "green").one()
        assert green.attribute_id == "attr-color"
        assert green.translations[0].label == "green"

    targets = [h["target"] for h in invalidator.history]
    assert "/products/classic-tee" in targets
    assert "product-prod-tee" in targets


def test_reused_sku_of_removed_variant_keeps_its_row(writer, session_factory):
    writer.update_product("prod-tee", {"variants": [{"sku": "TEE-BLUE-M", "price": "20", "stock": 2, "color": "blue"}]})
    rows = _variant_rows(session_factory, "prod-tee")
    assert [r[0] for r in rows] == ["v-blue-m"]
    assert rows[0][3] == ["blue"]


def test_sku_of_another_product_is_a_conflict(writer, session_factory):
    with pytest.raises(ConflictError) as err:
        writer.update_product("prod-tee", {"title": "Changed", "variants": [{"sku": "bag-1", "price": "5", "stock": 1}]})
    assert err.value.title == "Duplicate SKU"
    with session_factory() as session:
        assert session.get(Product, "prod-tee").translation_for("en").title == "Classic Tee"
    assert len(_variant_rows(session_factory, "prod-tee")) == 3


def test_same_target_twice_is_rejected(writer):
    payload = {"variants": [{"sku": "TEE-RED-S", "price": "1"}, {"id": "v-red-s", "sku": "", "price": "1"}]}
    with pytest.raises(ValidationError):
        writer.update_product("prod-tee", payload)


@pytest.mark.parametrize(
    "variant",
    [
        {"sku": "X-1", "price": "abc"},
        {"sku": "X-1", "price": "-1"},
        {"sku": "X-1"},
        {"sku": "X-1", "price": "1", "stock": "2.5"},
        {"sku": "X-1", "price": "1", "options": [{"valueId": "missing"}]},
    ],
)
def test_invalid_variant_payloads(writer, variant):
    with pytest.raises(ValidationError):
        writer.update_product("prod-tee", {"variants": [variant]})


def test_unknown_attribute_key_is_stored_as_literal(writer, reader):
    writer.update_product(
        "prod-bag",
        {"variants": [{"sku": "BAG-1", "price": "50", "stock": 2, "options": [{"attributeKey": "material", "value": "canvas"}]}]},
    )
    variant = reader.get_product_by_id("prod-bag")["variants"][0]
    assert variant["attributes"] == {"material": [{"valueId": None, "value": "canvas", "attributeKey": "material"}]}
    assert variant["options"][0]["value"] == "canvas"


def test_variant_images_backfill_non_color_values_only(writer, session_factory):
    writer.update_product(
        "prod-tee",
        {
            "variants": [
                {"id": "v-red-s", "sku": "TEE-RED-S", "price": "20", "stock": 5,
                 "imageUrl": "img/red-small.jpg", "options": [{"valueId": "val-red"}, {"valueId": "val-s"}]},
            ]
        },
    )
    with session_factory() as session:
        assert session.get(AttributeValue, "val-s").image_url == "/img/red-small.jpg"
        assert session.get(AttributeValue, "val-red").image_url is None
        variant = session.get(ProductVariant, "v-red-s")
        assert variant.image_url == "/img/red-small.jpg"
        assert variant.attributes["size"] == [{"valueId": "val-s", "value": "S", "attributeKey": "size"}]


def test_media_labels_and_attribute_links(writer, reader):
    writer.update_product(
        "prod-tee",
        {
            "media": [{"url": "a.jpg"}, {"url": "/b.jpg", "isFeatured": True}, "/img/tee-red.jpg"],
            "labels": [{"value": "Sale", "color": "#f00"}, {"value": ""}],
            "attributeIds": ["attr-size", "attr-size", "attr-color"],
            "published": True,
            "discountPercent": "15",
        },
    )
    detail = reader.get_product_by_id("prod-tee")
    assert detail["media"] == ["/b.jpg", "/a.jpg"]
    assert [(l["value"], l["position"]) for l in detail["labels"]] == [("Sale", "top-left")]
    assert detail["attributeIds"] == ["attr-size", "attr-color"]
    assert detail["discountPercent"] == 15.0
    assert len(detail["variants"]) == 3


def test_base_field_validation(writer):
    with pytest.raises(ValidationError):
        writer.update_product("prod-tee", {"categoryIds": ["cat-missing"]})
    with pytest.raises(ValidationError):
        writer.update_product("prod-tee", {"discountPercent": 120})
    with pytest.raises(NotFoundError):
        writer.update_product("nope", {"title": "x"})


@pytest.mark.parametrize("field", ["brandId", "primaryCategoryId"])
def test_unknown_reference_ids_are_validation_errors(writer, reader, field):
    with pytest.raises(ValidationError) as err:
        writer.update_product("prod-tee", {field: "missing-id"})
    assert "missing-id" in err.value.detail
    with pytest.raises(ValidationError):
        writer.create_product({"title": "Orphan", field: "missing-id"})
    assert reader.get_product_by_id("prod-tee")["brandId"] == "brand-acme"


def test_known_brand_and_primary_category_are_stored(writer, reader):
    writer.update_product("prod-bag", {"brandId": "brand-acme", "primaryCategoryId": "cat-bags"})
    detail = reader.get_product_by_id("prod-bag")
    assert detail["brandId"] == "brand-acme"
    assert detail["primaryCategoryId"] == "cat-bags"


def test_create_generates_slug(writer, reader):
    created = writer.create_product(
        {"title": "New Thing!", "categoryIds": ["cat-bags"], "variants": [{"sku": "NEW-1", "price": "9.99", "stock": 3}]}
    )
    assert created["slug"] == "new-thing"
    detail = reader.get_product_by_id(created["id"])
    assert detail["categoryIds"] == ["cat-bags"]
    assert detail["published"] is False
    assert detail["variants"][0]["price"] == "9.99"
    with pytest.raises(ValidationError):
        writer.create_product({"title": "  "})


def test_soft_delete(writer, reader):
    assert writer.delete_product("prod-draft") == {"success": True}
    assert "prod-draft" not in _ids(reader.get_products())
    with pytest.raises(NotFoundError):
        writer.delete_product("prod-draft")


def test_slugify():
    assert slugify("  Summer Tee -- 2026 ") == "summer-tee-2026"
    assert slugify("!!!") == "product"
