from datetime import datetime
from decimal import Decimal

import pytest

from shopcore.config import AppConfig
from shopcore.db.session import build_session_factory, init_db
from shopcore.models import (
    Attribute,
    AttributeValue,
    AttributeValueTranslation,
    Brand,
    Category,
    Order,
    OrderItem,
    Payment,
    Product,
    ProductAttribute,
    ProductTranslation,
    ProductVariant,
    ProductVariantOption,
    User,
)
from webshop.app import create_app
from webshop.config import WebConfig


def _value(value_id, attribute, value, label, position, **extra):
    av = AttributeValue(id=value_id, attribute=attribute, value=value, label=label, position=position, **extra)
    av.translations.append(AttributeValueTranslation(id=f"{value_id}-en", locale="en", label=label))
    return av


def _variant(variant_id, sku, price, stock, position, values, image_url=None):
    variant = ProductVariant(
        id=variant_id,
        sku=sku,
        price=Decimal(price),
        stock=stock,
        position=position,
        image_url=image_url,
        published=True,
    )
    for av in values:
        variant.options.append(ProductVariantOption(id=f"{variant_id}-{av.id}", attribute_value=av))
    return variant


def seed(session):
    shirts = Category(id="cat-shirts", title="Shirts", slug="shirts", requires_sizes=True, sort_order=0)
    bags = Category(id="cat-bags", title="Bags", slug="bags", requires_sizes=False, sort_order=1)
    acme = Brand(id="brand-acme", slug="acme", name="Acme")

    color = Attribute(id="attr-color", key="color", name="Color", position=0)
    size = Attribute(id="attr-size", key="size", name="Size", position=1)
    red = _value("val-red", color, "red", "Red", 0)
    blue = _value("val-blue", color, "blue", "Blue", 1, colors=["#0000ff"])
    small = _value("val-s", size, "S", "S", 0)
    medium = _value("val-m", size, "M", "M", 1)

    tee = Product(
        id="prod-tee",
        brand=acme,
        primary_category=shirts,
        categories=[shirts],
        media=["/img/tee-main.jpg"],
        published=True,
        featured=True,
        discount_percent=0,
        created_at=datetime(2026, 1, 1),
        updated_at=datetime(2026, 1, 1),
    )
    tee.translations.append(ProductTranslation(id="tr-tee", locale="en", title="Classic Tee", slug="classic-tee"))
    tee.product_attributes.extend(
        [
            ProductAttribute(id="pa-tee-color", attribute=color, position=0),
            ProductAttribute(id="pa-tee-size", attribute=size, position=1),
        ]
    )
    tee.variants.extend(
        [
            _variant("v-red-s", "TEE-RED-S", "20.00", 5, 0, [red, small], "/img/tee-red.jpg"),
            _variant("v-red-m", "TEE-RED-M", "22.00", 0, 1, [red, medium], "/img/tee-red.jpg"),
            _variant("v-blue-m", "TEE-BLUE-M", "20.00", 3, 2, [blue, medium]),
        ]
    )

    bag = Product(
        id="prod-bag",
        primary_category=bags,
        categories=[bags],
        media=["/img/bag.jpg"],
        published=True,
        discount_percent=Decimal("10"),
        created_at=datetime(2026, 1, 5),
        updated_at=datetime(2026, 1, 5),
    )
    bag.translations.append(ProductTranslation(id="tr-bag", locale="en", title="Canvas Bag", slug="canvas-bag"))
    bag.variants.append(_variant("v-bag", "BAG-1", "50.00", 2, 0, []))

    draft = Product(
        id="prod-draft",
        published=False,
        discount_percent=0,
        media=[],
        created_at=datetime(2026, 1, 3),
        updated_at=datetime(2026, 1, 3),
    )
    draft.translations.append(ProductTranslation(id="tr-draft", locale="en", title="Draft Hat", slug="draft-hat"))
    draft.variants.append(_variant("v-hat", "HAT-1", "15.00", 1, 0, []))

    anna = User(id="user-anna", email="anna@example.com", phone="+37499000000", first_name="Anna", last_name="Petrosyan")

    first = Order(
        id="order-1",
        number="1001",
        user=anna,
        status="pending",
        payment_status="pending",
        fulfillment_status="unfulfilled",
        subtotal=Decimal("42"),
        discount_amount=Decimal("2"),
        shipping_amount=Decimal("5"),
        tax_amount=Decimal("0"),
        total=Decimal("45"),
        currency="AMD",
        created_at=datetime(2026, 1, 1, 10, 0),
    )
    first.items.extend(
        [
            OrderItem(id="item-1", variant_id="v-red-s", product_title="Classic Tee", sku="TEE-RED-S", quantity=1, total=Decimal("20")),
            OrderItem(id="item-2", variant_id="v-red-m", product_title="Classic Tee", sku="TEE-RED-M", quantity=1, total=Decimal("22")),
        ]
    )
    first.payments.append(Payment(id="pay-1", provider="idram", method="card", amount=Decimal("45"), currency="AMD"))

    second = Order(
        id="order-2",
        number="1002",
        customer_email="bob@example.com",
        status="completed",
        payment_status="paid",
        fulfillment_status="fulfilled",
        subtotal=Decimal("100"),
        total=Decimal("100"),
        currency="AMD",
        created_at=datetime(2026, 1, 2, 10, 0),
    )
    second.items.append(
        OrderItem(id="item-3", variant_id="v-bag", product_title="Canvas Bag", sku="BAG-1", quantity=2, total=Decimal("100"))
    )

    session.add_all([shirts, bags, acme, color, size, tee, bag, draft, anna, first, second])


@pytest.fixture
def session_factory(tmp_path):
    factory = build_session_factory(f"sqlite:///{tmp_path / 'shop.db'}")
    init_db(factory.engine)
    with factory() as session:
        seed(session)
    yield factory
    factory.engine.dispose()


@pytest.fixture
def web_config(tmp_path):
    core = AppConfig(
        database_url=f"sqlite:///{tmp_path / 'shop.db'}",
        secret_key="test-secret",
        log_level="WARNING",
        store_base_url="http://localhost:5000",
        currency="AMD",
        count_timeout_seconds=5.0,
    )
    return WebConfig(secret_key="test-secret", host="127.0.0.1", port=5000, debug=False, core=core)


@pytest.fixture
def app(web_config, session_factory):
    application = create_app(web_config, session_factory)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
