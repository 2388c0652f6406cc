from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from storeops.core.id_utils import new_id
from storeops.models.order import Order, OrderItem
from storeops.models.product import Product
from storeops.schemas.order import OrderCreate
from storeops.services import order_service
from storeops.services.inventory_service import adjust_stock
from storeops.services.order_numbers import next_order_number
from storeops.services.order_service import (
    ensure_transition_allowed,
    fulfill_item,
    pack_item,
    place_order,
    update_order_status,
)

ORDER_DAY = date(2026, 3, 7)


def _add_product(db, *, sku: str, stock: int, price: str = "10.00") -> Product:
    product = Product(
        id=new_id(),
        sku=sku,
        name=f"Product {sku}",
        price=Decimal(price),
        stock=stock,
        physical_inventory=stock,
    )
    db.add(product)
    db.commit()
    return product


def _payload(*lines: tuple[str, int]) -> OrderCreate:
    return OrderCreate.model_validate(
        {
            "order": {
                "customer_name": "Walk In",
                "customer_email": "walkin@example.com",
                "customer_phone": "+1 555 0100",
                "shipping_address": "1 Main St",
            },
            "items": [{"product_id": product_id, "quantity": quantity} for product_id, quantity in lines],
        }
    )


def _add_order_row(db, order_number: str) -> None:
    db.add(
        Order(
            id=new_id(),
            order_number=order_number,
            customer_name="Seed",
            customer_email="seed@example.com",
            customer_phone="0",
            shipping_address="-",
            total=Decimal("0.00"),
        )
    )
    db.commit()


def test_next_order_number_uses_highest_same_day_suffix(test_context):
    _, session_local = test_context
    db = session_local()
    try:
        assert next_order_number(db, today=ORDER_DAY) == "030726-1"

        _add_order_row(db, "030726-1")
        _add_order_row(db, "030726-9")
        _add_order_row(db, "030626-50")
        _add_order_row(db, "030726-legacy")

        assert next_order_number(db, today=ORDER_DAY) == "030726-10"
        assert next_order_number(db, today=date(2026, 3, 8)) == "030826-1"
    finally:
        db.close()


def test_place_order_retries_after_order_number_collision(test_context, monkeypatch):
    _, session_local = test_context
    db = session_local()
    try:
        product = _add_product(db, sku="MUG", stock=5)
        _add_order_row(db, "030726-1")

        numbers = iter(["030726-1", "030726-2"])
        monkeypatch.setattr(order_service, "next_order_number", lambda _db, today=None: next(numbers))

        order = place_order(db, payload=_payload((product.id, 2)), customer=None, today=ORDER_DAY)

        assert order.order_number == "030726-2"
        db.refresh(product)
        assert product.stock == 3
        assert db.execute(select(func.count(OrderItem.id))).scalar_one() == 1
    finally:
        db.close()


def test_place_order_gives_up_after_configured_attempts(test_context, monkeypatch):
    _, session_local = test_context
    db = session_local()
    try:
        product = _add_product(db, sku="MUG", stock=5)
        _add_order_row(db, "030726-1")
        monkeypatch.setattr(order_service, "next_order_number", lambda _db, today=None: "030726-1")

        with pytest.raises(HTTPException) as exc_info:
            place_order(db, payload=_payload((product.id, 2)), customer=None, today=ORDER_DAY)

        assert exc_info.value.status_code == 409
        db.refresh(product)
        assert product.stock == 5
        assert db.execute(select(func.count(Order.id))).scalar_one() == 1
    finally:
        db.close()


def test_place_order_rejects_whole_order_on_any_shortfall(test_context):
    _, session_local = test_context
    db = session_local()
    try:
        sku_a = _add_product(db, sku="A", stock=5)
        sku_b = _add_product(db, sku="B", stock=0)

        with pytest.raises(HTTPException) as exc_info:
            place_order(db, payload=_payload((sku_a.id, 3), (sku_b.id, 1)), customer=None)

        detail = exc_info.value.detail
        assert exc_info.value.status_code == 400
        assert [entry["message"] for entry in detail["details"]] == [
            "Insufficient stock for Product B (B). Available: 0, Requested: 1"
        ]
        db.rollback()
        assert db.get(Product, sku_a.id).stock == 5
        assert db.execute(select(func.count(Order.id))).scalar_one() == 0
    finally:
        db.close()


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        ("pending", "processing", True),
        ("pending", "cancelled", True),
        ("pending", "shipped", False),
        ("processing", "shipped", True),
        ("processing", "cancelled", True),
        ("processing", "pending", False),
        ("shipped", "delivered", True),
        ("shipped", "cancelled", False),
        ("delivered", "delivered", True),
        ("cancelled", "pending", False),
    ],
)
def test_transition_table(current, target, allowed):
    if allowed:
        ensure_transition_allowed(current, target)
        return
    with pytest.raises(HTTPException) as exc_info:
        ensure_transition_allowed(current, target)
    assert exc_info.value.status_code == 400


def test_cancel_after_restock_adjustment_restores_reserved_quantity(test_context):
    _, session_local = test_context
    db = session_local()
    try:
        product = _add_product(db, sku="MUG", stock=6)
        order = place_order(db, payload=_payload((product.id, 4)), customer=None)

        adjust_stock(db, product=product, quantity=10, reason="Delivery", user_id=None)
        db.commit()

        update_order_status(db, order=order, next_status="cancelled")
        db.commit()
        db.refresh(product)

        assert product.stock == 16
        assert product.physical_inventory == 16
    finally:
        db.close()


def test_pack_then_fulfill_same_product_line(test_context):
    _, session_local = test_context
    db = session_local()
    try:
        product = _add_product(db, sku="MUG", stock=6)
        order = place_order(
            db,
            payload=_payload((product.id, 1), (product.id, 2)),
            customer=None,
        )

        packed = pack_item(db, order=order, product_id=product.id, user_id=None)
        assert packed.all_items_done is False
        assert packed.item.line_no == 1

        fulfilled = fulfill_item(db, order=order, product_id=product.id, quantity=1, user_id=None)
        assert fulfilled.item.id != packed.item.id
        assert fulfilled.all_items_done is True
        assert order.status == "shipped"

        with pytest.raises(HTTPException) as exc_info:
            pack_item(db, order=order, product_id=product.id, user_id=None)
        assert exc_info.value.status_code == 400
        db.commit()
        db.refresh(product)

        assert product.stock == 3
        assert product.physical_inventory == 5
    finally:
        db.close()
