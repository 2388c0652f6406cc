from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select

from storeops.core.id_utils import new_id
from storeops.models.inventory import InventoryLog
from storeops.models.notification import Notification
from storeops.models.order import Order
from storeops.services.order_numbers import order_number_prefix


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _bootstrap_admin(client) -> str:
    res = client.post(
        "/auth/register",
        json={
            "email": "admin@example.com",
            "first_name": "Ada",
            "last_name": "Admin",
            "password": "password123",
        },
    )
    assert res.status_code == 201, res.text
    return res.json()["access_token"]


def _create_member(client, admin_token: str, *, email: str, role: str) -> tuple[str, str]:
    res = client.post(
        "/auth/register",
        json={"email": email, "first_name": "Sam", "last_name": "Member", "password": "password123"},
    )
    assert res.status_code == 201, res.text
    user_id = res.json()["user"]["id"]
    client.put(f"/users/{user_id}/status", json={"status": "active"}, headers=_auth_headers(admin_token))
    if role != "customer":
        client.put(f"/users/{user_id}/role", json={"role": role}, headers=_auth_headers(admin_token))
    login = client.post("/auth/login", json={"email": email, "password": "password123"})
    assert login.status_code == 200, login.text
    return user_id, login.json()["access_token"]


def _create_product(client, token: str, *, sku: str, stock: int, price: float = 10.0) -> dict:
    res = client.post(
        "/products",
        json={"sku": sku, "name": f"Product {sku}", "price": price, "stock": stock},
        headers=_auth_headers(token),
    )
    assert res.status_code == 201, res.text
    return res.json()


def _place_order(client, items: list[dict], *, token: str | None = None, email: str = "walkin@example.com"):
    return client.post(
        "/orders",
        json={
            "order": {
                "customer_name": "Walk In",
                "customer_email": email,
                "customer_phone": "+1 555 0100",
                "shipping_address": "1 Main St",
            },
            "items": items,
        },
        headers=_auth_headers(token) if token else None,
    )


def _stock(client, product_id: str) -> tuple[int, int]:
    body = client.get(f"/products/{product_id}").json()
    return body["stock"], body["physical_inventory"]


def test_place_order_reserves_stock_and_snapshots_prices(test_context):
    client, session_local = test_context
    token = _bootstrap_admin(client)
    mug = _create_product(client, token, sku="MUG", stock=10, price=12.5)
    tea = _create_product(client, token, sku="TEA", stock=4, price=3.2)

    res = _place_order(
        client,
        [{"product_id": mug["id"], "quantity": 3}, {"product_id": tea["id"], "quantity": 4}],
    )
    assert res.status_code == 201, res.text
    order = res.json()
    assert order["status"] == "pending"
    assert order["total"] == 50.3
    assert order["customer_id"] is None
    assert sorted(
        (item["product_sku"], item["product_price"], item["subtotal"]) for item in order["items"]
    ) == [("MUG", 12.5, 37.5), ("TEA", 3.2, 12.8)]
    assert order["order_number"].startswith(f"{order_number_prefix(date.today())}-")

    assert _stock(client, mug["id"]) == (7, 10)
    assert _stock(client, tea["id"]) == (0, 4)

    db = session_local()
    try:
        alerts = db.execute(select(Notification).where(Notification.type == "new_order")).scalars().all()
    finally:
        db.close()
    assert len(alerts) == 1
    assert alerts[0].data["order_number"] == order["order_number"]


def test_order_with_any_shortfall_is_rejected_entirely(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    sku_a = _create_product(client, token, sku="A", stock=5)
    sku_b = _create_product(client, token, sku="B", stock=0)

    res = _place_order(
        client,
        [{"product_id": sku_a["id"], "quantity": 3}, {"product_id": sku_b["id"], "quantity": 1}],
    )
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["message"] == "Order cannot be processed due to stock issues"
    assert error["details"] == [
        {
            "field": "items.1.quantity",
            "message": "Insufficient stock for Product B (B). Available: 0, Requested: 1",
            "type": "insufficient_stock",
        }
    ]

    assert _stock(client, sku_a["id"]) == (5, 5)
    orders = client.get("/orders", headers=_auth_headers(token)).json()
    assert orders["pagination"]["total"] == 0


def test_repeated_product_lines_are_summed_for_availability(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    product = _create_product(client, token, sku="MUG", stock=5)

    res = _place_order(
        client,
        [{"product_id": product["id"], "quantity": 3}, {"product_id": product["id"], "quantity": 3}],
    )
    assert res.status_code == 400
    assert "Available: 5, Requested: 6" in res.json()["error"]["details"][0]["message"]
    assert _stock(client, product["id"]) == (5, 5)


def test_unknown_product_and_bad_quantities_are_rejected(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)

    res = _place_order(client, [{"product_id": "missing", "quantity": 1}])
    assert res.status_code == 400
    assert res.json()["error"]["details"][0]["type"] == "product_not_found"

    assert _place_order(client, []).status_code == 422
    product = _create_product(client, token, sku="MUG", stock=5)
    assert _place_order(client, [{"product_id": product["id"], "quantity": 0}]).status_code == 422


def test_same_day_order_numbers_increase_without_gaps(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    product = _create_product(client, token, sku="MUG", stock=10)

    numbers = [
        _place_order(client, [{"product_id": product["id"], "quantity": 1}]).json()["order_number"]
        for _ in range(3)
    ]
    prefix = order_number_prefix(date.today())
    assert numbers == [f"{prefix}-1", f"{prefix}-2", f"{prefix}-3"]


def test_cancel_restores_only_unfulfilled_items(test_context):
    client, session_local = test_context
    token = _bootstrap_admin(client)
    mug = _create_product(client, token, sku="MUG", stock=10)
    tea = _create_product(client, token, sku="TEA", stock=10)
    order = _place_order(
        client,
        [{"product_id": mug["id"], "quantity": 2}, {"product_id": tea["id"], "quantity": 3}],
    ).json()

    fulfilled = client.post(
        f"/orders/{order['id']}/fulfill-item",
        json={"product_id": mug["id"], "quantity": 2},
        headers=_auth_headers(token),
    )
    assert fulfilled.status_code == 200, fulfilled.text

    res = client.put(
        f"/orders/{order['id']}/status",
        json={"status": "cancelled"},
        headers=_auth_headers(token),
    )
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "cancelled"

    assert _stock(client, mug["id"]) == (8, 8)
    assert _stock(client, tea["id"]) == (10, 10)

    db = session_local()
    try:
        restore_logs = db.execute(
            select(InventoryLog).where(
                InventoryLog.order_id == order["id"],
                InventoryLog.reason == f"Order cancellation - Order #{order['order_number']}",
            )
        ).scalars().all()
    finally:
        db.close()
    assert [(log.product_id, log.quantity, log.user_id) for log in restore_logs] == [(tea["id"], 3, None)]


def test_status_transitions_are_enforced(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    product = _create_product(client, token, sku="MUG", stock=10)
    order = _place_order(client, [{"product_id": product["id"], "quantity": 1}]).json()

    def move(status: str):
        return client.put(
            f"/orders/{order['id']}/status",
            json={"status": status},
            headers=_auth_headers(token),
        )

    assert move("delivered").status_code == 400
    assert move("pending").status_code == 200
    assert move("processing").status_code == 200
    assert move("shipped").status_code == 200
    assert move("cancelled").status_code == 400
    assert move("delivered").status_code == 200
    assert move("processing").status_code == 400
    assert move("bogus").status_code == 422

    # Shipping never touched the reserved stock.
    assert _stock(client, product["id"]) == (9, 10)


def test_cancel_twice_does_not_restore_twice(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    product = _create_product(client, token, sku="MUG", stock=10)
    order = _place_order(client, [{"product_id": product["id"], "quantity": 4}]).json()

    for _ in range(2):
        res = client.put(
            f"/orders/{order['id']}/status",
            json={"status": "cancelled"},
            headers=_auth_headers(token),
        )
        assert res.status_code == 200, res.text

    assert _stock(client, product["id"]) == (10, 10)


def test_packing_all_items_moves_order_to_processing(test_context):
    client, session_local = test_context
    token = _bootstrap_admin(client)
    mug = _create_product(client, token, sku="MUG", stock=10)
    tea = _create_product(client, token, sku="TEA", stock=10)
    order = _place_order(
        client,
        [{"product_id": mug["id"], "quantity": 2}, {"product_id": tea["id"], "quantity": 1}],
    ).json()

    first = client.post(
        f"/orders/{order['id']}/pack-item",
        json={"product_id": mug["id"]},
        headers=_auth_headers(token),
    )
    assert first.status_code == 200, first.text
    assert first.json()["all_packed"] is False
    assert first.json()["order_status"] == "pending"

    again = client.post(
        f"/orders/{order['id']}/pack-item",
        json={"product_id": mug["id"]},
        headers=_auth_headers(token),
    )
    assert again.status_code == 400

    last = client.post(
        f"/orders/{order['id']}/pack-item",
        json={"product_id": tea["id"]},
        headers=_auth_headers(token),
    )
    assert last.status_code == 200, last.text
    assert last.json()["all_packed"] is True
    assert last.json()["order_status"] == "processing"

    # Packing leaves both counters alone.
    assert _stock(client, mug["id"]) == (8, 10)

    db = session_local()
    try:
        packing_logs = db.execute(
            select(InventoryLog).where(InventoryLog.type == "packing")
        ).scalars().all()
    finally:
        db.close()
    assert len(packing_logs) == 2
    assert all(log.quantity == 0 for log in packing_logs)


def test_fulfilling_all_items_ships_order_and_deducts_physical(test_context):
    client, session_local = test_context
    token = _bootstrap_admin(client)
    mug = _create_product(client, token, sku="MUG", stock=10)
    tea = _create_product(client, token, sku="TEA", stock=10)
    order = _place_order(
        client,
        [{"product_id": mug["id"], "quantity": 2}, {"product_id": tea["id"], "quantity": 1}],
    ).json()

    first = client.post(
        f"/orders/{order['id']}/fulfill-item",
        json={"product_id": mug["id"], "quantity": 2},
        headers=_auth_headers(token),
    )
    assert first.status_code == 200, first.text
    assert first.json()["all_fulfilled"] is False

    last = client.post(
        f"/orders/{order['id']}/fulfill-item",
        json={"product_id": tea["id"], "quantity": 1},
        headers=_auth_headers(token),
    )
    assert last.status_code == 200, last.text
    assert last.json()["all_fulfilled"] is True
    assert last.json()["order_status"] == "shipped"

    assert _stock(client, mug["id"]) == (8, 8)
    assert _stock(client, tea["id"]) == (9, 9)

    db = session_local()
    try:
        log = db.execute(
            select(InventoryLog).where(
                InventoryLog.type == "fulfillment",
                InventoryLog.product_id == mug["id"],
            )
        ).scalar_one()
    finally:
        db.close()
    assert (log.counter, log.quantity, log.previous_stock, log.new_stock) == ("physical_inventory", -2, 10, 8)

    closed = client.post(
        f"/orders/{order['id']}/fulfill-item",
        json={"product_id": mug["id"], "quantity": 1},
        headers=_auth_headers(token),
    )
    assert closed.status_code == 400


def test_fulfill_item_rejections(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    mug = _create_product(client, token, sku="MUG", stock=5)
    other = _create_product(client, token, sku="OTHER", stock=5)
    order = _place_order(client, [{"product_id": mug["id"], "quantity": 3}]).json()
    url = f"/orders/{order['id']}/fulfill-item"

    too_many = client.post(url, json={"product_id": mug["id"], "quantity": 4}, headers=_auth_headers(token))
    assert too_many.status_code == 400

    not_in_order = client.post(url, json={"product_id": other["id"], "quantity": 1}, headers=_auth_headers(token))
    assert not_in_order.status_code == 400
    assert not_in_order.json()["error"]["message"] == "Product is not part of this order"

    missing_product = client.post(url, json={"product_id": "missing", "quantity": 1}, headers=_auth_headers(token))
    assert missing_product.status_code == 404

    missing_order = client.post(
        "/orders/missing/fulfill-item",
        json={"product_id": mug["id"], "quantity": 1},
        headers=_auth_headers(token),
    )
    assert missing_order.status_code == 404

    # Physical count shrinks behind the order's back.
    client.post(
        f"/products/{mug['id']}/adjust-stock",
        json={"quantity": -2, "reason": "Breakage"},
        headers=_auth_headers(token),
    )
    assert _stock(client, mug["id"]) == (0, 3)
    client.post("/products/sync-physical-inventory", headers=_auth_headers(token))
    assert _stock(client, mug["id"]) == (0, 0)

    short = client.post(url, json={"product_id": mug["id"], "quantity": 3}, headers=_auth_headers(token))
    assert short.status_code == 400
    assert short.json()["error"]["message"] == "Insufficient physical inventory available"


def test_item_actions_require_staff(test_context):
    client, _ = test_context
    admin_token = _bootstrap_admin(client)
    _, customer_token = _create_member(client, admin_token, email="buyer@example.com", role="customer")
    product = _create_product(client, admin_token, sku="MUG", stock=5)
    order = _place_order(client, [{"product_id": product["id"], "quantity": 1}]).json()

    res = client.post(
        f"/orders/{order['id']}/pack-item",
        json={"product_id": product["id"]},
        headers=_auth_headers(customer_token),
    )
    assert res.status_code == 403

    res = client.put(
        f"/orders/{order['id']}/status",
        json={"status": "cancelled"},
        headers=_auth_headers(customer_token),
    )
    assert res.status_code == 403


def test_order_visibility_by_role(test_context):
    client, session_local = test_context
    admin_token = _bootstrap_admin(client)
    customer_id, customer_token = _create_member(client, admin_token, email="buyer@example.com", role="customer")
    _, other_token = _create_member(client, admin_token, email="other@example.com", role="customer")
    staff_id, staff_token = _create_member(client, admin_token, email="picker@example.com", role="staff")
    _, manager_token = _create_member(client, admin_token, email="boss@example.com", role="manager")
    product = _create_product(client, admin_token, sku="MUG", stock=10)

    mine = _place_order(
        client,
        [{"product_id": product["id"], "quantity": 1}],
        token=customer_token,
        email="buyer@example.com",
    ).json()
    assert mine["customer_id"] == customer_id
    anonymous = _place_order(client, [{"product_id": product["id"], "quantity": 1}]).json()

    customer_list = client.get("/orders", headers=_auth_headers(customer_token)).json()
    assert [item["id"] for item in customer_list["items"]] == [mine["id"]]

    assert client.get(f"/orders/{mine['id']}", headers=_auth_headers(customer_token)).status_code == 200
    assert client.get(f"/orders/{mine['id']}", headers=_auth_headers(other_token)).status_code == 403

    assert client.get("/orders", headers=_auth_headers(staff_token)).json()["pagination"]["total"] == 0
    assign = client.put(
        f"/orders/{anonymous['id']}/assign",
        json={"assigned_user_id": staff_id},
        headers=_auth_headers(manager_token),
    )
    assert assign.status_code == 200, assign.text
    assert assign.json()["assigned_user_id"] == staff_id
    staff_list = client.get("/orders", headers=_auth_headers(staff_token)).json()
    assert [item["id"] for item in staff_list["items"]] == [anonymous["id"]]

    assert client.get("/orders", headers=_auth_headers(manager_token)).json()["pagination"]["total"] == 2

    bad_assignee = client.put(
        f"/orders/{anonymous['id']}/assign",
        json={"assigned_user_id": customer_id},
        headers=_auth_headers(manager_token),
    )
    assert bad_assignee.status_code == 400

    staff_assign = client.put(
        f"/orders/{anonymous['id']}/assign",
        json={"assigned_user_id": staff_id},
        headers=_auth_headers(staff_token),
    )
    assert staff_assign.status_code == 403


def test_list_orders_status_filter(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    product = _create_product(client, token, sku="MUG", stock=10)
    ids = [
        _place_order(client, [{"product_id": product["id"], "quantity": 1}]).json()["id"]
        for _ in range(3)
    ]
    client.put(f"/orders/{ids[0]}/status", json={"status": "processing"}, headers=_auth_headers(token))
    client.put(f"/orders/{ids[1]}/status", json={"status": "cancelled"}, headers=_auth_headers(token))

    res = client.get("/orders?status=processing,cancelled", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["status"] == ["processing", "cancelled"]
    assert {item["id"] for item in body["items"]} == {ids[0], ids[1]}

    invalid = client.get("/orders?status=lost", headers=_auth_headers(token))
    assert invalid.status_code == 400


def test_status_change_notifies_customer(test_context):
    client, session_local = test_context
    admin_token = _bootstrap_admin(client)
    customer_id, customer_token = _create_member(client, admin_token, email="buyer@example.com", role="customer")
    product = _create_product(client, admin_token, sku="MUG", stock=10)
    order = _place_order(
        client,
        [{"product_id": product["id"], "quantity": 1}],
        token=customer_token,
        email="buyer@example.com",
    ).json()

    client.put(f"/orders/{order['id']}/status", json={"status": "processing"}, headers=_auth_headers(admin_token))

    feed = client.get("/notifications", headers=_auth_headers(customer_token))
    assert feed.status_code == 200, feed.text
    items = feed.json()["items"]
    assert len(items) == 1
    assert items[0]["type"] == "order_status_update"
    assert items[0]["data"]["status"] == "processing"

    read = client.put(f"/notifications/{items[0]['id']}/read", headers=_auth_headers(customer_token))
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert client.get("/notifications", headers=_auth_headers(customer_token)).json()["unread_count"] == 0

    foreign = client.delete(f"/notifications/{items[0]['id']}", headers=_auth_headers(admin_token))
    assert foreign.status_code == 404
    deleted = client.delete(f"/notifications/{items[0]['id']}", headers=_auth_headers(customer_token))
    assert deleted.status_code == 200


def test_public_order_tracking(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    product = _create_product(client, token, sku="MUG", stock=10)
    order = _place_order(
        client,
        [{"product_id": product["id"], "quantity": 2}],
        email="Tracker@Example.com",
    ).json()

    res = client.get(
        "/orders/track",
        params={"order_number": order["order_number"], "email": "tracker@example.com"},
    )
    assert res.status_code == 200, res.text
    assert res.json()["id"] == order["id"]
    assert res.json()["items"][0]["quantity"] == 2

    wrong_email = client.get(
        "/orders/track",
        params={"order_number": order["order_number"], "email": "someone@example.com"},
    )
    assert wrong_email.status_code == 404


def test_order_lines_keep_placement_order(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    skus = ["TEA", "MUG", "CUP", "BOWL", "JAR"]
    products = [_create_product(client, token, sku=sku, stock=10) for sku in skus]

    order = _place_order(
        client,
        [{"product_id": product["id"], "quantity": 1} for product in products],
        email="lines@example.com",
    ).json()
    assert [item["product_sku"] for item in order["items"]] == skus
    assert [item["line_no"] for item in order["items"]] == [1, 2, 3, 4, 5]

    detail = client.get(f"/orders/{order['id']}", headers=_auth_headers(token))
    assert [item["product_sku"] for item in detail.json()["items"]] == skus

    tracked = client.get(
        "/orders/track",
        params={"order_number": order["order_number"], "email": "lines@example.com"},
    )
    assert [item["product_sku"] for item in tracked.json()["items"]] == skus


def test_repeated_product_lines_are_worked_in_placement_order(test_context):
    client, _ = test_context
    token = _bootstrap_admin(client)
    mug = _create_product(client, token, sku="MUG", stock=10)
    order = _place_order(
        client,
        [{"product_id": mug["id"], "quantity": 1}, {"product_id": mug["id"], "quantity": 3}],
    ).json()

    # The first open line only needs one unit.
    too_many = client.post(
        f"/orders/{order['id']}/fulfill-item",
        json={"product_id": mug["id"], "quantity": 3},
        headers=_auth_headers(token),
    )
    assert too_many.status_code == 400
    assert too_many.json()["error"]["message"] == "Order only requires 1 units"

    first = client.post(
        f"/orders/{order['id']}/fulfill-item",
        json={"product_id": mug["id"], "quantity": 1},
        headers=_auth_headers(token),
    )
    assert first.status_code == 200, first.text
    assert first.json()["all_fulfilled"] is False

    lines = client.get(f"/orders/{order['id']}", headers=_auth_headers(token)).json()["items"]
    assert [(line["quantity"], line["fulfilled"]) for line in lines] == [(1, True), (3, False)]

    second = client.post(
        f"/orders/{order['id']}/fulfill-item",
        json={"product_id": mug["id"], "quantity": 3},
        headers=_auth_headers(token),
    )
    assert second.status_code == 200, second.text
    assert second.json()["all_fulfilled"] is True
    assert _stock(client, mug["id"]) == (6, 6)


def test_order_list_sorts_same_second_orders_by_numeric_suffix(test_context):
    client, session_local = test_context
    token = _bootstrap_admin(client)
    placed_at = datetime(2026, 3, 7, 12, 0, 0, tzinfo=timezone.utc)

    db = session_local()
    try:
        for number in ("030726-9", "030726-10", "030726-2"):
            db.add(
                Order(
                    id=new_id(),
                    order_number=number,
                    customer_name="Seed",
                    customer_email="seed@example.com",
                    customer_phone="0",
                    shipping_address="-",
                    total=Decimal("0.00"),
                    created_at=placed_at,
                )
            )
        db.commit()
    finally:
        db.close()

    res = client.get("/orders", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    assert [item["order_number"] for item in res.json()["items"]] == ["030726-10", "030726-9", "030726-2"]


def test_manager_lists_active_staff_to_pick_assignee(test_context):
    client, _ = test_context
    admin_token = _bootstrap_admin(client)
    staff_id, staff_token = _create_member(client, admin_token, email="staff@example.com", role="staff")
    manager_id, manager_token = _create_member(client, admin_token, email="manager@example.com", role="manager")
    customer_id, _ = _create_member(client, admin_token, email="buyer@example.com", role="customer")
    pending = client.post(
        "/auth/register",
        json={"email": "new@example.com", "first_name": "New", "last_name": "Hire", "password": "password123"},
    )
    client.put(
        f"/users/{pending.json()['user']['id']}/role",
        json={"role": "staff"},
        headers=_auth_headers(admin_token),
    )

    assert client.get("/users/staff", headers=_auth_headers(staff_token)).status_code == 403

    res = client.get("/users/staff", headers=_auth_headers(manager_token))
    assert res.status_code == 200, res.text
    listed = {user["id"]: user["role"] for user in res.json()["items"]}
    assert listed[staff_id] == "staff"
    assert listed[manager_id] == "manager"
    assert customer_id not in listed
    assert pending.json()["user"]["id"] not in listed

    product = _create_product(client, admin_token, sku="MUG", stock=5)
    order = _place_order(client, [{"product_id": product["id"], "quantity": 1}]).json()
    assign = client.put(
        f"/orders/{order['id']}/assign",
        json={"assigned_user_id": staff_id},
        headers=_auth_headers(manager_token),
    )
    assert assign.status_code == 200, assign.text
    assert assign.json()["assigned_user_id"] == staff_id
