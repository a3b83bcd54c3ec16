from datetime import datetime, timedelta, timezone

from helpers import ADMIN_HEADERS


def _order_body(product, quantity=1, coupon_code=None):
    body = {
        "items": [{"product_id": str(product.id), "quantity": quantity}],
        "customer": {
            "name": "Dana Levi",
            "email": "dana@example.com",
            "phone": "0501234567",
            "address": "12 Herzl St",
            "city": "Haifa",
        },
    }
    if coupon_code:
        body["coupon_code"] = coupon_code
    return body


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_place_order(client, make_product, make_coupon):
    product = await make_product(price="1000.00", inventory=3)
    await make_coupon(code="SAVE10")

    response = await client.post("/api/v1/checkout/orders", json=_order_body(product, coupon_code="SAVE10"))

    assert response.status_code == 201
    data = response.json()
    assert data["total"] == 1062.0
    assert data["payment_url"] == f"https://shop.test/payment-success?orderId={data['order_id']}"

    order = await client.get(f"/api/v1/orders/{data['order_id']}")
    assert order.status_code == 200
    assert order.json()["order_number"] == data["order_number"]


async def test_side_effects_delivered_after_response(client, make_product):
    product = await make_product(inventory=1)

    response = await client.post("/api/v1/checkout/orders", json=_order_body(product))
    assert response.status_code == 201

    alerts = await client.get("/api/v1/inventory/alerts", params={"product_id": str(product.id)})
    assert alerts.status_code == 200
    assert [a["kind"] for a in alerts.json()["items"]] == ["OUT_OF_STOCK"]


async def test_insufficient_inventory_response(client, make_product):
    product = await make_product(inventory=2)

    response = await client.post("/api/v1/checkout/orders", json=_order_body(product, quantity=3))

    assert response.status_code == 409
    assert response.json() == {
        "error": "INSUFFICIENT_INVENTORY",
        "message": "Only 2 of 'Olive Oil 1L' available, 3 requested",
        "product_id": str(product.id),
        "available": 2,
        "requested": 3,
    }


async def test_empty_cart_is_rejected(client):
    response = await client.post("/api/v1/checkout/orders", json={
        "items": [],
        "customer": {
            "name": "Dana",
            "email": "dana@example.com",
            "phone": "0501234567",
            "address": "x",
            "city": "y",
        },
    })
    assert response.status_code == 422


async def test_customer_cannot_read_someone_elses_order(client, make_product):
    product = await make_product()
    response = await client.post(
        "/api/v1/checkout/orders",
        json=_order_body(product),
        headers={"X-Customer-Id": "cust-1"},
    )
    order_id = response.json()["order_id"]

    mine = await client.get(f"/api/v1/orders/{order_id}", headers={"X-Customer-Id": "cust-1"})
    theirs = await client.get(f"/api/v1/orders/{order_id}", headers={"X-Customer-Id": "cust-2"})

    assert mine.status_code == 200
    assert theirs.status_code == 404


async def test_validate_expired_coupon(client, make_coupon):
    now = datetime.now(timezone.utc)
    await make_coupon(code="WINTER", valid_from=now - timedelta(days=90), valid_to=now - timedelta(days=1))

    response = await client.post("/api/v1/coupons/validate", json={"code": "winter", "subtotal": "250"})

    assert response.status_code == 200
    assert response.json()["valid"] is False
    assert response.json()["reason"] == "EXPIRED"


async def test_validate_coupon(client, make_coupon):
    await make_coupon(code="TAKE50", discount_type="FIXED", discount_value="50")

    response = await client.post("/api/v1/coupons/validate", json={"code": "TAKE50", "subtotal": "250"})

    data = response.json()
    assert data["valid"] is True
    assert data["discount_amount"] == 50.0
    assert data["discount_type"] == "FIXED"


async def test_quote(client, make_product):
    product = await make_product(price="100.00", inventory=5)

    response = await client.post("/api/v1/checkout/quote", json={
        "items": [{"product_id": str(product.id), "quantity": 1}],
    })

    data = response.json()
    assert response.status_code == 200
    assert data["total"] == 138.0
    assert data["shipping_cost"] == 20.0
    assert data["amount_needed_for_free_shipping"] == 250.0
    assert data["currency_symbol"] == "₪"


async def test_admin_endpoints_require_key(client):
    assert (await client.get("/api/v1/inventory")).status_code == 401
    bad = await client.get("/api/v1/inventory", headers={"X-Admin-Key": "wrong"})
    assert bad.status_code == 401


async def test_restock_through_api_resolves_alert(client, make_product):
    product = await make_product(inventory=1)

    response = await client.post(
        "/api/v1/inventory/adjust",
        headers=ADMIN_HEADERS,
        json={"product_id": str(product.id), "quantity": -1, "type": "ADJUSTMENT", "reason": "Damaged"},
    )
    assert response.json()["alerts_created"] == 1

    response = await client.post(
        "/api/v1/inventory/adjust",
        headers=ADMIN_HEADERS,
        json={"product_id": str(product.id), "quantity": 50, "type": "RESTOCK"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["new_qty"] == 50
    assert data["available_quantity"] == 50
    assert data["alerts_resolved"] == 1

    logs = await client.get(
        "/api/v1/inventory/logs",
        headers=ADMIN_HEADERS,
        params={"product_id": str(product.id), "type": "RESTOCK"},
    )
    [entry] = logs.json()["items"]
    assert entry["reason"] == "Restock by admin"
    assert entry["created_by"] == "ops"


async def test_adjust_below_reserved_is_rejected(client, make_product):
    product = await make_product(inventory=3, reserved_quantity=3)

    response = await client.post(
        "/api/v1/inventory/adjust",
        headers=ADMIN_HEADERS,
        json={"product_id": str(product.id), "quantity": -1, "type": "ADJUSTMENT", "reason": "Lost"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_ADJUSTMENT"


async def test_order_lifecycle_through_api(client, make_product):
    product = await make_product(inventory=5)
    order_id = (await client.post("/api/v1/checkout/orders", json=_order_body(product, 2))).json()["order_id"]

    ship_early = await client.post(f"/api/v1/orders/{order_id}/ship", headers=ADMIN_HEADERS)
    assert ship_early.status_code == 409
    assert ship_early.json()["error"] == "INVALID_ORDER_TRANSITION"

    for action, status in (("pay", "PROCESSING"), ("ship", "SHIPPED"), ("deliver", "DELIVERED")):
        response = await client.post(f"/api/v1/orders/{order_id}/{action}", headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert response.json()["status"] == status

    stock = await client.get(f"/api/v1/inventory/products/{product.id}")
    assert stock.json()["inventory"] == 3
    assert stock.json()["reserved_quantity"] == 0


async def test_store_settings_drive_pricing(client, make_product):
    product = await make_product(price="100.00")

    updated = await client.put(
        "/api/v1/settings",
        headers=ADMIN_HEADERS,
        json={"tax_rate_percent": 17, "shipping_cost": 30},
    )
    assert updated.status_code == 200

    quote = await client.post("/api/v1/checkout/quote", json={
        "items": [{"product_id": str(product.id), "quantity": 1}],
    })
    assert quote.json()["tax"] == 17.0
    assert quote.json()["shipping_cost"] == 30.0
    assert quote.json()["total"] == 147.0
