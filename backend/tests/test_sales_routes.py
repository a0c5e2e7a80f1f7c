"""
Sales API: status codes and error envelopes for the checkout endpoints.
"""

from sqlalchemy.exc import OperationalError

from posapi.services import inventory_service, sales_service


def _create(client, headers, items, **body):
    body.setdefault("payment_method", "cash")
    return client.post("/api/sales", json={"items": items, **body}, headers=headers)


def test_create_sale_returns_201(client, cashier_headers, make_product):
    product = make_product("API-1", price_cents=2500, stock=10)

    res = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 2}], discount_amount=5)

    assert res.status_code == 201
    sale = res.get_json()["sale"]
    assert sale["status"] == "completed"
    assert sale["subtotal"] == 50
    assert sale["tax_amount"] == 5
    assert sale["discount_amount"] == 5
    assert sale["total_amount"] == 50
    assert sale["invoice_number"].startswith("INV-")
    assert sale["items"][0]["product_id"] == product.id
    assert sale["items"][0]["unit_price"] == 25
    assert inventory_service.get_available(product.id) == 8


def test_create_sale_requires_auth(client, make_product):
    product = make_product("API-2")

    res = client.post("/api/sales", json={"items": [{"product_id": product.id, "quantity": 1}], "payment_method": "cash"})

    assert res.status_code == 401
    assert res.get_json()["code"] == "UNAUTHORIZED"
    assert inventory_service.get_available(product.id) == 100


def test_create_sale_rejects_bad_token(client, make_product):
    product = make_product("API-3")

    res = _create(client, {"Authorization": "Bearer not-a-token"}, [{"product_id": product.id, "quantity": 1}])

    assert res.status_code == 401


def test_validation_errors_list_fields(client, cashier_headers):
    res = _create(client, cashier_headers, [], discount_amount=-1)

    assert res.status_code == 400
    body = res.get_json()
    assert body["code"] == "VALIDATION_ERROR"
    assert "items" in body["details"]["fields"]
    assert "discount_amount" in body["details"]["fields"]


def test_missing_body_is_validation_error(client, cashier_headers):
    res = client.post("/api/sales", data="not json", headers=cashier_headers, content_type="application/json")

    assert res.status_code == 400
    assert res.get_json()["code"] == "VALIDATION_ERROR"


def test_insufficient_stock_is_409(client, cashier_headers, make_product):
    product = make_product("API-4", stock=1)

    res = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 2}])

    assert res.status_code == 409
    body = res.get_json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"] == {"product_id": product.id, "requested": 2, "available": 1}


def test_unknown_product_is_404(client, cashier_headers):
    res = _create(client, cashier_headers, [{"product_id": 424242, "quantity": 1}])

    assert res.status_code == 404
    assert res.get_json()["code"] == "PRODUCT_NOT_FOUND"


def test_inactive_product_is_409(client, cashier_headers, make_product):
    product = make_product("API-5", is_active=False)

    res = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}])

    assert res.status_code == 409
    assert res.get_json()["code"] == "PRODUCT_INACTIVE"


def test_invalid_payment_method_is_400(client, cashier_headers, make_product):
    product = make_product("API-6")

    res = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}], payment_method="barter")

    assert res.status_code == 400
    body = res.get_json()
    assert body["code"] == "INVALID_PAYMENT_METHOD"
    assert "cash" in body["details"]["allowed"]
    assert inventory_service.get_available(product.id) == 100


def test_out_of_range_discount_is_400(client, cashier_headers, make_product):
    product = make_product("API-14", stock=10)

    res = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}], discount_amount="1e30")

    assert res.status_code == 400
    body = res.get_json()
    assert body["code"] == "VALIDATION_ERROR"
    assert "discount_amount" in body["details"]["fields"]
    assert inventory_service.get_available(product.id) == 10


def test_out_of_range_quantity_is_400(client, cashier_headers, make_product):
    product = make_product("API-15", stock=10)

    res = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 10**20}])

    assert res.status_code == 400
    assert "items[0].quantity" in res.get_json()["details"]["fields"]
    assert inventory_service.get_available(product.id) == 10


def test_storage_unavailable_is_503_with_retry_after(client, cashier_headers, make_product, monkeypatch):
    product = make_product("API-16", stock=10)

    def locked(day=None):
        raise OperationalError("INSERT INTO sales", {}, Exception("database is locked"))

    monkeypatch.setattr(sales_service, "next_invoice_number", locked)

    res = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 4}])

    assert res.status_code == 503
    assert res.headers["Retry-After"] == "1"
    body = res.get_json()
    assert body["code"] == "STORAGE_UNAVAILABLE"
    assert body["retryable"] is True
    assert inventory_service.get_available(product.id) == 10


def test_get_sale(client, cashier_headers, make_product):
    product = make_product("API-7")
    sale_id = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}]).get_json()["sale"]["id"]

    res = client.get(f"/api/sales/{sale_id}", headers=cashier_headers)

    assert res.status_code == 200
    assert res.get_json()["sale"]["id"] == sale_id


def test_get_unknown_sale_is_404(client, cashier_headers):
    res = client.get("/api/sales/999999", headers=cashier_headers)

    assert res.status_code == 404
    assert res.get_json()["code"] == "SALE_NOT_FOUND"


def test_list_sales_pagination_shape(client, cashier_headers, make_product):
    product = make_product("API-8")
    for _ in range(3):
        _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}])

    res = client.get("/api/sales?per_page=2&page=1", headers=cashier_headers)

    assert res.status_code == 200
    body = res.get_json()
    assert body["count"] == 2
    assert body["pagination"] == {
        "page": 1,
        "per_page": 2,
        "total": 3,
        "total_pages": 2,
        "has_next": True,
        "has_prev": False,
    }

    res = client.get("/api/sales?per_page=2&page=2", headers=cashier_headers)
    assert res.get_json()["count"] == 1


def test_list_sales_filters_by_payment_method(client, cashier_headers, make_product):
    product = make_product("API-9")
    _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}], payment_method="card")
    _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}], payment_method="cash")

    res = client.get("/api/sales?payment_method=card", headers=cashier_headers)

    items = res.get_json()["items"]
    assert [s["payment_method"] for s in items] == ["card"]


def test_list_sales_non_integer_id_filter_is_400(client, cashier_headers):
    for param in ("user_id", "customer_id"):
        res = client.get(f"/api/sales?{param}=abc", headers=cashier_headers)

        assert res.status_code == 400
        assert res.get_json()["details"]["fields"] == {param: "must be a positive integer"}


def test_list_sales_filters_by_user_id(client, cashier_user, cashier_headers, manager_headers, make_product):
    product = make_product("API-17")
    _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}])
    _create(client, manager_headers, [{"product_id": product.id, "quantity": 1}])

    res = client.get(f"/api/sales?user_id={cashier_user.id}", headers=cashier_headers)

    items = res.get_json()["items"]
    assert [s["user_id"] for s in items] == [cashier_user.id]


def test_list_sales_bad_date_is_400(client, cashier_headers):
    res = client.get("/api/sales?date_from=yesterday", headers=cashier_headers)

    assert res.status_code == 400
    assert "date_from" in res.get_json()["details"]["fields"]


# =============================================================================
# STATUS
# =============================================================================


def test_cashier_cannot_change_status(client, cashier_headers, make_product):
    product = make_product("API-10", stock=5)
    sale_id = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}]).get_json()["sale"]["id"]

    res = client.patch(f"/api/sales/{sale_id}/status", json={"status": "refunded"}, headers=cashier_headers)

    assert res.status_code == 403
    assert res.get_json()["code"] == "FORBIDDEN"
    assert inventory_service.get_available(product.id) == 4


def test_manager_refund_restores_stock(client, cashier_headers, manager_headers, make_product):
    product = make_product("API-11", stock=5)
    sale_id = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 2}]).get_json()["sale"]["id"]

    res = client.patch(f"/api/sales/{sale_id}/status", json={"status": "refunded"}, headers=manager_headers)

    assert res.status_code == 200
    assert res.get_json()["sale"]["status"] == "refunded"
    assert inventory_service.get_available(product.id) == 5


def test_illegal_transition_is_409(client, cashier_headers, admin_headers, make_product):
    product = make_product("API-12", stock=5)
    sale_id = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}]).get_json()["sale"]["id"]

    res = client.patch(f"/api/sales/{sale_id}/status", json={"status": "cancelled"}, headers=admin_headers)

    assert res.status_code == 409
    body = res.get_json()
    assert body["code"] == "INVALID_TRANSITION"
    assert body["details"]["current_status"] == "completed"


def test_status_change_unknown_sale_is_404(client, admin_headers):
    res = client.patch("/api/sales/999999/status", json={"status": "refunded"}, headers=admin_headers)

    assert res.status_code == 404
    assert res.get_json()["code"] == "SALE_NOT_FOUND"


def test_status_change_requires_status(client, admin_headers):
    res = client.patch("/api/sales/1/status", json={}, headers=admin_headers)

    assert res.status_code == 400
    assert res.get_json()["details"]["fields"] == {"status": "is required"}


def test_unknown_status_value_is_400(client, cashier_headers, admin_headers, make_product):
    product = make_product("API-13", stock=5)
    sale_id = _create(client, cashier_headers, [{"product_id": product.id, "quantity": 1}]).get_json()["sale"]["id"]

    res = client.patch(f"/api/sales/{sale_id}/status", json={"status": "lost"}, headers=admin_headers)

    assert res.status_code == 400
    assert res.get_json()["code"] == "VALIDATION_ERROR"
