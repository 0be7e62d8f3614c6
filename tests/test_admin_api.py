"""Admin API tests: delivery reference data, logs and wallet oversight."""

from decimal import Decimal

from app.models import AuditLog


def test_admin_routes_reject_customers(client, login) -> None:
    headers = login(client, "curious@example.com")
    response = client.get("/api/v1/admin/zones", headers=headers)
    assert response.status_code == 403
    assert response.json()["code"] == "unauthorized"


def test_zone_crud_and_quote(client, admin_headers) -> None:
    created = client.post(
        "/api/v1/admin/zones",
        json={"name": "Island", "min_distance_km": "0", "max_distance_km": "5", "price": "800"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    zone_id = created.json()["id"]

    bad = client.post(
        "/api/v1/admin/zones",
        json={"name": "Backwards", "min_distance_km": "5", "max_distance_km": "1", "price": "800"},
        headers=admin_headers,
    )
    assert bad.status_code == 400

    updated = client.patch(f"/api/v1/admin/zones/{zone_id}", json={"price": "650"}, headers=admin_headers)
    assert updated.status_code == 200
    assert Decimal(updated.json()["price"]) == Decimal("650")

    quote = client.post(
        "/api/v1/delivery/quote",
        json={"distance_km": 4, "subtotal": "2000", "destination": "Lekki Phase 1"},
        headers=admin_headers,
    )
    assert Decimal(quote.json()["final_price"]) == Decimal("650")

    logs = client.get("/api/v1/admin/delivery-logs", headers=admin_headers)
    assert [log["id"] for log in logs.json()] == [quote.json()["quote_id"]]
    assert logs.json()[0]["destination"] == "lekki phase 1"

    deleted = client.delete(f"/api/v1/admin/zones/{zone_id}", headers=admin_headers)
    assert deleted.status_code == 204
    assert client.get("/api/v1/admin/zones", headers=admin_headers).json() == []


def test_promotion_codes_are_normalized_and_unique(client, admin_headers) -> None:
    body = {
        "code": " weekend ",
        "name": "Weekend",
        "discount_type": "fixed_amount",
        "discount_value": "200",
        "valid_from": "2026-01-01T00:00:00Z",
        "valid_until": "2026-12-31T00:00:00Z",
    }
    created = client.post("/api/v1/admin/promotions", json=body, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["code"] == "WEEKEND"
    assert created.json()["usage_count"] == 0

    duplicate = client.post("/api/v1/admin/promotions", json={**body, "code": "Weekend"}, headers=admin_headers)
    assert duplicate.status_code == 400

    over = client.post(
        "/api/v1/admin/promotions",
        json={**body, "code": "HALF", "discount_type": "percentage", "discount_value": "150"},
        headers=admin_headers,
    )
    assert over.status_code == 400


def test_pricing_config_update_is_audited(client, admin_headers, session_factory) -> None:
    current = client.get("/api/v1/admin/pricing-config", headers=admin_headers)
    assert current.status_code == 200
    assert Decimal(current.json()["free_delivery_threshold"]) == Decimal("0")

    updated = client.put(
        "/api/v1/admin/pricing-config", json={"free_delivery_threshold": "5000"}, headers=admin_headers
    )
    assert updated.status_code == 200
    assert Decimal(updated.json()["free_delivery_threshold"]) == Decimal("5000")

    rejected = client.put("/api/v1/admin/pricing-config", json={"min_delivery_charge": "-1"}, headers=admin_headers)
    assert rejected.status_code == 400

    with session_factory() as db:
        assert db.query(AuditLog).filter(AuditLog.action_type == "pricing_config_updated").count() == 1


def test_wallet_adjust_and_reconcile(client, admin_headers, login) -> None:
    customer = login(client, "refund@example.com")
    user_id = client.get("/api/v1/auth/me", headers=customer).json()["id"]

    adjusted = client.post(
        "/api/v1/admin/wallet/adjust",
        json={"user_id": user_id, "amount": "150", "reason": "Late delivery refund"},
        headers=admin_headers,
    )
    assert adjusted.status_code == 201
    assert adjusted.json()["reference_type"] == "admin_adjustment"

    report = client.get(f"/api/v1/admin/wallet/{user_id}/reconcile", headers=admin_headers)
    assert report.status_code == 200
    assert report.json()["is_consistent"] is True
    assert Decimal(report.json()["balance"]) == Decimal("150")
