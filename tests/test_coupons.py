import asyncio
from datetime import datetime, timedelta

import pytest

from academy.errors import InvalidState
from academy.promotions.coupon_service import apply_discount, delete_coupon


def future(days=30):
    return (datetime.utcnow() + timedelta(days=days)).isoformat()


def create(client, headers, **overrides):
    payload = {
        "code": "spring25",
        "discount_type": "percentage",
        "discount_value": 25,
        "usage_limit": 10,
        "expiry_date": future(),
    }
    payload.update(overrides)
    return client.post("/coupons", json=payload, headers=headers)


def test_create_normalizes_code(client, admin):
    _, headers = admin
    response = create(client, headers)
    assert response.status_code == 201
    body = response.json()
    assert body["code"] == "SPRING25"
    assert body["is_active"] is True
    assert body["times_used"] == 0


def test_duplicate_code_case_insensitive(client, admin):
    _, headers = admin
    create(client, headers)
    assert create(client, headers, code="Spring25").status_code == 400


@pytest.mark.parametrize("overrides", [
    {"discount_value": 150},
    {"discount_value": 0},
    {"discount_type": "fixed", "discount_value": -5},
    {"usage_limit": 0},
])
def test_create_rejects_bad_values(client, admin, overrides):
    _, headers = admin
    assert create(client, headers, **overrides).status_code == 400


def test_create_rejects_past_expiry(client, admin):
    _, headers = admin
    past = (datetime.utcnow() - timedelta(days=1)).isoformat()
    assert create(client, headers, expiry_date=past).status_code == 400


def test_coupon_admin_only(client, student):
    _, headers = student
    assert create(client, headers).status_code == 403
    assert client.get("/coupons", headers=headers).status_code == 403


def test_validate_valid_coupon_is_public(client, admin):
    _, headers = admin
    create(client, headers)
    response = client.get("/coupons/validate/spring25")
    assert response.status_code == 200
    assert response.json() == {
        "is_valid": True, "code": "SPRING25", "discount_type": "percentage", "discount": 25
    }


def test_validate_with_amount_preview(client, admin):
    _, headers = admin
    create(client, headers)
    response = client.get("/coupons/validate/SPRING25?amount=200")
    assert response.json()["discounted_amount"] == 150


def test_validate_failures(client, mock_db, admin):
    _, headers = admin
    assert client.get("/coupons/validate/NOPE").status_code == 404

    coupon = create(client, headers).json()
    client.put(f"/coupons/{coupon['coupon_id']}", json={"is_active": False}, headers=headers)
    response = client.get("/coupons/validate/SPRING25")
    assert response.status_code == 400
    assert "not active" in response.json()["detail"]

    client.put(f"/coupons/{coupon['coupon_id']}", json={"is_active": True}, headers=headers)
    asyncio.run(mock_db.coupons.update_one(
        {"coupon_id": coupon["coupon_id"]}, {"$set": {"expiry_date": datetime.utcnow() - timedelta(days=1)}}
    ))
    assert "expired" in client.get("/coupons/validate/SPRING25").json()["detail"]

    asyncio.run(mock_db.coupons.update_one(
        {"coupon_id": coupon["coupon_id"]},
        {"$set": {"expiry_date": datetime.utcnow() + timedelta(days=1), "times_used": 10}}
    ))
    assert "usage limit" in client.get("/coupons/validate/SPRING25").json()["detail"]


def test_update_cannot_lower_limit_below_usage(client, mock_db, admin):
    _, headers = admin
    coupon = create(client, headers).json()
    asyncio.run(mock_db.coupons.update_one({"coupon_id": coupon["coupon_id"]}, {"$set": {"times_used": 5}}))

    assert client.put(f"/coupons/{coupon['coupon_id']}", json={"usage_limit": 4}, headers=headers).status_code == 400
    response = client.put(f"/coupons/{coupon['coupon_id']}", json={"usage_limit": 5}, headers=headers)
    assert response.status_code == 200
    assert response.json()["usage_limit"] == 5


def test_update_revalidates_value_against_type(client, admin):
    _, headers = admin
    coupon = create(client, headers, discount_type="fixed", discount_value=150).json()
    response = client.put(
        f"/coupons/{coupon['coupon_id']}", json={"discount_type": "percentage"}, headers=headers
    )
    assert response.status_code == 400


def test_delete_refused_for_active_used_coupon(client, mock_db, admin):
    _, headers = admin
    coupon = create(client, headers).json()
    asyncio.run(mock_db.coupons.update_one({"coupon_id": coupon["coupon_id"]}, {"$set": {"times_used": 1}}))

    with pytest.raises(InvalidState):
        asyncio.run(delete_coupon(mock_db, coupon["coupon_id"]))

    client.put(f"/coupons/{coupon['coupon_id']}", json={"is_active": False}, headers=headers)
    assert client.delete(f"/coupons/{coupon['coupon_id']}", headers=headers).status_code == 200
    assert client.get("/coupons", headers=headers).json() == []


def test_apply_discount():
    assert apply_discount(200, "percentage", 10) == 180
    assert apply_discount(200, "fixed", 50) == 150
    assert apply_discount(30, "fixed", 50) == 0
