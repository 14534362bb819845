import logging
from datetime import datetime

import mongomock
from pymongo.errors import PyMongoError

import main


def failing_write(*args, **kwargs):
    raise PyMongoError("primary stepped down")


# Users

def test_users_search_and_role_filter(client, mongo, auth_headers):
    mongo["users"].insert_many([
        {"email": "asha@mail.in", "name": "Asha", "role": "user", "phone": "+91 90000"},
        {"email": "ravi@farm.in", "displayName": "Ravi", "role": "owner", "is_active": False},
        {"phoneNumber": "+91 81111"},
    ])

    everyone = client.get("/users", headers=auth_headers).json()
    assert everyone["counts"] == {"all": 4, "user": 2, "owner": 1, "admin": 1}

    owners = client.get("/users", params={"role": "owner"}, headers=auth_headers).json()["items"]
    assert [(u["name"], u["is_active"]) for u in owners] == [("Ravi", False)]

    by_phone = client.get("/users", params={"search": "81111"}, headers=auth_headers).json()["items"]
    assert [u["name"] for u in by_phone] == ["Unknown"]

    by_email = client.get("/users", params={"search": "FARM.IN"}, headers=auth_headers).json()["items"]
    assert [u["email"] for u in by_email] == ["ravi@farm.in"]


def test_deactivate_user(client, mongo, auth_headers):
    uid = mongo["users"].insert_one({"email": "asha@mail.in", "role": "user"}).inserted_id

    res = client.patch(f"/users/{uid}/status", json={"is_active": False}, headers=auth_headers)

    assert res.status_code == 200
    assert mongo["users"].find_one({"_id": uid})["is_active"] is False


def test_admin_cannot_deactivate_self(client, admin, auth_headers):
    res = client.patch(f"/users/{admin['_id']}/status", json={"is_active": False}, headers=auth_headers)

    assert res.status_code == 400

def test_users_search_with_numeric_fields(client, mongo, auth_headers):
    mongo["users"].insert_one({"name": 42, "email": "num@mail.in", "phone": 9876543210})

    res = client.get("/users", params={"search": "9876"}, headers=auth_headers)

    assert res.status_code == 200
    assert [(u["name"], u["phone"]) for u in res.json()["items"]] == [("42", "9876543210")]


def test_user_status_database_failure(client, mongo, auth_headers, monkeypatch, caplog):
    uid = mongo["users"].insert_one({"email": "asha@mail.in", "role": "user"}).inserted_id
    monkeypatch.setattr(main, "update_document", failing_write)

    res = client.patch(f"/users/{uid}/status", json={"is_active": False}, headers=auth_headers)

    assert res.status_code == 500
    assert f"Failed to update status of user {uid}" in caplog.text
    assert "is_active" not in mongo["users"].find_one({"_id": uid})

# Bookings

def test_bookings_filters(client, mongo, auth_headers):
    mongo["bookings"].insert_many([
        {"status": "confirmed", "payment_status": "paid", "total_amount": 1000},
        {"status": "confirmed", "payment_status": "pending", "total_amount": 2000},
        {"status": "cancelled", "payment_status": "refunded", "total_amount": 3000},
    ])

    confirmed = client.get("/bookings", params={"status": "confirmed"}, headers=auth_headers).json()["items"]
    assert sorted(b["total_amount"] for b in confirmed) == [1000, 2000]

    paid = client.get("/bookings", params={"status": "confirmed", "payment_status": "paid"}, headers=auth_headers).json()["items"]
    assert [b["total_amount"] for b in paid] == [1000]


def test_bookings_with_object_id_references(client, mongo, auth_headers):
    fh = mongo["farmhouses"].insert_one({"name": "Green Acres"}).inserted_id
    user = mongo["users"].insert_one({"email": "guest@mail.in"}).inserted_id
    mongo["bookings"].insert_one({"farmhouse_id": fh, "user_id": user, "ownerId": fh, "total_amount": 1000})

    res = client.get("/bookings", headers=auth_headers)

    assert res.status_code == 200
    booking = res.json()["items"][0]
    assert (booking["farmhouse_id"], booking["user_id"]) == (str(fh), str(user))

# Coupons

COUPON = {
    "code": "monsoon20",
    "discount_type": "percentage",
    "discount_value": 20,
    "valid_from": "2024-07-01T00:00:00",
    "valid_until": "2024-09-30T00:00:00",
    "min_booking_amount": 5000,
}


def test_create_coupon(client, mongo, auth_headers):
    res = client.post("/coupons", json=COUPON, headers=auth_headers)

    assert res.status_code == 200
    coupon = mongo["coupons"].find_one({"code": "MONSOON20"})
    assert coupon["max_uses"] == 1
    assert coupon["current_uses"] == 0
    assert coupon["is_active"] is True
    assert coupon["valid_from"] == datetime(2024, 7, 1)


def test_coupon_code_must_be_unique(client, auth_headers):
    client.post("/coupons", json=COUPON, headers=auth_headers)

    res = client.post("/coupons", json=dict(COUPON, code="MONSOON20"), headers=auth_headers)

    assert res.status_code == 400


def test_coupon_validation(client, auth_headers):
    assert client.post("/coupons", json=dict(COUPON, discount_value=150), headers=auth_headers).status_code == 422
    assert client.post("/coupons", json=dict(COUPON, valid_until="2024-06-01T00:00:00"), headers=auth_headers).status_code == 422
    assert client.post("/coupons", json=dict(COUPON, discount_type="bogo"), headers=auth_headers).status_code == 422


def test_deactivate_and_delete_coupon(client, mongo, auth_headers):
    coupon_id = client.post("/coupons", json=COUPON, headers=auth_headers).json()["id"]

    assert client.post(f"/coupons/{coupon_id}/deactivate", headers=auth_headers).status_code == 200
    assert mongo["coupons"].find_one({})["is_active"] is False
    assert client.get("/dashboard", headers=auth_headers).json()["active_coupons"] == 0

    assert client.delete(f"/coupons/{coupon_id}", headers=auth_headers).status_code == 200
    assert client.get("/coupons", headers=auth_headers).json()["items"] == []


def test_coupon_writes_are_logged_with_admin(client, admin, auth_headers, caplog):
    caplog.set_level(logging.INFO, logger="reroute_admin")
    coupon_id = client.post("/coupons", json=COUPON, headers=auth_headers).json()["id"]

    client.post(f"/coupons/{coupon_id}/deactivate", headers=auth_headers)
    client.delete(f"/coupons/{coupon_id}", headers=auth_headers)

    assert f"Admin {admin['_id']} created coupon MONSOON20" in caplog.text
    assert f"Admin {admin['_id']} deactivated coupon MONSOON20" in caplog.text
    assert f"Admin {admin['_id']} deleted coupon {coupon_id}" in caplog.text


def test_coupon_database_failures(client, mongo, auth_headers, monkeypatch):
    coupon_id = client.post("/coupons", json=COUPON, headers=auth_headers).json()["id"]
    monkeypatch.setattr(main, "create_document", failing_write)
    monkeypatch.setattr(main, "update_document", failing_write)

    def failing_delete_one(self, *args, **kwargs):
        raise PyMongoError("not primary")

    monkeypatch.setattr(mongomock.Collection, "delete_one", failing_delete_one)

    assert client.post("/coupons", json=dict(COUPON, code="DIWALI"), headers=auth_headers).status_code == 500
    assert client.post(f"/coupons/{coupon_id}/deactivate", headers=auth_headers).status_code == 500
    assert client.delete(f"/coupons/{coupon_id}", headers=auth_headers).status_code == 500
    assert mongo["coupons"].find_one({})["is_active"] is True
    assert mongo["coupons"].count_documents({}) == 1

# Payments

def test_mark_payout_paid(client, mongo, admin, auth_headers):
    bid = mongo["bookings"].insert_one({"payment_status": "paid", "total_amount": 10000, "commission_amount": 1000}).inserted_id
    mongo["bookings"].insert_one({"payment_status": "pending", "total_amount": 4000})

    before = client.get("/payments", headers=auth_headers).json()
    assert before["stats"]["pending_payouts"] == 9000
    assert [b["id"] for b in before["pending"]] == [str(bid)]

    assert client.post(f"/payments/{bid}/mark-paid", headers=auth_headers).status_code == 200
    booking = mongo["bookings"].find_one({"_id": bid})
    assert booking["commission_paid_to_owner"] is True
    assert booking["payout_paid_by"] == str(admin["_id"])

    after = client.get("/payments", headers=auth_headers).json()
    assert after["stats"]["completed_payouts"] == 9000
    assert after["pending"] == []

    assert client.post(f"/payments/{bid}/mark-paid", headers=auth_headers).status_code == 400


def test_cannot_pay_out_unpaid_booking(client, mongo, auth_headers):
    bid = mongo["bookings"].insert_one({"payment_status": "pending", "total_amount": 4000}).inserted_id

    assert client.post(f"/payments/{bid}/mark-paid", headers=auth_headers).status_code == 400


def test_mark_payout_database_failure(client, mongo, auth_headers, monkeypatch):
    bid = mongo["bookings"].insert_one({"payment_status": "paid", "total_amount": 10000}).inserted_id
    monkeypatch.setattr(main, "update_document", failing_write)

    res = client.post(f"/payments/{bid}/mark-paid", headers=auth_headers)

    assert res.status_code == 500
    assert "commission_paid_to_owner" not in mongo["bookings"].find_one({"_id": bid})

# Reviews

def test_review_moderation(client, mongo, admin, auth_headers):
    rid = mongo["reviews"].insert_one({"user_id": "u1", "farmhouse_id": "f1", "rating": 2, "comment": "Dirty pool"}).inserted_id
    mongo["reviews"].insert_one({"user_id": "u2", "farmhouse_id": "f1", "rating": 5, "status": "approved"})

    pending = client.get("/reviews", params={"status": "pending"}, headers=auth_headers).json()["items"]
    assert [r["comment"] for r in pending] == ["Dirty pool"]

    assert client.patch(f"/reviews/{rid}/status", json={"status": "flagged"}, headers=auth_headers).status_code == 200
    assert client.patch(f"/reviews/{rid}/status", json={"status": "deleted"}, headers=auth_headers).status_code == 422

    res = client.post(f"/reviews/{rid}/respond", json={"response": "We have spoken to the owner."}, headers=auth_headers)
    assert res.status_code == 200
    review = mongo["reviews"].find_one({"_id": rid})
    assert review["status"] == "flagged"
    assert review["admin_response"] == "We have spoken to the owner."
    assert review["responded_by"] == str(admin["_id"])


def test_review_not_found(client, auth_headers):
    res = client.patch("/reviews/65f000000000000000000000/status", json={"status": "approved"}, headers=auth_headers)

    assert res.status_code == 404


def test_review_response_is_logged_with_admin(client, mongo, admin, auth_headers, caplog):
    rid = mongo["reviews"].insert_one({"user_id": "u1", "farmhouse_id": "f1", "rating": 4}).inserted_id
    caplog.set_level(logging.INFO, logger="reroute_admin")

    client.post(f"/reviews/{rid}/respond", json={"response": "Thank you!"}, headers=auth_headers)

    assert f"Admin {admin['_id']} responded to review {rid}" in caplog.text


def test_review_database_failures(client, mongo, auth_headers, monkeypatch):
    rid = mongo["reviews"].insert_one({"user_id": "u1", "farmhouse_id": "f1", "rating": 4}).inserted_id
    monkeypatch.setattr(main, "update_document", failing_write)

    status = client.patch(f"/reviews/{rid}/status", json={"status": "approved"}, headers=auth_headers)
    response = client.post(f"/reviews/{rid}/respond", json={"response": "Thank you!"}, headers=auth_headers)

    assert (status.status_code, response.status_code) == (500, 500)
    assert mongo["reviews"].find_one({"_id": rid}).keys() == {"_id", "user_id", "farmhouse_id", "rating"}
