import pytest

from conftest import naive_utc


@pytest.fixture
def audience(mongo):
    mongo["users"].insert_many([
        {"email": "a@mail.in", "role": "user"},
        {"email": "b@mail.in", "role": "user", "is_active": False},
        {"email": "o@farm.in", "role": "owner", "is_active": True},
    ])


@pytest.mark.parametrize("recipient_type, expected", [
    ("all_users", 4),
    ("all_owners", 1),
    ("active_users", 3),
])
def test_recipient_count(client, mongo, auth_headers, audience, recipient_type, expected):
    res = client.post(
        "/communications",
        json={"recipient_type": recipient_type, "subject": "Monsoon offer", "message": "20% off this weekend"},
        headers=auth_headers,
    )

    assert res.status_code == 200
    assert res.json()["recipient_count"] == expected
    record = mongo["communications"].find_one({})
    assert record["recipient_count"] == expected
    assert record["sent_at"] is not None


def test_specific_user(client, mongo, auth_headers):
    uid = mongo["users"].insert_one({"email": "a@mail.in"}).inserted_id

    ok = client.post(
        "/communications",
        json={"recipient_type": "specific_user", "recipient_id": str(uid), "subject": "Hi", "message": "Hello"},
        headers=auth_headers,
    )
    missing = client.post(
        "/communications",
        json={"recipient_type": "specific_user", "recipient_id": "65f000000000000000000000", "subject": "Hi", "message": "Hello"},
        headers=auth_headers,
    )
    no_id = client.post(
        "/communications",
        json={"recipient_type": "specific_user", "subject": "Hi", "message": "Hello"},
        headers=auth_headers,
    )

    assert ok.json()["recipient_count"] == 1
    assert missing.status_code == 404
    assert no_id.status_code == 422


def test_blank_fields_rejected(client, mongo, auth_headers):
    res = client.post("/communications", json={"subject": " ", "message": "Hello"}, headers=auth_headers)

    assert res.status_code == 422
    assert mongo["communications"].count_documents({}) == 0


def test_history_and_templates(client, admin, auth_headers):
    for subject in ("First", "Second"):
        client.post("/communications", json={"subject": subject, "message": "body"}, headers=auth_headers)

    history = client.get("/communications", headers=auth_headers).json()["items"]
    templates = client.get("/communications/templates", headers=auth_headers).json()["items"]

    assert {c["subject"] for c in history} == {"First", "Second"}
    assert all(c["sent_by"] == str(admin["_id"]) for c in history)
    assert [t["subject"] for t in templates] == ["Welcome to ReRoute!", "Booking Confirmation", "Special Offer"]


def test_history_is_newest_first(client, mongo, auth_headers):
    mongo["communications"].insert_many([
        {"subject": "Last week", "message": "body", "recipient_type": "all_users", "sent_at": naive_utc(days_ago=7)},
        {"subject": "Today", "message": "body", "recipient_type": "all_users", "sent_at": naive_utc()},
        {"subject": "Yesterday", "message": "body", "recipient_type": "all_users", "sent_at": naive_utc(days_ago=1)},
    ])

    history = client.get("/communications", headers=auth_headers).json()["items"]

    assert [c["subject"] for c in history] == ["Today", "Yesterday", "Last week"]
