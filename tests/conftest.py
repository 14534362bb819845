from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient()["reroute_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def admin(mongo):
    result = mongo["users"].insert_one({"email": "ops@reroute.in", "name": "Ops", "role": "admin", "is_active": True})
    return mongo["users"].find_one({"_id": result.inserted_id})


@pytest.fixture
def auth_headers(admin):
    token = main.create_token({"sub": str(admin["_id"])})
    return {"Authorization": f"Bearer {token}"}


def naive_utc(days_ago: float = 0) -> datetime:
    """Timestamps the way pymongo hands them back: naive UTC."""
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).replace(tzinfo=None)


@pytest.fixture
def owner(mongo):
    result = mongo["users"].insert_one({
        "email": "owner@farm.in",
        "name": "Ravi",
        "role": "owner",
        "kyc_status": "pending",
        "owner_kyc": {
            "person1_name": "Ravi",
            "person1_phone": "9876543210",
            "person1_aadhaar_url": "https://files/a1.pdf",
            "status": "pending",
        },
    })
    return mongo["users"].find_one({"_id": result.inserted_id})


@pytest.fixture
def pending_farmhouse(mongo, owner):
    result = mongo["farmhouses"].insert_one({
        "ownerId": str(owner["_id"]),
        "basicDetails": {
            "name": "Green Acres",
            "description": "Quiet farmhouse with a pool",
            "city": "Hyderabad",
            "area": "Moinabad",
            "capacity": "20",
            "bedrooms": "4",
            "contactPhone1": "9876543210",
        },
        "pricing": {"weeklyDay": "8000", "weekendNight": "15000"},
        "photoUrls": ["https://img/1.jpg", "https://img/2.jpg"],
        "amenities": {"pool": True, "bonfire": 1, "tv": 0},
        "rules": {"petsNotAllowed": True, "quietHours": "10pm-7am"},
        "status": "pending",
    })
    return mongo["farmhouses"].find_one({"_id": result.inserted_id})
