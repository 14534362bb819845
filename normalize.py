"""
Readers for documents written by the mobile and owner apps.

Farmhouses and bookings exist in two shapes: the legacy flat fields and the
nested ones the current mobile app writes. These helpers read either.
"""
import re
from datetime import datetime, timezone, date
from typing import Any, Dict, List, Optional

PENDING_STATUSES = ["pending", "pending_approval"]
LIVE_STATUSES = ["approved", "active"]

_leading_int = re.compile(r"\s*([-+]?\d+)")


def parse_int(value: Any) -> int:
    """Leading integer of a number or numeric string, 0 when there is none."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    match = _leading_int.match(str(value))
    return int(match.group(1)) if match else 0


def as_utc(value: Any) -> Optional[datetime]:
    """Coerce stored timestamps (datetime, date, ISO string, epoch) to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        # epoch millis from JS clients, seconds otherwise
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def doc_id(doc: dict) -> str:
    return str(doc.get("_id", ""))


def ref(value: Any) -> Optional[str]:
    """Reference to another document as text; apps store ObjectIds or strings."""
    return str(value) if value else None

# Farmhouses

def farmhouse_name(fh: dict) -> str:
    return (fh.get("basicDetails") or {}).get("name") or fh.get("name") or "Unnamed Property"


def farmhouse_location(fh: dict) -> str:
    details = fh.get("basicDetails")
    if details:
        parts = [p.strip() for p in (details.get("area") or "", details.get("city") or "") if p and p.strip()]
        return ", ".join(parts) or "Location not specified"
    return fh.get("location") or "Location not specified"


def farmhouse_description(fh: dict) -> str:
    return (fh.get("basicDetails") or {}).get("description") or fh.get("description") or "No description available"


def farmhouse_images(fh: dict) -> List[str]:
    return fh.get("photoUrls") or fh.get("images") or []


def farmhouse_capacity(fh: dict) -> int:
    capacity = (fh.get("basicDetails") or {}).get("capacity")
    if capacity:
        return parse_int(capacity)
    return parse_int(fh.get("max_guests"))


def farmhouse_base_rate(fh: dict) -> int:
    weekly_day = (fh.get("pricing") or {}).get("weeklyDay")
    if weekly_day:
        return parse_int(weekly_day)
    return parse_int(fh.get("base_rate"))


def farmhouse_weekend_rate(fh: dict) -> int:
    weekend_night = (fh.get("pricing") or {}).get("weekendNight")
    if weekend_night:
        return parse_int(weekend_night)
    return parse_int(fh.get("weekend_rate"))


_AMENITY_LABELS = [
    ("bonfire", "Bonfire"),
    ("tv", "TV"),
    ("geyser", "Geyser"),
    ("carroms", "Carrom Board"),
    ("chess", "Chess"),
    ("volleyball", "Volleyball"),
]


def farmhouse_amenities(fh: dict) -> List[str]:
    amenities = fh.get("amenities")
    if not isinstance(amenities, dict):
        # legacy listings stored a plain list of labels
        return list(amenities or [])
    labels = []
    if amenities.get("pool"):
        labels.append("Swimming Pool")
    for key, label in _AMENITY_LABELS:
        if parse_int(amenities.get(key)) > 0:
            labels.append(label)
    return labels


def farmhouse_rules(fh: dict) -> List[str]:
    rules = fh.get("rules")
    if not isinstance(rules, dict):
        return list(rules or [])
    labels = []
    if rules.get("petsNotAllowed"):
        labels.append("No Pets Allowed")
    if rules.get("unmarriedNotAllowed"):
        labels.append("Unmarried Couples Not Allowed")
    if rules.get("quietHours"):
        labels.append(f"Quiet Hours: {rules['quietHours']}")
    if rules.get("customRules"):
        labels.append(rules["customRules"])
    return labels


def farmhouse_owner_id(fh: dict) -> str:
    return ref(fh.get("ownerId") or fh.get("owner_id")) or ""


def farmhouse_summary(fh: dict) -> Dict[str, Any]:
    description = farmhouse_description(fh)
    if len(description) > 100:
        description = description[:100] + "..."
    images = farmhouse_images(fh)
    return {
        "id": doc_id(fh),
        "name": farmhouse_name(fh),
        "location": farmhouse_location(fh),
        "description": description,
        "image": images[0] if images else None,
        "base_rate": farmhouse_base_rate(fh),
        "capacity": farmhouse_capacity(fh),
        "owner_id": farmhouse_owner_id(fh),
        "status": fh.get("status"),
        "commission_percentage": fh.get("commission_percentage"),
    }


def farmhouse_detail(fh: dict) -> Dict[str, Any]:
    detail = farmhouse_summary(fh)
    details = fh.get("basicDetails") or {}
    detail.update({
        "description": farmhouse_description(fh),
        "images": farmhouse_images(fh),
        "weekend_rate": farmhouse_weekend_rate(fh),
        "bedrooms": parse_int(details.get("bedrooms")),
        "contacts": [p for p in (details.get("contactPhone1"), details.get("contactPhone2")) if p],
        "map_link": details.get("mapLink"),
        "amenities": farmhouse_amenities(fh),
        "rules": farmhouse_rules(fh),
        "pricing": fh.get("pricing"),
        "kyc": fh.get("kyc"),
        "approved_by": fh.get("approved_by"),
        "approved_at": fh.get("approved_at"),
        "rejection_reason": fh.get("rejection_reason"),
        "created_at": fh.get("created_at"),
    })
    return detail

# Users

def user_view(user: dict) -> Dict[str, Any]:
    is_active = user.get("is_active")
    return {
        "id": doc_id(user),
        "name": str(user.get("name") or user.get("displayName") or "Unknown"),
        "email": str(user.get("email") or "No email"),
        "phone": str(user.get("phone") or user.get("phoneNumber") or ""),
        "role": user.get("role") or "user",
        "kyc_status": user.get("kyc_status") or user.get("kycStatus"),
        "is_active": True if is_active is None else bool(is_active),
        "created_at": user.get("created_at") or user.get("createdAt"),
        "owner_kyc": user.get("owner_kyc") or user.get("ownerKyc"),
    }

# Bookings

def booking_total(booking: dict) -> float:
    return float(booking.get("total_amount") or booking.get("total_price") or 0)


def booking_commission(booking: dict) -> float:
    return float(booking.get("commission_amount") or 0)


def booking_owner_share(booking: dict) -> float:
    return booking_total(booking) - booking_commission(booking)


def booking_view(booking: dict) -> Dict[str, Any]:
    total = booking_total(booking)
    discount = float(booking.get("discount_amount") or 0)
    original = booking.get("original_amount")
    return {
        "id": doc_id(booking),
        "user_id": ref(booking.get("user_id") or booking.get("userId")),
        "farmhouse_id": ref(booking.get("farmhouse_id") or booking.get("farmhouseId")),
        "owner_id": ref(booking.get("owner_id") or booking.get("ownerId")),
        "start_date": as_utc(booking.get("start_date") or booking.get("check_in")),
        "end_date": as_utc(booking.get("end_date") or booking.get("check_out")),
        "guest_count": parse_int(booking.get("guest_count")),
        "original_amount": float(original) if original else total + discount,
        "discount_amount": discount,
        "total_amount": total,
        "coupon_code": booking.get("coupon_code"),
        "commission_amount": booking_commission(booking),
        "owner_share": booking_owner_share(booking),
        "payment_status": booking.get("payment_status") or "pending",
        "status": booking.get("status"),
        "commission_paid_to_owner": bool(booking.get("commission_paid_to_owner")),
        "created_at": as_utc(booking.get("created_at")),
    }
