"""
Read-only aggregations behind the dashboard, payouts, revenue and
analytics views.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from normalize import (
    PENDING_STATUSES,
    as_utc,
    booking_commission,
    booking_owner_share,
    booking_total,
    booking_view,
    farmhouse_name,
    doc_id,
)
from schemas import DashboardStats, PayoutStats, RevenueStats

PERIOD_DAYS = {"7days": 7, "30days": 30, "90days": 90}


def utc_midnight(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def dashboard_stats(db, now: Optional[datetime] = None) -> DashboardStats:
    today = utc_midnight(now)
    # stored BSON dates come back naive UTC, so the query bounds are too
    today = today.replace(tzinfo=None)
    week_ago = today - timedelta(days=7)
    month_ago = today - timedelta(days=30)

    farmhouses = db["farmhouses"]
    bookings = db["bookings"]
    return DashboardStats(
        total_farmhouses=farmhouses.count_documents({}),
        pending_farmhouses=farmhouses.count_documents({"status": {"$in": PENDING_STATUSES}}),
        total_users=db["users"].count_documents({}),
        total_bookings=bookings.count_documents({}),
        active_coupons=db["coupons"].count_documents({"is_active": True}),
        today_bookings=bookings.count_documents({"created_at": {"$gte": today}}),
        week_bookings=bookings.count_documents({"created_at": {"$gte": week_ago}}),
        month_bookings=bookings.count_documents({"created_at": {"$gte": month_ago}}),
    )


def status_distribution(farmhouses: List[dict]) -> Dict[str, int]:
    return dict(Counter(fh.get("status") or "undefined" for fh in farmhouses))

# Payouts

def is_payout_due(booking: dict) -> bool:
    return booking.get("payment_status") == "paid" and not booking.get("commission_paid_to_owner")


def payout_stats(bookings: List[dict]) -> PayoutStats:
    paid = [b for b in bookings if b.get("payment_status") == "paid"]
    return PayoutStats(
        total_revenue=sum(booking_total(b) for b in bookings),
        total_commission=sum(booking_commission(b) for b in bookings),
        pending_payouts=sum(booking_owner_share(b) for b in paid if not b.get("commission_paid_to_owner")),
        completed_payouts=sum(booking_owner_share(b) for b in paid if b.get("commission_paid_to_owner")),
    )

# Revenue

def _in_window(booking: dict, start: datetime, end: datetime) -> bool:
    created = as_utc(booking.get("created_at"))
    return created is not None and start <= created < end


def revenue_stats(bookings: List[dict], period: str = "30days", now: Optional[datetime] = None) -> RevenueStats:
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown period '{period}'")
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    window = timedelta(days=PERIOD_DAYS[period])
    start = now - window
    current = [b for b in bookings if _in_window(b, start, now)]
    previous = [b for b in bookings if _in_window(b, start - window, start)]

    total_revenue = sum(booking_total(b) for b in current)
    previous_revenue = sum(booking_total(b) for b in previous)
    growth = 0.0
    if previous_revenue:
        growth = round((total_revenue - previous_revenue) / previous_revenue * 100, 2)

    grouped = defaultdict(lambda: {"revenue": 0.0, "commission": 0.0})
    for b in current:
        day = as_utc(b.get("created_at")).date().isoformat()
        grouped[day]["revenue"] += booking_total(b)
        grouped[day]["commission"] += booking_commission(b)

    return RevenueStats(
        total_revenue=total_revenue,
        total_commission=sum(booking_commission(b) for b in current),
        average_booking_value=total_revenue / len(current) if current else 0.0,
        growth_rate=growth,
        series=[{"date": day, **grouped[day]} for day in sorted(grouped)],
    )

# Analytics

def booking_status_distribution(bookings: List[dict]) -> List[dict]:
    counts = Counter(b.get("status") or "unknown" for b in bookings)
    return [{"name": name, "value": value} for name, value in counts.items()]


def popular_farmhouses(bookings: List[dict], farmhouses: List[dict], limit: int = 5) -> List[dict]:
    names = {doc_id(fh): farmhouse_name(fh) for fh in farmhouses}
    counts = Counter(booking_view(b)["farmhouse_id"] for b in bookings)
    counts.pop(None, None)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        {"farmhouse_id": fid, "name": names.get(fid, fid[:8]), "bookings": count}
        for fid, count in ranked
    ]


def user_growth(users: List[dict]) -> List[dict]:
    months = Counter()
    for user in users:
        created = as_utc(user.get("created_at") or user.get("createdAt"))
        if created:
            months[created.strftime("%Y-%m")] += 1
    return [{"month": month, "users": months[month]} for month in sorted(months)]
