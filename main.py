import os
import logging
from typing import List, Literal, Optional
from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, Field, field_validator, model_validator
from passlib.context import CryptContext
import jwt
from datetime import datetime, timedelta, timezone
from pymongo.errors import PyMongoError

from database import get_db, create_document, get_documents, get_document, update_document, id_filter, id_values
from schemas import (
    AdminNote, ApprovalHistory, Communication, Coupon, DashboardStats, FixResult,
    RecipientType, ReviewStatus,
)
from normalize import (
    PENDING_STATUSES, LIVE_STATUSES, as_utc, doc_id, farmhouse_detail, farmhouse_location,
    farmhouse_name, farmhouse_owner_id, farmhouse_summary, booking_view, user_view,
)
import stats

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("reroute_admin")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALG = "HS256"
TOKEN_EXPIRE_MINUTES = int(os.getenv("TOKEN_EXPIRE_MINUTES", 60 * 24))
DEFAULT_COMMISSION = float(os.getenv("DEFAULT_COMMISSION", 10))

FIXABLE_STATUSES = ["draft", "submitted", "awaiting_approval"]
FIX_BATCH_SIZE = 500
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

app = FastAPI(title="ReRoute Admin API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Helpers
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class VerificationChecklist(BaseModel):
    aadhaar_verified: bool = False
    pan_verified: bool = False
    licence_verified: bool = False
    photos_quality: bool = False
    pricing_reasonable: bool = False
    location_verified: bool = False

    def missing(self) -> List[str]:
        return [name for name, checked in self.model_dump().items() if not checked]

class ApproveRequest(BaseModel):
    checklist: VerificationChecklist
    commission_percentage: float = Field(DEFAULT_COMMISSION, gt=0, le=100)

class RejectRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please provide a rejection reason")
        return v.strip()

class NoteCreate(BaseModel):
    note: str = Field(..., min_length=1)

class UserStatusUpdate(BaseModel):
    is_active: bool

class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1)
    discount_type: Literal["percentage", "fixed_amount"] = "fixed_amount"
    discount_value: float = Field(..., gt=0)
    valid_from: datetime
    valid_until: datetime
    max_uses: int = Field(1, ge=1)
    min_booking_amount: float = Field(0, ge=0)
    description: Optional[str] = None

    @model_validator(mode="after")
    def check_values(self):
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if as_utc(self.valid_until) <= as_utc(self.valid_from):
            raise ValueError("valid_until must be after valid_from")
        return self

class ReviewStatusUpdate(BaseModel):
    status: ReviewStatus

class ReviewResponse(BaseModel):
    response: str = Field(..., min_length=1)

class CommunicationCreate(BaseModel):
    recipient_type: RecipientType = "all_users"
    recipient_id: Optional[str] = None
    subject: str
    message: str

    @model_validator(mode="after")
    def check_fields(self):
        if not self.subject.strip() or not self.message.strip():
            raise ValueError("Please fill in all fields")
        if self.recipient_type == "specific_user" and not self.recipient_id:
            raise ValueError("recipient_id is required for specific_user")
        return self

MESSAGE_TEMPLATES = [
    {"name": "Welcome Message", "subject": "Welcome to ReRoute!", "message": "Thank you for joining our platform..."},
    {"name": "Booking Confirmation", "subject": "Booking Confirmation", "message": "Your booking has been confirmed..."},
    {"name": "Promotional Offer", "subject": "Special Offer", "message": "We have a special offer for you..."},
]

def require_db():
    db = get_db()
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def serialize(doc: dict) -> dict:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    doc.pop("password_hash", None)
    return doc

def find_or_404(collection: str, item_id: str, label: str) -> dict:
    require_db()
    doc = get_document(collection, item_id)
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc

# Auth utils

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)

def create_token(data: dict, expires_minutes: int = TOKEN_EXPIRE_MINUTES):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)

def get_current_admin(token: str = Depends(oauth2_scheme)):
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    require_db()
    user = get_document("users", user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.get("role") != "admin":
        logger.warning("Rejected session for non-admin user %s", user_id)
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return user

@app.get("/")
def root():
    return RedirectResponse(url="/dashboard")

@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    db = get_db()
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except PyMongoError as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        logger.exception("Database check failed")
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
    return response

# Auth endpoints
@app.post("/auth/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends()):
    db = require_db()
    user = db["users"].find_one({"email": form_data.username.strip().lower()})
    if not user or not verify_password(form_data.password, user.get("password_hash") or ""):
        raise HTTPException(status_code=400, detail="Incorrect email or password")
    if user.get("role") != "admin":
        logger.warning("Non-admin login attempt for %s", form_data.username)
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    logger.info("Admin %s signed in", user["_id"])
    token = create_token({"sub": str(user["_id"])})
    return Token(access_token=token)

@app.get("/auth/me")
def me(current=Depends(get_current_admin)):
    return user_view(current)

# Dashboard
@app.get("/dashboard", response_model=DashboardStats)
def dashboard(current=Depends(get_current_admin)):
    db = require_db()
    return stats.dashboard_stats(db)

# Farmhouse approvals
@app.get("/farmhouse-approvals")
def pending_farmhouses(current=Depends(get_current_admin)):
    require_db()
    docs = get_documents("farmhouses", {"status": {"$in": PENDING_STATUSES}})
    return {"items": [farmhouse_summary(d) for d in docs]}

@app.get("/farmhouses")
def list_farmhouses(search: Optional[str] = None, status: str = "all", current=Depends(get_current_admin)):
    require_db()
    items = get_documents("farmhouses")
    if search:
        term = search.lower()
        items = [f for f in items if term in farmhouse_name(f).lower() or term in farmhouse_location(f).lower()]
    if status != "all":
        items = [f for f in items if f.get("status") == status]
    return {"items": [farmhouse_summary(f) for f in items]}

# Declared before /farmhouses/{farmhouse_id} so the literal paths win
@app.get("/farmhouses/status-distribution")
def farmhouse_status_distribution(current=Depends(get_current_admin)):
    require_db()
    return stats.status_distribution(get_documents("farmhouses"))

@app.post("/farmhouses/fix-statuses")
def fix_farmhouse_statuses(current=Depends(get_current_admin)):
    db = require_db()
    fixed: List[FixResult] = []
    try:
        docs = list(db["farmhouses"].find({"status": {"$in": FIXABLE_STATUSES}}))
        # one update_many per batch of ids
        for start in range(0, len(docs), FIX_BATCH_SIZE):
            batch = docs[start:start + FIX_BATCH_SIZE]
            db["farmhouses"].update_many(
                {"_id": {"$in": [doc["_id"] for doc in batch]}},
                {"$set": {"status": "pending_approval", "updated_at": now_utc()}},
            )
            fixed.extend(FixResult(
                farmhouse_id=doc_id(doc),
                name=(doc.get("basicDetails") or {}).get("name") or doc.get("name") or "Unknown",
                old_status=doc["status"],
                new_status="pending_approval",
            ) for doc in batch)
    except PyMongoError:
        logger.exception("Status fix failed after %d farmhouse(s)", len(fixed))
        raise HTTPException(status_code=500, detail="Fix failed")
    logger.info("Admin %s fixed status of %d farmhouse(s)", current["_id"], len(fixed))
    return {
        "fixed": [f.model_dump() for f in fixed],
        "distribution": stats.status_distribution(get_documents("farmhouses")),
    }

def owner_stats(db, farmhouse: dict) -> dict:
    owner_id = farmhouse_owner_id(farmhouse)
    properties = []
    if owner_id:
        owner_ref = {"$in": id_values(owner_id)}
        properties = get_documents("farmhouses", {"$or": [{"ownerId": owner_ref}, {"owner_id": owner_ref}]})
    fid = doc_id(farmhouse)
    fid_ref = {"$in": id_values(fid)}
    ratings = [r.get("rating") or 0 for r in get_documents("reviews", {"farmhouse_id": fid_ref, "status": "approved"})]
    return {
        "total_properties": len(properties),
        "approved_properties": sum(1 for p in properties if p.get("status") in LIVE_STATUSES),
        "rejected_properties": sum(1 for p in properties if p.get("status") == "rejected"),
        "total_bookings": db["bookings"].count_documents({"farmhouse_id": fid_ref}),
        "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else 0,
    }

@app.get("/farmhouses/{farmhouse_id}")
def farmhouse_review(farmhouse_id: str, current=Depends(get_current_admin)):
    db = require_db()
    farmhouse = find_or_404("farmhouses", farmhouse_id, "Farmhouse")
    fid = doc_id(farmhouse)
    owner_id = farmhouse_owner_id(farmhouse)
    owner = get_document("users", owner_id) if owner_id else None
    rejections = get_documents("approval_history", {"farmhouse_id": fid, "action": "rejected"})
    notes = get_documents("admin_notes", {"farmhouse_id": fid})
    return {
        "farmhouse": farmhouse_detail(farmhouse),
        "owner": user_view(owner) if owner else None,
        "owner_stats": owner_stats(db, farmhouse),
        "rejection_history": [serialize(h) for h in rejections],
        "admin_notes": [serialize(n) for n in notes],
    }

@app.post("/farmhouses/{farmhouse_id}/approve")
def approve_farmhouse(farmhouse_id: str, body: ApproveRequest, current=Depends(get_current_admin)):
    farmhouse = find_or_404("farmhouses", farmhouse_id, "Farmhouse")
    missing = body.checklist.missing()
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Please complete all verification checklist items before approving: {', '.join(missing)}",
        )
    admin_id = str(current["_id"])
    fid = doc_id(farmhouse)
    step = "farmhouse"
    try:
        update_document("farmhouses", fid, {
            "status": "approved",
            "commission_percentage": body.commission_percentage,
            "approved_by": admin_id,
            "approved_at": now_utc(),
        })
        step = "owner kyc"
        owner_id = farmhouse_owner_id(farmhouse)
        owner = get_document("users", owner_id) if owner_id else None
        kyc_updated = False
        if owner and owner.get("owner_kyc"):
            update_document("users", owner_id, {"owner_kyc.status": "approved", "kyc_status": "approved"})
            kyc_updated = True
        step = "history"
        create_document("approval_history", ApprovalHistory(
            farmhouse_id=fid,
            action="approved",
            commission_percentage=body.commission_percentage,
            approved_by=admin_id,
            timestamp=now_utc(),
        ).model_dump(exclude_none=True))
    except PyMongoError:
        logger.exception("Approval of farmhouse %s failed at step '%s'", fid, step)
        raise HTTPException(status_code=500, detail="Failed to update farmhouse")
    logger.info("Admin %s approved farmhouse %s at %s%% commission", admin_id, fid, body.commission_percentage)
    return {"success": True, "status": "approved", "owner_kyc_approved": kyc_updated}

@app.post("/farmhouses/{farmhouse_id}/reject")
def reject_farmhouse(farmhouse_id: str, body: RejectRequest, current=Depends(get_current_admin)):
    farmhouse = find_or_404("farmhouses", farmhouse_id, "Farmhouse")
    admin_id = str(current["_id"])
    fid = doc_id(farmhouse)
    step = "farmhouse"
    try:
        update_document("farmhouses", fid, {
            "status": "rejected",
            "rejection_reason": body.reason,
            "rejected_by": admin_id,
            "rejected_at": now_utc(),
        })
        step = "history"
        create_document("approval_history", ApprovalHistory(
            farmhouse_id=fid,
            action="rejected",
            reason=body.reason,
            rejected_by=admin_id,
            timestamp=now_utc(),
        ).model_dump(exclude_none=True))
    except PyMongoError:
        logger.exception("Rejection of farmhouse %s failed at step '%s'", fid, step)
        raise HTTPException(status_code=500, detail="Failed to update farmhouse")
    logger.info("Admin %s rejected farmhouse %s", admin_id, fid)
    return {"success": True, "status": "rejected"}

@app.get("/farmhouses/{farmhouse_id}/history")
def approval_history(farmhouse_id: str, current=Depends(get_current_admin)):
    farmhouse = find_or_404("farmhouses", farmhouse_id, "Farmhouse")
    items = get_documents("approval_history", {"farmhouse_id": doc_id(farmhouse)})
    items.sort(key=lambda h: as_utc(h.get("timestamp") or h.get("created_at")) or EPOCH, reverse=True)
    return {"items": [serialize(h) for h in items]}

@app.post("/farmhouses/{farmhouse_id}/notes")
def add_admin_note(farmhouse_id: str, body: NoteCreate, current=Depends(get_current_admin)):
    farmhouse = find_or_404("farmhouses", farmhouse_id, "Farmhouse")
    note = AdminNote(farmhouse_id=doc_id(farmhouse), note=body.note, created_by=str(current["_id"]))
    try:
        note_id = create_document("admin_notes", note)
    except PyMongoError:
        logger.exception("Failed to save note on farmhouse %s", note.farmhouse_id)
        raise HTTPException(status_code=500, detail="Failed to save note")
    logger.info("Admin %s added a note to farmhouse %s", current["_id"], note.farmhouse_id)
    return {"id": note_id}

@app.delete("/farmhouses/{farmhouse_id}")
def delete_farmhouse(farmhouse_id: str, current=Depends(get_current_admin)):
    db = require_db()
    try:
        result = db["farmhouses"].delete_one(id_filter(farmhouse_id))
    except PyMongoError:
        logger.exception("Failed to delete farmhouse %s", farmhouse_id)
        raise HTTPException(status_code=500, detail="Failed to delete farmhouse")
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Farmhouse not found")
    logger.info("Admin %s deleted farmhouse %s", current["_id"], farmhouse_id)
    return {"success": True}

# Users
@app.get("/users")
def list_users(search: Optional[str] = None, role: str = "all", current=Depends(get_current_admin)):
    require_db()
    users = [user_view(u) for u in get_documents("users")]
    counts = {"all": len(users)}
    for r in ("user", "owner", "admin"):
        counts[r] = sum(1 for u in users if u["role"] == r)
    items = users
    if search:
        term = search.lower()
        items = [u for u in items if term in u["name"].lower() or term in u["email"].lower() or search in u["phone"]]
    if role != "all":
        items = [u for u in items if u["role"] == role]
    return {"items": items, "counts": counts}

@app.patch("/users/{user_id}/status")
def set_user_status(user_id: str, body: UserStatusUpdate, current=Depends(get_current_admin)):
    user = find_or_404("users", user_id, "User")
    if doc_id(user) == str(current["_id"]) and not body.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    try:
        update_document("users", doc_id(user), {"is_active": body.is_active})
    except PyMongoError:
        logger.exception("Failed to update status of user %s", doc_id(user))
        raise HTTPException(status_code=500, detail="Failed to update user")
    logger.info("Admin %s set user %s active=%s", current["_id"], doc_id(user), body.is_active)
    return {"success": True}

# Bookings
@app.get("/bookings")
def list_bookings(status: str = "all", payment_status: str = "all", current=Depends(get_current_admin)):
    require_db()
    items = [booking_view(b) for b in get_documents("bookings")]
    if status != "all":
        items = [b for b in items if b["status"] == status]
    if payment_status != "all":
        items = [b for b in items if b["payment_status"] == payment_status]
    return {"items": items}

# Coupons
@app.get("/coupons")
def list_coupons(current=Depends(get_current_admin)):
    require_db()
    return {"items": [serialize(c) for c in get_documents("coupons")]}

@app.post("/coupons")
def create_coupon(body: CouponCreate, current=Depends(get_current_admin)):
    db = require_db()
    code = body.code.strip().upper()
    if db["coupons"].find_one({"code": code}):
        raise HTTPException(status_code=400, detail="Coupon code already exists")
    coupon = Coupon(code=code, **body.model_dump(exclude={"code"}))
    try:
        coupon_id = create_document("coupons", coupon)
    except PyMongoError:
        logger.exception("Failed to create coupon %s", code)
        raise HTTPException(status_code=500, detail="Failed to create coupon")
    logger.info("Admin %s created coupon %s", current["_id"], code)
    return {"id": coupon_id, "code": code}

@app.post("/coupons/{coupon_id}/deactivate")
def deactivate_coupon(coupon_id: str, current=Depends(get_current_admin)):
    coupon = find_or_404("coupons", coupon_id, "Coupon")
    try:
        update_document("coupons", doc_id(coupon), {"is_active": False})
    except PyMongoError:
        logger.exception("Failed to deactivate coupon %s", doc_id(coupon))
        raise HTTPException(status_code=500, detail="Failed to deactivate coupon")
    logger.info("Admin %s deactivated coupon %s", current["_id"], coupon.get("code"))
    return {"success": True}

@app.delete("/coupons/{coupon_id}")
def delete_coupon(coupon_id: str, current=Depends(get_current_admin)):
    db = require_db()
    try:
        result = db["coupons"].delete_one(id_filter(coupon_id))
    except PyMongoError:
        logger.exception("Failed to delete coupon %s", coupon_id)
        raise HTTPException(status_code=500, detail="Failed to delete coupon")
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Coupon not found")
    logger.info("Admin %s deleted coupon %s", current["_id"], coupon_id)
    return {"success": True}

# Payments & payouts
@app.get("/payments")
def payments(current=Depends(get_current_admin)):
    require_db()
    bookings = get_documents("bookings")
    return {
        "stats": stats.payout_stats(bookings).model_dump(),
        "pending": [booking_view(b) for b in bookings if stats.is_payout_due(b)],
    }

@app.post("/payments/{booking_id}/mark-paid")
def mark_payout_paid(booking_id: str, current=Depends(get_current_admin)):
    booking = find_or_404("bookings", booking_id, "Booking")
    if booking.get("commission_paid_to_owner"):
        raise HTTPException(status_code=400, detail="Payout already marked as paid")
    if booking.get("payment_status") != "paid":
        raise HTTPException(status_code=400, detail="Booking has not been paid")
    try:
        update_document("bookings", doc_id(booking), {
            "commission_paid_to_owner": True,
            "payout_paid_at": now_utc(),
            "payout_paid_by": str(current["_id"]),
        })
    except PyMongoError:
        logger.exception("Failed to mark payout for booking %s", doc_id(booking))
        raise HTTPException(status_code=500, detail="Failed to mark payout")
    logger.info("Admin %s marked payout for booking %s as paid", current["_id"], doc_id(booking))
    return {"success": True}

# Revenue & analytics
@app.get("/revenue")
def revenue(period: str = "30days", current=Depends(get_current_admin)):
    require_db()
    try:
        return stats.revenue_stats(get_documents("bookings"), period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/analytics")
def analytics(current=Depends(get_current_admin)):
    require_db()
    bookings = get_documents("bookings")
    return {
        "booking_status": stats.booking_status_distribution(bookings),
        "popular_farmhouses": stats.popular_farmhouses(bookings, get_documents("farmhouses")),
        "user_growth": stats.user_growth(get_documents("users")),
    }

# Reviews
@app.get("/reviews")
def list_reviews(status: str = "all", current=Depends(get_current_admin)):
    require_db()
    items = []
    for r in get_documents("reviews"):
        r = serialize(r)
        r["status"] = r.get("status") or "pending"
        items.append(r)
    if status != "all":
        items = [r for r in items if r["status"] == status]
    return {"items": items}

@app.patch("/reviews/{review_id}/status")
def set_review_status(review_id: str, body: ReviewStatusUpdate, current=Depends(get_current_admin)):
    review = find_or_404("reviews", review_id, "Review")
    try:
        update_document("reviews", doc_id(review), {"status": body.status})
    except PyMongoError:
        logger.exception("Failed to update review %s", doc_id(review))
        raise HTTPException(status_code=500, detail="Failed to update review")
    logger.info("Admin %s set review %s to %s", current["_id"], doc_id(review), body.status)
    return {"success": True}

@app.post("/reviews/{review_id}/respond")
def respond_to_review(review_id: str, body: ReviewResponse, current=Depends(get_current_admin)):
    review = find_or_404("reviews", review_id, "Review")
    try:
        update_document("reviews", doc_id(review), {
            "admin_response": body.response,
            "responded_by": str(current["_id"]),
            "responded_at": now_utc(),
        })
    except PyMongoError:
        logger.exception("Failed to save response to review %s", doc_id(review))
        raise HTTPException(status_code=500, detail="Failed to save response")
    logger.info("Admin %s responded to review %s", current["_id"], doc_id(review))
    return {"success": True}

# Communications
def count_recipients(db, recipient_type: str, recipient_id: Optional[str] = None) -> int:
    users = db["users"]
    if recipient_type == "all_owners":
        return users.count_documents({"role": "owner"})
    if recipient_type == "active_users":
        # users without the flag are treated as active
        return users.count_documents({"is_active": {"$ne": False}})
    if recipient_type == "specific_user":
        return 1 if get_document("users", recipient_id) else 0
    return users.count_documents({})

@app.get("/communications")
def list_communications(current=Depends(get_current_admin)):
    require_db()
    items = get_documents("communications")
    items.sort(key=lambda c: as_utc(c.get("sent_at") or c.get("created_at")) or EPOCH, reverse=True)
    return {"items": [serialize(c) for c in items]}

@app.get("/communications/templates")
def communication_templates(current=Depends(get_current_admin)):
    return {"items": MESSAGE_TEMPLATES}

@app.post("/communications")
def send_communication(body: CommunicationCreate, current=Depends(get_current_admin)):
    db = require_db()
    recipient_count = count_recipients(db, body.recipient_type, body.recipient_id)
    if body.recipient_type == "specific_user" and recipient_count == 0:
        raise HTTPException(status_code=404, detail="Recipient not found")
    record = Communication(
        recipient_type=body.recipient_type,
        recipient_id=body.recipient_id,
        subject=body.subject.strip(),
        message=body.message.strip(),
        sent_at=now_utc(),
        sent_by=str(current["_id"]),
        recipient_count=recipient_count,
    )
    try:
        comm_id = create_document("communications", record)
    except PyMongoError:
        logger.exception("Failed to record communication")
        raise HTTPException(status_code=500, detail="Failed to send message")
    logger.info("Admin %s sent '%s' to %s (%d recipients)", current["_id"], record.subject, body.recipient_type, recipient_count)
    return {"id": comm_id, "recipient_count": recipient_count}

# Unknown paths land on the dashboard
@app.get("/{path:path}", include_in_schema=False)
def fallback(path: str):
    return RedirectResponse(url="/dashboard")

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
