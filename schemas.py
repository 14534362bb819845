"""
ReRoute Admin - Database Schemas

Each Pydantic model describes a document in a MongoDB collection.
Collection names are plural snake case (e.g., Farmhouse -> "farmhouses",
ApprovalHistory -> "approval_history").

Documents are also written by the mobile and owner apps, so most fields
are optional and readers go through the helpers in `normalize.py`.
"""
from datetime import datetime
from typing import Optional, List, Literal, Any, Dict
from pydantic import BaseModel, Field, EmailStr

FarmhouseStatus = Literal["pending", "pending_approval", "approved", "active", "rejected"]
KycStatus = Literal["pending", "approved", "rejected"]

# Users
class OwnerKYC(BaseModel):
    person1_name: str
    person1_phone: str
    person1_aadhaar_url: str
    person2_name: Optional[str] = None
    person2_phone: Optional[str] = None
    person2_aadhaar_url: Optional[str] = None
    company_pan_url: Optional[str] = None
    labour_licence_url: Optional[str] = None
    status: KycStatus = "pending"

class User(BaseModel):
    email: EmailStr
    name: str
    phone: Optional[str] = None
    role: Literal["user", "owner", "admin"] = "user"
    is_active: bool = True
    kyc_status: Optional[KycStatus] = None
    owner_kyc: Optional[OwnerKYC] = None
    password_hash: Optional[str] = None

# Farmhouses (written by the owner app; collection descriptor)
class BasicDetails(BaseModel):
    name: str
    description: str = ""
    locationText: str = ""
    city: str = ""
    area: str = ""
    capacity: str = Field("0", description="Stored as a string by the mobile app")
    bedrooms: str = "0"
    contactPhone1: str = ""
    contactPhone2: Optional[str] = None
    mapLink: Optional[str] = None

class Pricing(BaseModel):
    weekendDay: str = "0"
    weekendNight: str = "0"
    weeklyDay: str = "0"
    weeklyNight: str = "0"
    occasionalDay: str = "0"
    occasionalNight: str = "0"
    customPricing: List[Any] = []

class Amenities(BaseModel):
    bonfire: int = 0
    carroms: int = 0
    chess: int = 0
    geyser: int = 0
    pool: bool = False
    tv: int = 0
    volleyball: int = 0
    customAmenities: Optional[Any] = None

class Rules(BaseModel):
    petsNotAllowed: bool = False
    unmarriedNotAllowed: bool = False
    quietHours: Optional[str] = None
    customRules: Optional[str] = None

class KycPerson(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    aadhaarNumber: Optional[str] = None
    aadhaarFrontUrl: Optional[str] = None
    aadhaarBackUrl: Optional[str] = None

class BankDetails(BaseModel):
    accountNumber: str
    ifscCode: str
    accountHolderName: str
    branchName: str = ""

class FarmhouseKYC(BaseModel):
    agreedToTerms: bool = False
    panNumber: str = ""
    companyPANUrl: Optional[str] = None
    labourDocUrl: Optional[str] = None
    person1: KycPerson
    person2: KycPerson = KycPerson()
    bankDetails: Optional[BankDetails] = None

class Farmhouse(BaseModel):
    ownerId: str = Field(..., description="Owner user id")
    basicDetails: Optional[BasicDetails] = None
    pricing: Optional[Pricing] = None
    photoUrls: List[str] = []
    amenities: Optional[Amenities] = None
    rules: Optional[Rules] = None
    kyc: Optional[FarmhouseKYC] = None
    status: FarmhouseStatus = "pending"
    commission_percentage: Optional[float] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None

# Bookings (written by the mobile app; collection descriptor)
class Booking(BaseModel):
    user_id: str
    farmhouse_id: str
    owner_id: str
    start_date: datetime
    end_date: datetime
    guest_count: int = Field(1, ge=1)
    original_amount: float = Field(0, ge=0)
    discount_amount: float = Field(0, ge=0)
    total_amount: float = Field(..., ge=0)
    coupon_code: Optional[str] = None
    payment_status: Literal["pending", "paid", "refunded"] = "pending"
    status: Literal["confirmed", "cancelled", "completed"] = "confirmed"
    commission_amount: float = Field(0, ge=0)
    commission_paid_to_owner: bool = False

# Coupons
class Coupon(BaseModel):
    code: str
    discount_type: Literal["percentage", "fixed_amount"] = "fixed_amount"
    discount_value: float = Field(..., gt=0)
    valid_from: datetime
    valid_until: datetime
    max_uses: int = Field(1, ge=1, description="Coupons are one-time use by default")
    current_uses: int = Field(0, ge=0)
    is_active: bool = True
    min_booking_amount: float = Field(0, ge=0)
    description: Optional[str] = None

# Reviews (written by the mobile app; collection descriptor)
ReviewStatus = Literal["pending", "approved", "rejected", "flagged"]

class Review(BaseModel):
    user_id: str
    farmhouse_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    status: ReviewStatus = "pending"
    admin_response: Optional[str] = None

# Communications
RecipientType = Literal["all_users", "all_owners", "active_users", "specific_user"]

class Communication(BaseModel):
    recipient_type: RecipientType
    recipient_id: Optional[str] = None
    subject: str
    message: str
    sent_at: datetime
    sent_by: str
    recipient_count: int = 0

# Audit trail
class ApprovalHistory(BaseModel):
    farmhouse_id: str
    action: Literal["approved", "rejected"]
    commission_percentage: Optional[float] = None
    approved_by: Optional[str] = None
    reason: Optional[str] = None
    rejected_by: Optional[str] = None
    timestamp: datetime

class AdminNote(BaseModel):
    farmhouse_id: str
    note: str
    created_by: str

# Read models
class DashboardStats(BaseModel):
    total_farmhouses: int = 0
    pending_farmhouses: int = 0
    total_users: int = 0
    total_bookings: int = 0
    active_coupons: int = 0
    today_bookings: int = 0
    week_bookings: int = 0
    month_bookings: int = 0

class FixResult(BaseModel):
    farmhouse_id: str
    name: str
    old_status: str
    new_status: str

class PayoutStats(BaseModel):
    total_revenue: float = 0.0
    total_commission: float = 0.0
    pending_payouts: float = 0.0
    completed_payouts: float = 0.0

class RevenueStats(BaseModel):
    total_revenue: float = 0.0
    total_commission: float = 0.0
    average_booking_value: float = 0.0
    growth_rate: float = 0.0
    series: List[Dict[str, Any]] = []
