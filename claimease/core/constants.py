# claimease/core/constants.py
"""Application constants and enums."""

from enum import Enum
from typing import List


class _ValuesMixin:
    @classmethod
    def values(cls) -> List[str]:
        return [e.value for e in cls]


# ===================
# User Constants
# ===================

class UserRole(_ValuesMixin, str, Enum):
    ADMIN = "admin"
    AGENT = "agent"
    CUSTOMER = "customer"

    @classmethod
    def staff(cls) -> List["UserRole"]:
        return [cls.ADMIN, cls.AGENT]


class UserStatus(_ValuesMixin, str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# ===================
# Policy Constants
# ===================

class PolicyType(_ValuesMixin, str, Enum):
    LIFE = "life"
    HEALTH = "health"
    AUTO = "auto"
    HOME = "home"
    TRAVEL = "travel"
    BUSINESS = "business"


class PolicyStatus(_ValuesMixin, str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    SUSPENDED = "suspended"

    @classmethod
    def terminal_statuses(cls) -> List["PolicyStatus"]:
        return [cls.CANCELLED, cls.EXPIRED]


class PremiumFrequency(_ValuesMixin, str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi-annual"
    ANNUAL = "annual"

    @property
    def months(self) -> int:
        return {
            "monthly": 1,
            "quarterly": 3,
            "semi-annual": 6,
            "annual": 12,
        }[self.value]


class RiskCategory(_ValuesMixin, str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ===================
# Claim Constants
# ===================

class ClaimType(_ValuesMixin, str, Enum):
    DEATH = "death"
    DISABILITY = "disability"
    MEDICAL = "medical"
    ACCIDENT = "accident"
    PROPERTY_DAMAGE = "property_damage"
    THEFT = "theft"
    FIRE = "fire"
    NATURAL_DISASTER = "natural_disaster"
    OTHER = "other"


class ClaimStatus(_ValuesMixin, str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    INVESTIGATING = "investigating"
    APPROVED = "approved"
    REJECTED = "rejected"
    CLOSED = "closed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal_statuses(cls) -> List["ClaimStatus"]:
        """Statuses that cannot be changed."""
        return [cls.APPROVED, cls.REJECTED, cls.CLOSED, cls.CANCELLED]

    @classmethod
    def active_statuses(cls) -> List["ClaimStatus"]:
        return [cls.SUBMITTED, cls.UNDER_REVIEW, cls.INVESTIGATING]


class ClaimPriority(_ValuesMixin, str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class InvestigationRecommendation(_ValuesMixin, str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    NEEDS_MORE_INFO = "needs_more_info"


# ===================
# Payment Constants
# ===================

class PaymentType(_ValuesMixin, str, Enum):
    PREMIUM = "premium"
    CLAIM_SETTLEMENT = "claim_settlement"
    REFUND = "refund"
    PENALTY = "penalty"
    LATE_FEE = "late_fee"


class PaymentMethod(_ValuesMixin, str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    NET_BANKING = "net_banking"
    WALLET = "wallet"
    CASH = "cash"
    CHEQUE = "cheque"


class PaymentStatus(_ValuesMixin, str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def open_statuses(cls) -> List["PaymentStatus"]:
        return [cls.PENDING, cls.PROCESSING]


class Currency(_ValuesMixin, str, Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


# ===================
# Notification Constants
# ===================

class NotificationType(_ValuesMixin, str, Enum):
    PAYMENT_DUE = "payment_due"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_OVERDUE = "payment_overdue"
    CLAIM_SUBMITTED = "claim_submitted"
    CLAIM_UPDATED = "claim_updated"
    CLAIM_APPROVED = "claim_approved"
    CLAIM_REJECTED = "claim_rejected"
    POLICY_CREATED = "policy_created"
    POLICY_EXPIRING = "policy_expiring"
    POLICY_RENEWED = "policy_renewed"
    POLICY_CANCELLED = "policy_cancelled"
    SYSTEM_ALERT = "system_alert"
    ACCOUNT_UPDATE = "account_update"
    DOCUMENT_REQUIRED = "document_required"
    GENERAL = "general"


class NotificationPriority(_ValuesMixin, str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(_ValuesMixin, str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    READ = "read"


# ===================
# Profile Constants
# ===================

class Gender(_ValuesMixin, str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class MaritalStatus(_ValuesMixin, str, Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"
    SEPARATED = "separated"


class EmploymentType(_ValuesMixin, str, Enum):
    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    FREELANCE = "freelance"
    SELF_EMPLOYED = "self-employed"
    BUSINESS = "business"
    UNEMPLOYED = "unemployed"
    RETIRED = "retired"

    @classmethod
    def business_owners(cls) -> List["EmploymentType"]:
        return [cls.SELF_EMPLOYED, cls.BUSINESS]


class BloodGroup(_ValuesMixin, str, Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class SmokingStatus(_ValuesMixin, str, Enum):
    NEVER = "never"
    FORMER = "former"
    CURRENT = "current"


class DrinkingStatus(_ValuesMixin, str, Enum):
    NEVER = "never"
    OCCASIONALLY = "occasionally"
    REGULARLY = "regularly"


class IdDocumentType(_ValuesMixin, str, Enum):
    AADHAR = "aadhar"
    PAN = "pan"
    PASSPORT = "passport"
    DRIVING_LICENSE = "driving_license"
    VOTER_ID = "voter_id"


class ProfileDocumentType(_ValuesMixin, str, Enum):
    PROFILE_PHOTO = "profile_photo"
    ID_PROOF = "id_proof"
    ADDRESS_PROOF = "address_proof"
    INCOME_PROOF = "income_proof"
    MEDICAL_REPORT = "medical_report"
    OTHER = "other"

    @classmethod
    def required(cls) -> List["ProfileDocumentType"]:
        """Verified documents counted towards profile completeness."""
        return [cls.PROFILE_PHOTO, cls.ID_PROOF, cls.ADDRESS_PROOF]


class BankAccountType(_ValuesMixin, str, Enum):
    SAVINGS = "savings"
    CURRENT = "current"
    SALARY = "salary"


class Language(_ValuesMixin, str, Enum):
    EN = "en"
    HI = "hi"
    ES = "es"
    FR = "fr"
    DE = "de"
    ZH = "zh"


class Theme(_ValuesMixin, str, Enum):
    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class ContactMethod(_ValuesMixin, str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    SMS = "sms"
    APP = "app"


class ContactTime(_ValuesMixin, str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    ANYTIME = "anytime"


class RecommendationPriority(_ValuesMixin, str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ===================
# Upload Constants
# ===================

IMAGE_MIME_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
]

DOCUMENT_MIME_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
]

# Upload field name -> subdirectory under UPLOAD_DIR
UPLOAD_SUBDIRECTORIES = {
    "avatar": "profiles",
    "profileImage": "profiles",
    "claimDocument": "claims",
    "policyDocument": "policies",
    "idDocument": "documents",
}
DEFAULT_UPLOAD_SUBDIRECTORY = "general"

IMAGE_ONLY_FIELDS = ["avatar", "profileImage"]

# ===================
# Limits
# ===================

DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 1000
TRANSITION_NOTES_MAX_LENGTH = 1000
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
ACTIVITY_LOG_LIMIT = 100
ACTIVITY_PAGE_SIZE = 20
