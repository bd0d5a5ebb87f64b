# claimease/models/profile.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date

from claimease.core.constants import (
    Gender, MaritalStatus, EmploymentType, BloodGroup, SmokingStatus, DrinkingStatus,
    IdDocumentType, ProfileDocumentType, BankAccountType, Language, Theme, Currency,
    ContactMethod, ContactTime
)
from claimease.models.base import BaseEntity, generate_id, utcnow
from claimease.models.user import Address
from claimease.utils.validators import calculate_age, round_half_up

# Section weights of the completeness score
COMPLETENESS_WEIGHTS = {
    "personal_info": 30,
    "work_info": 20,
    "medical_info": 15,
    "preferences": 10,
    "security": 15,
    "documents": 10,
}
PERSONAL_COMPLETENESS_FIELDS = ("date_of_birth", "gender", "nationality", "occupation")

# ===================
# Personal & Work
# ===================

class IdentificationDocument(BaseModel):
    type: IdDocumentType
    number: str
    verified: bool = False
    document_url: Optional[str] = None

    class Config:
        use_enum_values = True


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[Address] = None


class PersonalInfo(BaseModel):
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    marital_status: Optional[MaritalStatus] = None
    nationality: str = "Indian"
    occupation: Optional[str] = None
    annual_income: Optional[float] = None
    dependents: Optional[int] = None
    identification_documents: List[IdentificationDocument] = Field(default_factory=list)
    emergency_contact: Optional[EmergencyContact] = None

    class Config:
        use_enum_values = True


class WorkInfo(BaseModel):
    employee_id: Optional[str] = None
    company: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    work_location: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    join_date: Optional[date] = None
    salary: Optional[float] = None
    reporting_manager: Optional[str] = None
    work_address: Optional[Address] = None

    class Config:
        use_enum_values = True


# ===================
# Medical
# ===================

class Medication(BaseModel):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None


class FamilyHistoryEntry(BaseModel):
    relation: str
    condition: str
    age_of_diagnosis: Optional[int] = None


class MedicalInfo(BaseModel):
    blood_group: Optional[BloodGroup] = None
    height: Optional[float] = None  # cm
    weight: Optional[float] = None  # kg
    allergies: List[str] = Field(default_factory=list)
    chronic_conditions: List[str] = Field(default_factory=list)
    medications: List[Medication] = Field(default_factory=list)
    family_medical_history: List[FamilyHistoryEntry] = Field(default_factory=list)
    smoking_status: SmokingStatus = SmokingStatus.NEVER
    drinking_status: DrinkingStatus = DrinkingStatus.NEVER
    last_health_checkup: Optional[date] = None

    class Config:
        use_enum_values = True

    @property
    def bmi(self) -> Optional[float]:
        if not self.height or not self.weight:
            return None
        meters = self.height / 100
        return round(self.weight / (meters * meters), 1)

    @property
    def is_smoker(self) -> bool:
        return self.smoking_status == SmokingStatus.CURRENT


# ===================
# Preferences & Security
# ===================

class ProfileNotificationSettings(BaseModel):
    email: bool = True
    sms: bool = True
    push: bool = True
    marketing: bool = False
    policy_reminders: bool = True
    payment_reminders: bool = True
    claim_updates: bool = True


class CommunicationSettings(BaseModel):
    preferred_contact_method: ContactMethod = ContactMethod.EMAIL
    preferred_contact_time: ContactTime = ContactTime.ANYTIME

    class Config:
        use_enum_values = True


class ProfilePreferences(BaseModel):
    language: Language = Language.EN
    timezone: str = "Asia/Kolkata"
    currency: Currency = Currency.INR
    theme: Theme = Theme.LIGHT
    notifications: ProfileNotificationSettings = Field(default_factory=ProfileNotificationSettings)
    communication: CommunicationSettings = Field(default_factory=CommunicationSettings)

    class Config:
        use_enum_values = True


class SecurityQuestion(BaseModel):
    question: str
    answer_hash: str


class SecuritySettings(BaseModel):
    two_factor_enabled: bool = False
    security_questions: List[SecurityQuestion] = Field(default_factory=list)
    last_password_change: Optional[datetime] = None


# ===================
# Documents, Accounts & Nominees
# ===================

class ProfileDocument(BaseModel):
    name: str
    type: ProfileDocumentType
    url: str
    verified: bool = False
    uploaded_at: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True


class BankAccount(BaseModel):
    account_id: str = Field(default_factory=lambda: generate_id("bnk"))
    account_number: str
    ifsc_code: str
    bank_name: str
    account_type: BankAccountType = BankAccountType.SAVINGS
    is_primary: bool = False
    verified: bool = False

    class Config:
        use_enum_values = True


class Nominee(BaseModel):
    nominee_id: str = Field(default_factory=lambda: generate_id("nom"))
    name: str
    relationship: str
    date_of_birth: Optional[date] = None
    address: Optional[Address] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    share: float
    guardian_name: Optional[str] = None
    guardian_relation: Optional[str] = None


class ActivityEntry(BaseModel):
    action: str
    timestamp: datetime = Field(default_factory=utcnow)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ClientInfo(BaseModel):
    """Where a profile change came from."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# ===================
# Main Profile Model
# ===================

class Profile(BaseEntity):
    """Extended customer details kept alongside the account."""
    profile_id: str = Field(default_factory=lambda: generate_id("prf"))
    user_id: str
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    work_info: WorkInfo = Field(default_factory=WorkInfo)
    medical_info: MedicalInfo = Field(default_factory=MedicalInfo)
    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    documents: List[ProfileDocument] = Field(default_factory=list)
    bank_details: List[BankAccount] = Field(default_factory=list)
    nominees: List[Nominee] = Field(default_factory=list)
    activity_log: List[ActivityEntry] = Field(default_factory=list)
    profile_completeness: int = 0

    @property
    def age(self) -> Optional[int]:
        dob = self.personal_info.date_of_birth
        return calculate_age(dob) if dob else None

    @property
    def nominee_share_total(self) -> float:
        return sum(n.share for n in self.nominees)

    def calculate_completeness(self) -> int:
        """Weighted share of filled-in sections, 0 to 100."""
        weights = COMPLETENESS_WEIGHTS
        personal = self.personal_info
        filled = sum(1 for name in PERSONAL_COMPLETENESS_FIELDS if getattr(personal, name))
        score = filled / len(PERSONAL_COMPLETENESS_FIELDS) * weights["personal_info"]

        if self.work_info.company and self.work_info.position:
            score += weights["work_info"]

        medical = self.medical_info
        if medical.blood_group and medical.height and medical.weight:
            score += weights["medical_info"]

        # Preferences always have defaults
        score += weights["preferences"]

        if self.security.two_factor_enabled and self.security.security_questions:
            score += weights["security"]

        required = ProfileDocumentType.required()
        verified = {d.type for d in self.documents if d.verified}
        score += sum(1 for t in required if t.value in verified) / len(required) * weights["documents"]

        self.profile_completeness = round_half_up(score)
        return self.profile_completeness

    def to_public(self) -> Dict[str, Any]:
        """Profile without answer hashes or the activity log; account numbers masked."""
        data = self.model_dump(mode="json", exclude={"activity_log"})
        data["security"]["security_questions"] = [
            {"question": q.question} for q in self.security.security_questions
        ]
        for account in data["bank_details"]:
            account["account_number"] = "*" * (len(account["account_number"]) - 4) + account["account_number"][-4:]
        data["age"] = self.age
        data["bmi"] = self.medical_info.bmi
        return data


# ===================
# Request Models
# ===================

class PersonalInfoUpdate(BaseModel):
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    marital_status: Optional[str] = None
    nationality: Optional[str] = None
    occupation: Optional[str] = None
    annual_income: Optional[float] = None
    dependents: Optional[int] = None
    identification_documents: Optional[List[Dict[str, Any]]] = None
    emergency_contact: Optional[EmergencyContact] = None


class WorkInfoUpdate(BaseModel):
    employee_id: Optional[str] = None
    company: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    work_location: Optional[str] = None
    employment_type: Optional[str] = None
    join_date: Optional[date] = None
    salary: Optional[float] = None
    reporting_manager: Optional[str] = None
    work_address: Optional[Address] = None


class MedicalInfoUpdate(BaseModel):
    blood_group: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None
    medications: Optional[List[Medication]] = None
    family_medical_history: Optional[List[FamilyHistoryEntry]] = None
    smoking_status: Optional[str] = None
    drinking_status: Optional[str] = None
    last_health_checkup: Optional[date] = None


class NotificationSettingsUpdate(BaseModel):
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None
    marketing: Optional[bool] = None
    policy_reminders: Optional[bool] = None
    payment_reminders: Optional[bool] = None
    claim_updates: Optional[bool] = None


class CommunicationUpdate(BaseModel):
    preferred_contact_method: Optional[str] = None
    preferred_contact_time: Optional[str] = None


class ProfilePreferencesUpdate(BaseModel):
    language: Optional[str] = None
    timezone: Optional[str] = None
    currency: Optional[str] = None
    theme: Optional[str] = None
    notifications: Optional[NotificationSettingsUpdate] = None
    communication: Optional[CommunicationUpdate] = None


class SecurityQuestionInput(BaseModel):
    question: str = ""
    answer: str = ""


class SecurityUpdate(BaseModel):
    two_factor_enabled: Optional[bool] = None
    security_questions: Optional[List[SecurityQuestionInput]] = None


class BankAccountCreate(BaseModel):
    account_number: str = ""
    ifsc_code: str = ""
    bank_name: str = ""
    account_type: str = BankAccountType.SAVINGS.value
    is_primary: bool = False


class NomineeCreate(BaseModel):
    name: str = ""
    relationship: str = ""
    date_of_birth: Optional[date] = None
    address: Optional[Address] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    share: Optional[float] = None
    guardian_name: Optional[str] = None
    guardian_relation: Optional[str] = None


class ProfileUpdate(BaseModel):
    """General update; account name and phone travel with the profile sections."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    personal_info: Optional[PersonalInfoUpdate] = None
    work_info: Optional[WorkInfoUpdate] = None
    medical_info: Optional[MedicalInfoUpdate] = None
    preferences: Optional[ProfilePreferencesUpdate] = None
