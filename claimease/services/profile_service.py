# claimease/services/profile_service.py
"""Extended customer profile: personal, work and medical details, preferences, accounts and nominees."""

import re
from datetime import date
from typing import Optional, List, Tuple, Dict, Any

from fastapi import UploadFile

from claimease.core.constants import (
    Gender, MaritalStatus, EmploymentType, BloodGroup, SmokingStatus, DrinkingStatus,
    IdDocumentType, ProfileDocumentType, BankAccountType, Language, Theme, Currency,
    ContactMethod, ContactTime, ACTIVITY_LOG_LIMIT, ACTIVITY_PAGE_SIZE
)
from claimease.core.exceptions import BusinessRuleError
from claimease.core.logging import get_logger
from claimease.core.security import hash_password, is_valid_aadhar, is_valid_pan, sanitize_input
from claimease.models.base import utcnow
from claimease.models.profile import (
    Profile, ActivityEntry, ClientInfo, IdentificationDocument, BankAccount, Nominee,
    ProfileDocument, SecurityQuestion, PersonalInfo, WorkInfo, MedicalInfo,
    ProfilePreferences, ProfileUpdate, PersonalInfoUpdate, WorkInfoUpdate, MedicalInfoUpdate,
    ProfilePreferencesUpdate, SecurityUpdate, BankAccountCreate, NomineeCreate
)
from claimease.models.user import User, UserUpdate
from claimease.storage.profile_store import get_profile_store
from claimease.storage.user_store import get_user_store
from claimease.utils.uploads import save_upload
from claimease.utils.validators import (
    FieldErrors, calculate_age, is_valid_amount, is_valid_phone, is_valid_user_email
)

logger = get_logger(__name__)

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{9,18}$")

MAX_DEPENDENTS = 20


# ===================
# Field validation
# ===================

def _check_choice(errors: FieldErrors, value: Optional[str], choices: List[str], field: str, message: str):
    if value is not None and value not in choices:
        errors.add(field, message)


def _check_range(errors: FieldErrors, value: Optional[float], low: float, high: float, field: str, message: str):
    if value is not None and not (is_valid_amount(value, low) and value <= high):
        errors.add(field, message)


def validate_personal_info(data: PersonalInfoUpdate, errors: FieldErrors, prefix: str = ""):
    if data.date_of_birth is not None and data.date_of_birth > date.today():
        errors.add(f"{prefix}date_of_birth", "Please provide a valid date of birth")
    _check_choice(errors, data.gender, Gender.values(), f"{prefix}gender", "Invalid gender")
    _check_choice(errors, data.marital_status, MaritalStatus.values(),
                  f"{prefix}marital_status", "Invalid marital status")
    if data.annual_income is not None and not is_valid_amount(data.annual_income, 0):
        errors.add(f"{prefix}annual_income", "Annual income must be positive")
    if data.dependents is not None and not 0 <= data.dependents <= MAX_DEPENDENTS:
        errors.add(f"{prefix}dependents", f"Dependents must be between 0 and {MAX_DEPENDENTS}")

    for index, document in enumerate(data.identification_documents or []):
        field = f"{prefix}identification_documents.{index}"
        doc_type = document.get("type")
        number = str(document.get("number") or "").strip()
        if doc_type not in IdDocumentType.values():
            errors.add(f"{field}.type", "Invalid identification document type")
        elif not number:
            errors.add(f"{field}.number", "Document number is required")
        elif doc_type == IdDocumentType.PAN and not is_valid_pan(number):
            errors.add(f"{field}.number", "Please provide a valid PAN number")
        elif doc_type == IdDocumentType.AADHAR and not is_valid_aadhar(number):
            errors.add(f"{field}.number", "Please provide a valid Aadhaar number")

    contact = data.emergency_contact
    if contact is not None:
        if contact.phone and not is_valid_phone(contact.phone):
            errors.add(f"{prefix}emergency_contact.phone", "Phone number must be exactly 10 digits")
        if contact.email and not is_valid_user_email(contact.email):
            errors.add(f"{prefix}emergency_contact.email", "Please provide a valid email")


def validate_work_info(data: WorkInfoUpdate, errors: FieldErrors, prefix: str = ""):
    _check_choice(errors, data.employment_type, EmploymentType.values(),
                  f"{prefix}employment_type", "Invalid employment type")
    if data.salary is not None and not is_valid_amount(data.salary, 0):
        errors.add(f"{prefix}salary", "Salary must be positive")
    if data.join_date is not None and data.join_date > date.today():
        errors.add(f"{prefix}join_date", "Join date cannot be in the future")


def validate_medical_info(data: MedicalInfoUpdate, errors: FieldErrors, prefix: str = ""):
    _check_choice(errors, data.blood_group, BloodGroup.values(), f"{prefix}blood_group", "Invalid blood group")
    _check_range(errors, data.height, 50, 300, f"{prefix}height", "Height must be between 50 and 300 cm")
    _check_range(errors, data.weight, 20, 500, f"{prefix}weight", "Weight must be between 20 and 500 kg")
    _check_choice(errors, data.smoking_status, SmokingStatus.values(),
                  f"{prefix}smoking_status", "Invalid smoking status")
    _check_choice(errors, data.drinking_status, DrinkingStatus.values(),
                  f"{prefix}drinking_status", "Invalid drinking status")
    if data.last_health_checkup is not None and data.last_health_checkup > date.today():
        errors.add(f"{prefix}last_health_checkup", "Health checkup date cannot be in the future")


def validate_preferences(data: ProfilePreferencesUpdate, errors: FieldErrors, prefix: str = ""):
    _check_choice(errors, data.language, Language.values(), f"{prefix}language", "Invalid language")
    _check_choice(errors, data.currency, Currency.values(), f"{prefix}currency", "Invalid currency")
    _check_choice(errors, data.theme, Theme.values(), f"{prefix}theme", "Invalid theme")
    if data.communication is not None:
        _check_choice(errors, data.communication.preferred_contact_method, ContactMethod.values(),
                      f"{prefix}communication.preferred_contact_method", "Invalid contact method")
        _check_choice(errors, data.communication.preferred_contact_time, ContactTime.values(),
                      f"{prefix}communication.preferred_contact_time", "Invalid contact time")


def _merged(section, update) -> Dict[str, Any]:
    """Current section values overlaid with the fields the update sets."""
    merged = section.model_dump()
    merged.update(update.model_dump(exclude_none=True))
    return merged


class ProfileService:
    """Service for extended profile operations."""

    def __init__(self):
        self.store = get_profile_store()
        self.users = get_user_store()

    # ===================
    # Lookup
    # ===================

    def get_or_create(self, user: User) -> Profile:
        """The user's profile; a default one is created on first access."""
        profile = self.store.get_by_user(user.user_id)
        if profile is None:
            profile = Profile(
                user_id=user.user_id,
                personal_info=PersonalInfo(date_of_birth=user.date_of_birth),
            )
            profile.security.last_password_change = utcnow()
            profile.calculate_completeness()
            self.store.save(profile)
            logger.log_business("profile_created", user_id=user.user_id, profile_id=profile.profile_id)
        return profile

    def get_profile(self, user: User) -> Dict[str, Any]:
        profile = self.get_or_create(user)
        return {**profile.to_public(), "user": user.to_public()}

    def activity(self, user: User, page: int = 1, limit: int = ACTIVITY_PAGE_SIZE) -> Tuple[List[ActivityEntry], int]:
        profile = self.get_or_create(user)
        return self.store.paginate(profile.activity_log, sort_key=lambda a: a.timestamp, page=page, limit=limit)

    # ===================
    # Section updates
    # ===================

    def _record(self, profile: Profile, action: str, client: Optional[ClientInfo], **details):
        profile.activity_log.append(ActivityEntry(
            action=action,
            ip_address=client.ip_address if client else None,
            user_agent=client.user_agent if client else None,
            details=details or None,
        ))
        del profile.activity_log[:-ACTIVITY_LOG_LIMIT]

    def _commit(self, profile: Profile, action: str, client: Optional[ClientInfo], **details) -> Profile:
        self._record(profile, action, client, **details)
        profile.calculate_completeness()
        profile.touch()
        self.store.save(profile)
        logger.log_business("profile_updated", user_id=profile.user_id, action=action,
                            completeness=profile.profile_completeness)
        return profile

    def _apply_personal(self, profile: Profile, update: PersonalInfoUpdate):
        merged = _merged(profile.personal_info, update)
        for key in ("nationality", "occupation"):
            if isinstance(merged.get(key), str):
                merged[key] = sanitize_input(merged[key])
        if update.identification_documents is not None:
            merged["identification_documents"] = [
                IdentificationDocument(
                    type=d["type"],
                    number=str(d["number"]).strip(),
                    document_url=d.get("document_url"),
                )
                for d in update.identification_documents
            ]
        profile.personal_info = PersonalInfo(**merged)

    def _apply_work(self, profile: Profile, update: WorkInfoUpdate):
        merged = _merged(profile.work_info, update)
        for key in ("employee_id", "company", "department", "position", "work_location", "reporting_manager"):
            if isinstance(merged.get(key), str):
                merged[key] = sanitize_input(merged[key])
        profile.work_info = WorkInfo(**merged)

    def _apply_medical(self, profile: Profile, update: MedicalInfoUpdate):
        merged = _merged(profile.medical_info, update)
        for key in ("allergies", "chronic_conditions"):
            merged[key] = [sanitize_input(item) for item in merged[key] if (item or "").strip()]
        profile.medical_info = MedicalInfo(**merged)

    def _apply_preferences(self, profile: Profile, update: ProfilePreferencesUpdate):
        current = profile.preferences
        merged = current.model_dump()
        merged.update(update.model_dump(exclude_none=True, exclude={"notifications", "communication"}))
        if update.notifications is not None:
            merged["notifications"] = _merged(current.notifications, update.notifications)
        if update.communication is not None:
            merged["communication"] = _merged(current.communication, update.communication)
        profile.preferences = ProfilePreferences(**merged)

    def update_personal_info(self, user: User, update: PersonalInfoUpdate,
                             client: Optional[ClientInfo] = None) -> Profile:
        errors = FieldErrors()
        validate_personal_info(update, errors)
        errors.raise_if_any()

        profile = self.get_or_create(user)
        self._apply_personal(profile, update)
        return self._commit(profile, "Personal information updated", client)

    def update_work_info(self, user: User, update: WorkInfoUpdate, client: Optional[ClientInfo] = None) -> Profile:
        errors = FieldErrors()
        validate_work_info(update, errors)
        errors.raise_if_any()

        profile = self.get_or_create(user)
        self._apply_work(profile, update)
        return self._commit(profile, "Work information updated", client)

    def update_medical_info(self, user: User, update: MedicalInfoUpdate,
                            client: Optional[ClientInfo] = None) -> Profile:
        errors = FieldErrors()
        validate_medical_info(update, errors)
        errors.raise_if_any()

        profile = self.get_or_create(user)
        self._apply_medical(profile, update)
        return self._commit(profile, "Medical information updated", client)

    def update_preferences(self, user: User, update: ProfilePreferencesUpdate,
                           client: Optional[ClientInfo] = None) -> Profile:
        errors = FieldErrors()
        validate_preferences(update, errors)
        errors.raise_if_any()

        profile = self.get_or_create(user)
        self._apply_preferences(profile, update)
        return self._commit(profile, "Preferences updated", client)

    def update_security(self, user: User, update: SecurityUpdate, client: Optional[ClientInfo] = None) -> Profile:
        """Toggle two-factor and replace security questions; answers are stored as bcrypt hashes."""
        errors = FieldErrors()
        for index, item in enumerate(update.security_questions or []):
            errors.check(bool(item.question.strip()), f"security_questions.{index}.question", "Question is required")
            errors.check(bool(item.answer.strip()), f"security_questions.{index}.answer", "Answer is required")
        errors.raise_if_any()

        profile = self.get_or_create(user)
        if update.two_factor_enabled is not None:
            profile.security.two_factor_enabled = update.two_factor_enabled
        if update.security_questions is not None:
            profile.security.security_questions = [
                SecurityQuestion(
                    question=sanitize_input(item.question),
                    answer_hash=hash_password(item.answer.strip().lower()),
                )
                for item in update.security_questions
            ]

        logger.log_security("security_settings_updated", severity="low", user_id=user.user_id,
                            two_factor_enabled=profile.security.two_factor_enabled)
        return self._commit(profile, "Security settings updated", client)

    def update_profile(self, user: User, update: ProfileUpdate, client: Optional[ClientInfo] = None) -> Profile:
        """
        Update several sections at once.

        Every section is validated before anything is saved. Name and phone
        changes go through the account update rules.
        """
        errors = FieldErrors()
        if update.personal_info is not None:
            validate_personal_info(update.personal_info, errors, prefix="personal_info.")
        if update.work_info is not None:
            validate_work_info(update.work_info, errors, prefix="work_info.")
        if update.medical_info is not None:
            validate_medical_info(update.medical_info, errors, prefix="medical_info.")
        if update.preferences is not None:
            validate_preferences(update.preferences, errors, prefix="preferences.")
        errors.raise_if_any()

        account = UserUpdate(first_name=update.first_name, last_name=update.last_name, phone=update.phone)
        if account.model_dump(exclude_none=True):
            from claimease.core.dependencies import get_user_service
            get_user_service().update_user(user, user.user_id, account)

        profile = self.get_or_create(user)
        if update.personal_info is not None:
            self._apply_personal(profile, update.personal_info)
        if update.work_info is not None:
            self._apply_work(profile, update.work_info)
        if update.medical_info is not None:
            self._apply_medical(profile, update.medical_info)
        if update.preferences is not None:
            self._apply_preferences(profile, update.preferences)
        return self._commit(profile, "Profile updated", client)

    # ===================
    # Avatar, accounts & nominees
    # ===================

    async def upload_avatar(self, user: User, file: UploadFile, client: Optional[ClientInfo] = None) -> str:
        """Store the image, point the account at it and replace the profile photo document."""
        stored = await save_upload(file, "avatar", user.user_id)
        user.avatar = stored.url
        user.touch()
        self.users.save(user)

        profile = self.get_or_create(user)
        profile.documents = [d for d in profile.documents if d.type != ProfileDocumentType.PROFILE_PHOTO]
        profile.documents.append(ProfileDocument(
            name=stored.original_name,
            type=ProfileDocumentType.PROFILE_PHOTO,
            url=stored.url,
        ))
        self._commit(profile, "Profile avatar updated", client)
        return stored.url

    def add_bank_account(self, user: User, data: BankAccountCreate, client: Optional[ClientInfo] = None) -> Profile:
        """The first account, or one flagged primary, becomes the only primary account."""
        account_number = data.account_number.replace(" ", "")
        ifsc_code = data.ifsc_code.strip().upper()

        errors = FieldErrors()
        errors.check(bool(ACCOUNT_NUMBER_PATTERN.match(account_number)), "account_number",
                     "Account number must be 9 to 18 digits")
        errors.check(bool(IFSC_PATTERN.match(ifsc_code)), "ifsc_code", "Please provide a valid IFSC code")
        errors.check(bool(data.bank_name.strip()), "bank_name", "Bank name is required")
        _check_choice(errors, data.account_type, BankAccountType.values(), "account_type", "Invalid account type")
        errors.raise_if_any()

        profile = self.get_or_create(user)
        if any(a.account_number == account_number and a.ifsc_code == ifsc_code for a in profile.bank_details):
            raise BusinessRuleError("This bank account is already added")

        is_primary = data.is_primary or not profile.bank_details
        if is_primary:
            for account in profile.bank_details:
                account.is_primary = False
        account = BankAccount(
            account_number=account_number,
            ifsc_code=ifsc_code,
            bank_name=sanitize_input(data.bank_name),
            account_type=data.account_type,
            is_primary=is_primary,
        )
        profile.bank_details.append(account)
        return self._commit(profile, "Bank details added", client, account_id=account.account_id)

    def add_nominee(self, user: User, data: NomineeCreate, client: Optional[ClientInfo] = None) -> Profile:
        """Nominee shares may not total more than 100%; minors need a guardian."""
        errors = FieldErrors()
        errors.check(bool(data.name.strip()), "name", "Nominee name is required")
        errors.check(bool(data.relationship.strip()), "relationship", "Relationship is required")
        if data.share is None or not (is_valid_amount(data.share) and data.share <= 100):
            errors.add("share", "Share must be between 0 and 100")
        if data.date_of_birth is not None:
            if data.date_of_birth > date.today():
                errors.add("date_of_birth", "Please provide a valid date of birth")
            elif calculate_age(data.date_of_birth) < 18 and not (data.guardian_name or "").strip():
                errors.add("guardian_name", "Guardian name is required for minor nominees")
        if data.phone and not is_valid_phone(data.phone):
            errors.add("phone", "Phone number must be exactly 10 digits")
        if data.email and not is_valid_user_email(data.email):
            errors.add("email", "Please provide a valid email")
        errors.raise_if_any()

        profile = self.get_or_create(user)
        if profile.nominee_share_total + data.share > 100:
            raise BusinessRuleError("Total nominee share cannot exceed 100%")

        nominee = Nominee(
            name=sanitize_input(data.name),
            relationship=sanitize_input(data.relationship),
            date_of_birth=data.date_of_birth,
            address=data.address,
            phone=data.phone,
            email=data.email.lower() if data.email else None,
            share=data.share,
            guardian_name=sanitize_input(data.guardian_name),
            guardian_relation=sanitize_input(data.guardian_relation),
        )
        profile.nominees.append(nominee)
        return self._commit(profile, "Nominee details added", client, nominee_id=nominee.nominee_id)
