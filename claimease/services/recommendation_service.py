# claimease/services/recommendation_service.py
"""
Policy recommendations scored from the customer's profile.

Every policy type starts at 100. Each risk factor that applies to the type
looks up a multiplier for the customer and moves the score by
``(multiplier - 1) * scale * weight``: up for factors that make the cover more
useful (income, marriage, family size, owning a business), down for factors
that make it costlier (age, BMI, smoking, chronic conditions, family history).
The result is clamped to 0-100. The premium estimate multiplies the base rate
by the age, income, smoker and chronic condition multipliers.
"""

from math import inf
from typing import Optional, List, Dict, Any, Tuple

from claimease.core.constants import (
    PolicyType, PolicyStatus, MaritalStatus, EmploymentType, RecommendationPriority
)
from claimease.core.exceptions import NotFoundError
from claimease.core.logging import get_logger
from claimease.models.profile import Profile
from claimease.models.user import User
from claimease.storage.policy_store import get_policy_store
from claimease.utils.validators import calculate_age, round_half_up

logger = get_logger(__name__)

DEFAULT_AGE = 30
DEFAULT_COVERAGE = 500000
LIFE_COVER_INCOME_MULTIPLE = 10
DEFAULT_LIFE_COVER = 1000000

# (low, high, multiplier); a value matches the first band whose high bound covers it
Bands = List[Tuple[float, float, float]]

POLICY_TYPES: Dict[str, Dict[str, Any]] = {
    PolicyType.LIFE.value: {
        "name": "Life Insurance",
        "description": "Provides financial security to your family in case of unfortunate events",
        "base_premium_rate": 0.05,
        "factors": {
            "age": {"weight": 0.3, "bands": [(18, 30, 1.0), (31, 45, 1.2), (46, 60, 1.5), (61, 100, 2.0)]},
            "income": {"weight": 0.2, "bands": [(0, 300000, 0.8), (300001, 600000, 1.0),
                                                 (600001, 1200000, 1.3), (1200001, inf, 1.5)]},
            "smoker": {"weight": 0.25, "yes": 1.5, "no": 1.0},
            "family_history": {"weight": 0.15, "yes": 1.3, "no": 1.0},
            "marital_status": {"weight": 0.1, "yes": 1.2, "no": 1.0},
        },
    },
    PolicyType.HEALTH.value: {
        "name": "Health Insurance",
        "description": "Comprehensive medical coverage for you and your family",
        "base_premium_rate": 0.04,
        "factors": {
            "age": {"weight": 0.25, "bands": [(18, 30, 1.0), (31, 45, 1.3), (46, 60, 1.7), (61, 100, 2.2)]},
            "bmi": {"weight": 0.2, "bands": [(0, 18.5, 1.2), (18.5, 25, 1.0), (25, 30, 1.4), (30, 100, 1.8)]},
            "smoker": {"weight": 0.2, "yes": 1.6, "no": 1.0},
            "chronic_conditions": {"weight": 0.25, "yes": 1.5, "no": 1.0},
            "family_size": {"weight": 0.1, "bands": [(1, 1, 1.0), (2, 2, 1.5), (3, 4, 2.0), (5, 10, 2.5)]},
        },
    },
    PolicyType.AUTO.value: {
        "name": "Auto Insurance",
        "description": "Protect your vehicle from accidents, theft, and damages",
        "base_premium_rate": 0.03,
        "factors": {
            "age": {"weight": 0.2, "bands": [(18, 25, 1.5), (26, 40, 1.0), (41, 60, 1.1), (61, 100, 1.3)]},
            "income": {"weight": 0.15, "bands": [(0, 300000, 0.9), (300001, 600000, 1.0), (600001, inf, 1.2)]},
        },
    },
    PolicyType.HOME.value: {
        "name": "Home Insurance",
        "description": "Secure your home and belongings against unforeseen damages",
        "base_premium_rate": 0.035,
        "factors": {
            "income": {"weight": 0.25, "bands": [(0, 500000, 0.8), (500001, 1000000, 1.0), (1000001, inf, 1.3)]},
            "marital_status": {"weight": 0.15, "yes": 1.2, "no": 1.0},
            "family_size": {"weight": 0.1, "bands": [(1, 2, 1.0), (3, 4, 1.3), (5, 10, 1.5)]},
        },
    },
    PolicyType.TRAVEL.value: {
        "name": "Travel Insurance",
        "description": "Travel worry-free with comprehensive coverage abroad",
        "base_premium_rate": 0.02,
        "factors": {
            "age": {"weight": 0.2, "bands": [(18, 40, 1.0), (41, 60, 1.2), (61, 100, 1.5)]},
            "income": {"weight": 0.3, "bands": [(0, 500000, 0.7), (500001, 1000000, 1.0), (1000001, inf, 1.4)]},
            "chronic_conditions": {"weight": 0.15, "yes": 1.4, "no": 1.0},
        },
    },
    PolicyType.BUSINESS.value: {
        "name": "Business Insurance",
        "description": "Protect your business from various risks and liabilities",
        "base_premium_rate": 0.045,
        "factors": {
            "occupation": {"weight": 0.4, "yes": 1.5, "no": 0.8},
            "income": {"weight": 0.35, "bands": [(0, 600000, 0.7), (600001, 1200000, 1.0), (1200001, inf, 1.5)]},
            "age": {"weight": 0.15, "bands": [(18, 35, 1.0), (36, 50, 1.2), (51, 100, 1.4)]},
        },
    },
}

# factor -> (scale, direction)
SCORE_SCALES = {
    "age": (20, -1),
    "income": (15, 1),
    "bmi": (15, -1),
    "smoker": (20, -1),
    "chronic_conditions": (18, -1),
    "family_history": (12, -1),
    "marital_status": (10, 1),
    "family_size": (12, 1),
    "occupation": (15, 1),
}
PREMIUM_FACTORS = ("age", "income", "smoker", "chronic_conditions")

BENEFITS = {
    PolicyType.LIFE.value: [
        "Financial security for family",
        "Coverage for critical illnesses",
        "Tax benefits under Section 80C",
        "Maturity benefits",
    ],
    PolicyType.HEALTH.value: [
        "Cashless hospitalization",
        "Coverage for pre and post hospitalization",
        "Day-care procedures covered",
        "Tax benefits under Section 80D",
        "No claim bonus",
    ],
    PolicyType.AUTO.value: [
        "Coverage for accidents",
        "Third-party liability protection",
        "Personal accident cover",
        "Theft and fire protection",
        "Cashless repairs at network garages",
    ],
    PolicyType.HOME.value: [
        "Coverage for building structure",
        "Protection for household items",
        "Coverage for natural calamities",
        "Temporary accommodation expenses",
        "Personal liability coverage",
    ],
    PolicyType.TRAVEL.value: [
        "Medical emergency coverage abroad",
        "Trip cancellation protection",
        "Lost baggage compensation",
        "Flight delay coverage",
        "Emergency evacuation",
    ],
    PolicyType.BUSINESS.value: [
        "Property damage coverage",
        "Business interruption insurance",
        "Liability coverage",
        "Equipment protection",
        "Employee coverage options",
    ],
}


def band_multiplier(bands: Bands, value: Optional[float]) -> Optional[float]:
    """Multiplier of the first band covering ``value``; ``None`` outside every band."""
    if value is None or value < bands[0][0]:
        return None
    for _, high, multiplier in bands:
        if value <= high:
            return multiplier
    return None


def customer_age(profile: Profile, user: User) -> int:
    birth_date = profile.personal_info.date_of_birth or user.date_of_birth
    return calculate_age(birth_date) if birth_date else DEFAULT_AGE


def factor_multiplier(name: str, factor: Dict[str, Any], profile: Profile, age: int) -> Optional[float]:
    """Multiplier of one factor for this profile, or ``None`` when the profile does not say."""
    personal = profile.personal_info
    medical = profile.medical_info

    if name == "age":
        return band_multiplier(factor["bands"], age)
    if name == "income":
        return band_multiplier(factor["bands"], personal.annual_income or None)
    if name == "bmi":
        return band_multiplier(factor["bands"], medical.bmi)
    if name == "family_size":
        if personal.dependents is None:
            return None
        return band_multiplier(factor["bands"], personal.dependents + 1)

    if name == "smoker":
        flag: Optional[bool] = medical.is_smoker
    elif name == "chronic_conditions":
        flag = bool(medical.chronic_conditions)
    elif name == "family_history":
        flag = bool(medical.family_medical_history)
    elif name == "marital_status":
        flag = None if personal.marital_status is None else personal.marital_status == MaritalStatus.MARRIED
    elif name == "occupation":
        employment = profile.work_info.employment_type
        flag = None if employment is None else employment in EmploymentType.business_owners()
    else:
        raise ValueError(f"Unknown recommendation factor: {name}")

    if flag is None:
        return None
    return factor["yes"] if flag else factor["no"]


def calculate_score(policy_type: str, profile: Profile, age: int) -> float:
    definition = POLICY_TYPES.get(policy_type)
    if definition is None:
        return 0

    score = 100.0
    for name, factor in definition["factors"].items():
        multiplier = factor_multiplier(name, factor, profile, age)
        if multiplier is None:
            continue
        scale, direction = SCORE_SCALES[name]
        score += direction * (multiplier - 1.0) * scale * factor["weight"]
    return max(0.0, min(100.0, score))


def estimate_premium(policy_type: str, profile: Profile, age: int, coverage: float = DEFAULT_COVERAGE) -> int:
    """Annual premium estimate for ``coverage``."""
    definition = POLICY_TYPES.get(policy_type)
    if definition is None:
        return 0

    multiplier = 1.0
    for name in PREMIUM_FACTORS:
        factor = definition["factors"].get(name)
        if factor is None:
            continue
        value = factor_multiplier(name, factor, profile, age)
        if value is not None:
            multiplier *= value
    return round_half_up(coverage * definition["base_premium_rate"] * multiplier)


def priority_for(score: float) -> str:
    if score >= 80:
        return RecommendationPriority.HIGH.value
    if score >= 60:
        return RecommendationPriority.MEDIUM.value
    return RecommendationPriority.LOW.value


def reasons_for(policy_type: str, profile: Profile, age: int, score: float, has_existing: bool) -> List[str]:
    personal = profile.personal_info
    income = personal.annual_income or 0
    married = personal.marital_status == MaritalStatus.MARRIED
    reasons: List[str] = []

    if policy_type == PolicyType.LIFE:
        if married:
            reasons.append("You have family responsibilities")
        if personal.dependents:
            reasons.append(f"You have {personal.dependents} dependent(s)")
        if not has_existing and score > 70:
            reasons.append("Highly recommended based on your profile")
    elif policy_type == PolicyType.HEALTH:
        if profile.medical_info.chronic_conditions:
            reasons.append("You have pre-existing conditions")
        if age > 30:
            reasons.append("Health coverage becomes more important with age")
        if not has_existing:
            reasons.append("Essential coverage for medical emergencies")
    elif policy_type == PolicyType.AUTO:
        reasons.append("Protect your vehicle investment")
        if income > 500000:
            reasons.append("Your income level supports this coverage")
    elif policy_type == PolicyType.HOME:
        if married:
            reasons.append("Secure your family home")
        if income > 600000:
            reasons.append("Your income supports homeownership")
    elif policy_type == PolicyType.TRAVEL:
        if income > 800000:
            reasons.append("Your lifestyle may include frequent travel")
        reasons.append("Essential for international trips")
    elif policy_type == PolicyType.BUSINESS:
        if profile.work_info.employment_type in EmploymentType.business_owners():
            reasons.append("You are self-employed/business owner")
            reasons.append("Protect your business assets")
    return reasons


def recommended_coverage(policy_type: str, profile: Profile) -> int:
    if policy_type == PolicyType.LIFE:
        income = profile.personal_info.annual_income
        return round_half_up(income * LIFE_COVER_INCOME_MULTIPLE) if income else DEFAULT_LIFE_COVER
    if policy_type == PolicyType.HEALTH:
        return 500000
    return 300000


class RecommendationService:
    """Ranks every policy type for a customer."""

    def __init__(self):
        self.policies = get_policy_store()

    def _profile(self, user: User) -> Profile:
        from claimease.core.dependencies import get_profile_service
        return get_profile_service().get_or_create(user)

    def recommendations(self, user: User) -> Dict[str, Any]:
        """All policy types, best score first, with the profile summary they were scored on."""
        profile = self._profile(user)
        age = customer_age(profile, user)
        held = {
            p.policy_type for p in self.policies.get_by_customer(user.user_id)
            if p.status == PolicyStatus.ACTIVE
        }

        results = []
        for key, definition in POLICY_TYPES.items():
            has_existing = key in held
            score = calculate_score(key, profile, age)
            premium = estimate_premium(key, profile, age)
            results.append({
                "policy_type": key,
                "name": definition["name"],
                "description": definition["description"],
                "score": round_half_up(score),
                "priority": priority_for(score),
                "has_existing": has_existing,
                "estimated_premium": {
                    "monthly": round_half_up(premium / 12),
                    "annual": premium,
                },
                "recommended_coverage": recommended_coverage(key, profile),
                "reasons": reasons_for(key, profile, age, score, has_existing),
                "benefits": list(BENEFITS[key]),
            })

        # Stable sort keeps the catalogue order between equal scores
        results.sort(key=lambda r: r["score"], reverse=True)
        logger.log_business("recommendations_generated", user_id=user.user_id,
                            top=results[0]["policy_type"], age=age)

        return {
            "recommendations": results,
            "profile_completeness": profile.profile_completeness,
            "user_info": {
                "name": user.full_name,
                "age": age,
                "occupation": profile.personal_info.occupation or profile.work_info.position or "Not specified",
                "income": profile.personal_info.annual_income or 0,
            },
        }

    def for_policy_type(self, user: User, policy_type: str) -> Dict[str, Any]:
        if policy_type not in PolicyType.values():
            raise NotFoundError("Policy type", policy_type)
        result = self.recommendations(user)
        return next(r for r in result["recommendations"] if r["policy_type"] == policy_type)
