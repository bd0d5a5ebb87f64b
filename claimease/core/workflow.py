"""
Claim and policy status lifecycles.

Each lifecycle is one explicit table of ``current -> {target -> allowed roles}``.
Services, API routes and dashboard menus all ask this module whether a move is
allowed; nothing else compares status strings.
"""

from typing import Dict, FrozenSet, List, Optional

from claimease.core.constants import (
    ClaimStatus, PolicyStatus, UserRole, TRANSITION_NOTES_MAX_LENGTH
)
from claimease.core.exceptions import (
    InvalidStatusTransition, TransitionNotAuthorized, ValidationFailedError
)
from claimease.utils.validators import is_plain_text

STAFF: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.AGENT})
ADMIN_ONLY: FrozenSet[UserRole] = frozenset({UserRole.ADMIN})


# ===================
# Claim lifecycle
# ===================

CLAIM_TRANSITIONS: Dict[ClaimStatus, Dict[ClaimStatus, FrozenSet[UserRole]]] = {
    ClaimStatus.SUBMITTED: {
        ClaimStatus.UNDER_REVIEW: STAFF,
        ClaimStatus.CLOSED: STAFF,
        ClaimStatus.CANCELLED: STAFF,
    },
    ClaimStatus.UNDER_REVIEW: {
        ClaimStatus.INVESTIGATING: STAFF,
        ClaimStatus.APPROVED: ADMIN_ONLY,
        ClaimStatus.REJECTED: ADMIN_ONLY,
        ClaimStatus.CLOSED: STAFF,
        ClaimStatus.CANCELLED: STAFF,
    },
    ClaimStatus.INVESTIGATING: {
        ClaimStatus.APPROVED: ADMIN_ONLY,
        ClaimStatus.REJECTED: ADMIN_ONLY,
        ClaimStatus.CLOSED: STAFF,
        ClaimStatus.CANCELLED: STAFF,
    },
    ClaimStatus.APPROVED: {},
    ClaimStatus.REJECTED: {},
    ClaimStatus.CLOSED: {},
    ClaimStatus.CANCELLED: {},
}


# ===================
# Policy lifecycle
# ===================

POLICY_TRANSITIONS: Dict[PolicyStatus, Dict[PolicyStatus, FrozenSet[UserRole]]] = {
    PolicyStatus.PENDING: {
        PolicyStatus.ACTIVE: STAFF,
        PolicyStatus.CANCELLED: STAFF,
    },
    PolicyStatus.ACTIVE: {
        PolicyStatus.INACTIVE: STAFF,
        PolicyStatus.CANCELLED: STAFF,
        PolicyStatus.EXPIRED: STAFF,
        PolicyStatus.SUSPENDED: STAFF,
    },
    PolicyStatus.SUSPENDED: {
        PolicyStatus.ACTIVE: STAFF,
        PolicyStatus.CANCELLED: STAFF,
    },
    PolicyStatus.INACTIVE: {
        PolicyStatus.ACTIVE: STAFF,
        PolicyStatus.CANCELLED: STAFF,
    },
    PolicyStatus.CANCELLED: {},
    PolicyStatus.EXPIRED: {},
}


# str-valued enums hash and compare equal to their plain values, so the
# tables accept either form for statuses and roles.

def _value(item) -> str:
    return getattr(item, "value", item)


def _check(table, entity: str, current: str, target: str, role: str):
    targets = table.get(current, {})
    if target not in targets:
        raise InvalidStatusTransition(entity, _value(current), _value(target))
    if role not in targets[target]:
        raise TransitionNotAuthorized(entity, _value(target), _value(role))


def _allowed(table, current: str, role: str) -> List[str]:
    targets = table.get(current, {})
    return [target.value for target, roles in targets.items() if role in roles]


def check_claim_transition(current: str, target: str, role: str):
    """
    Validate a claim status move.

    Raises:
        InvalidStatusTransition: ``current -> target`` is not in the lifecycle.
        TransitionNotAuthorized: the move exists but ``role`` may not make it.
    """
    _check(CLAIM_TRANSITIONS, "claim", current, target, role)


def can_transition_claim(current: str, target: str, role: str) -> bool:
    return _value(target) in _allowed(CLAIM_TRANSITIONS, current, role)


def allowed_claim_transitions(current: str, role: str) -> List[str]:
    """Targets reachable from ``current`` for ``role``."""
    return _allowed(CLAIM_TRANSITIONS, current, role)


def check_policy_transition(current: str, target: str, role: str):
    _check(POLICY_TRANSITIONS, "policy", current, target, role)


def can_transition_policy(current: str, target: str, role: str) -> bool:
    return _value(target) in _allowed(POLICY_TRANSITIONS, current, role)


def allowed_policy_transitions(current: str, role: str) -> List[str]:
    return _allowed(POLICY_TRANSITIONS, current, role)


def is_terminal_claim_status(status: str) -> bool:
    return not CLAIM_TRANSITIONS.get(status, {})


# ===================
# Transition notes
# ===================

def validate_transition_notes(notes: Optional[str], field: str = "notes") -> Optional[str]:
    """Blank notes become ``None``; otherwise plain text up to the length limit."""
    if notes is None:
        return None
    notes = notes.strip()
    if not notes:
        return None
    if len(notes) > TRANSITION_NOTES_MAX_LENGTH:
        raise ValidationFailedError.single(
            field, f"Notes cannot exceed {TRANSITION_NOTES_MAX_LENGTH} characters"
        )
    if not is_plain_text(notes):
        raise ValidationFailedError.single(field, "Notes must be plain text")
    return notes


# ===================
# Action menus
# ===================

def claim_actions_for(role: str, claim, user_id: Optional[str] = None) -> List[str]:
    """
    Actions shown in a claim's row menu for the given viewer.

    ``claim`` needs ``status`` and ``customer_id`` attributes.
    """
    role = _value(role)
    status = _value(claim.status)
    actions = ["view"]

    if can_transition_claim(status, ClaimStatus.UNDER_REVIEW, role):
        actions.append("start_review")
    if can_transition_claim(status, ClaimStatus.APPROVED, role):
        actions.append("approve")
    if can_transition_claim(status, ClaimStatus.REJECTED, role):
        actions.append("reject")

    is_owner = role == UserRole.CUSTOMER.value and claim.customer_id == user_id
    if role == UserRole.ADMIN.value or (is_owner and status == ClaimStatus.SUBMITTED.value):
        actions.append("edit")
    if role == UserRole.ADMIN.value:
        actions.append("delete")

    return actions
