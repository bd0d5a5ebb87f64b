# claimease/core/security.py
"""Security primitives: tokens, hashing, encryption, input checks and identifiers."""

import hashlib
import hmac
import ipaddress
import re
import secrets
import string
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt
import jwt
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from claimease.core.config import settings
from claimease.core.exceptions import AuthenticationError

# ===================
# Patterns
# ===================

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INDIAN_PHONE_PATTERN = re.compile(r"^(\+91[\-\s]?)?[0]?(91)?[789]\d{9}$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
AADHAR_PATTERN = re.compile(r"^[2-9][0-9]{11}$")

_SANITIZE_PATTERNS = [
    re.compile(r"[<>]"),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
]

_ALPHANUMERIC = string.ascii_uppercase + string.digits

SENSITIVE_FIELDS = ["password", "ssn", "card_number", "cvv"]


# ===================
# Random values
# ===================

def generate_secure_token(length: int = 32) -> str:
    """Hex token built from ``length`` random bytes."""
    return secrets.token_hex(length)


def generate_otp(length: int = 6) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def _random_code(length: int) -> str:
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def _base36(number: int) -> str:
    digits = string.digits + string.ascii_lowercase
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def generate_api_key(prefix: str = "ins") -> str:
    return f"{prefix}_{_base36(_timestamp_ms())}_{secrets.token_hex(16)}"


def generate_policy_number(policy_type: str) -> str:
    """e.g. ``LI12345678ABC123`` for a life policy."""
    type_code = str(policy_type)[:2].upper()
    return f"{type_code}{str(_timestamp_ms())[-8:]}{_random_code(6)}"


def generate_claim_number() -> str:
    return f"CLM{str(_timestamp_ms())[-8:]}{_random_code(4)}"


# ===================
# Hashing & encryption
# ===================

def hash_data(data: str, salt: Optional[str] = None) -> str:
    """HMAC-SHA256 of ``data`` keyed by ``salt`` (or the JWT secret)."""
    key = (salt or settings.JWT_SECRET).encode("utf-8")
    return hmac.new(key, data.encode("utf-8"), hashlib.sha256).hexdigest()


def sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _encryption_key(key: Optional[str]) -> bytes:
    return hashlib.sha256((key or settings.JWT_SECRET).encode("utf-8")).digest()


def encrypt(text: str, key: Optional[str] = None) -> Dict[str, str]:
    """
    Encrypt text with AES-256-GCM.

    Returns:
        Dict with hex-encoded ``encrypted``, ``iv`` and ``auth_tag``.
    """
    iv = secrets.token_bytes(12)
    sealed = AESGCM(_encryption_key(key)).encrypt(iv, text.encode("utf-8"), None)
    return {
        "encrypted": sealed[:-16].hex(),
        "iv": iv.hex(),
        "auth_tag": sealed[-16:].hex(),
    }


def decrypt(payload: Dict[str, str], key: Optional[str] = None) -> str:
    """Reverse :func:`encrypt`. Raises ``ValueError`` if the data was tampered with."""
    try:
        sealed = bytes.fromhex(payload["encrypted"]) + bytes.fromhex(payload["auth_tag"])
        plain = AESGCM(_encryption_key(key)).decrypt(bytes.fromhex(payload["iv"]), sealed, None)
    except (InvalidTag, KeyError, ValueError) as e:
        raise ValueError("Decryption failed") from e
    return plain.decode("utf-8")


# ===================
# Passwords
# ===================

def validate_password_strength(password: str) -> Dict[str, Any]:
    """Check every strength rule and report all failures."""
    errors: List[str] = []
    password = password or ""
    min_length = settings.PASSWORD_MIN_LENGTH

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters long")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not re.search(r"[^A-Za-z0-9\s]", password):
        errors.append("Password must contain at least one special character")

    return {"is_valid": not errors, "errors": errors}


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# ===================
# JWT
# ===================

def create_access_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "type": "refresh",
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS),
    }
    return jwt.encode(payload, settings.JWT_REFRESH_SECRET, algorithm=settings.JWT_ALGORITHM)


def generate_tokens(user_id: str) -> Dict[str, str]:
    return {
        "access_token": create_access_token(user_id),
        "refresh_token": create_refresh_token(user_id),
    }


def verify_token(token: str, refresh: bool = False) -> Dict[str, Any]:
    """Decode a token, raising ``AuthenticationError`` when it is invalid or expired."""
    secret = settings.JWT_REFRESH_SECRET if refresh else settings.JWT_SECRET
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    if refresh and payload.get("type") != "refresh":
        raise AuthenticationError("Invalid refresh token")
    if not refresh and payload.get("type") == "refresh":
        raise AuthenticationError("Invalid token")
    return payload


# ===================
# Rate limiting
# ===================

# identifier -> {"hits": request timestamps, "expires": when the newest hit leaves its window}
_rate_limit_store: Dict[str, Dict[str, Any]] = {}
_rate_limit_lock = threading.Lock()
_last_sweep = 0.0

RATE_LIMIT_SWEEP_SECONDS = 60


def _sweep_rate_limits(now: float) -> int:
    expired = [key for key, entry in _rate_limit_store.items() if entry["expires"] <= now]
    for key in expired:
        del _rate_limit_store[key]
    return len(expired)


def prune_rate_limits(now: Optional[float] = None) -> int:
    """Forget identifiers with no request left in their window; returns how many were dropped."""
    with _rate_limit_lock:
        return _sweep_rate_limits(time.time() if now is None else now)


def check_rate_limit(identifier: str, max_requests: int = 100, window_seconds: int = 15 * 60) -> Dict[str, Any]:
    """Sliding-window counter keyed by ``identifier``."""
    global _last_sweep
    now = time.time()
    window_start = now - window_seconds

    with _rate_limit_lock:
        if now - _last_sweep >= RATE_LIMIT_SWEEP_SECONDS:
            _sweep_rate_limits(now)
            _last_sweep = now

        entry = _rate_limit_store.get(identifier)
        requests = [ts for ts in entry["hits"] if ts > window_start] if entry else []

        if len(requests) >= max_requests:
            newest = requests[-1] if requests else now
            _rate_limit_store[identifier] = {"hits": requests, "expires": newest + window_seconds}
            return {
                "allowed": False,
                "remaining": 0,
                "reset_time": (requests[0] if requests else now) + window_seconds,
            }

        requests.append(now)
        _rate_limit_store[identifier] = {"hits": requests, "expires": now + window_seconds}
        return {
            "allowed": True,
            "remaining": max_requests - len(requests),
            "reset_time": now + window_seconds,
        }


def rate_limit_keys() -> List[str]:
    with _rate_limit_lock:
        return list(_rate_limit_store)


def reset_rate_limits():
    global _last_sweep
    with _rate_limit_lock:
        _rate_limit_store.clear()
        _last_sweep = 0.0


# ===================
# Input handling
# ===================

def sanitize_input(value: Any) -> Any:
    """Strip markup and inline-script patterns from strings; other values pass through."""
    if not isinstance(value, str):
        return value
    for pattern in _SANITIZE_PATTERNS:
        value = pattern.sub("", value)
    return value.strip()


def mask_value(value: str) -> str:
    if len(value) <= 4:
        return "*" * len(value)
    return value[:2] + "*" * (len(value) - 4) + value[-2:]


def mask_sensitive_data(data: Dict[str, Any], fields: Optional[List[str]] = None) -> Dict[str, Any]:
    """Return a copy of ``data`` with sensitive string fields partially masked."""
    masked = dict(data)
    for field in fields or SENSITIVE_FIELDS:
        value = masked.get(field)
        if isinstance(value, str):
            masked[field] = mask_value(value)
    return masked


def is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_valid_email(value: str) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value))


def is_valid_phone_number(value: str) -> bool:
    return bool(value) and bool(INDIAN_PHONE_PATTERN.match(value))


def is_valid_pan(value: str) -> bool:
    return bool(value) and bool(PAN_PATTERN.match(value))


def is_valid_aadhar(value: str) -> bool:
    return bool(value) and bool(AADHAR_PATTERN.match(value))
