"""Password hashing and credential checks for clinic users."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

import structlog
from passlib.context import CryptContext


logger = structlog.get_logger(__name__)

# Salted PBKDF2 hashes; verification is constant time.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

LOGIN_FAILED_MESSAGE = "Email ou mot de passe incorrect"

_PRIVATE_FIELDS = ("password", "passwordHash")


@dataclass
class LoginResult:
    """Outcome of :func:`authenticate`."""

    success: bool
    user: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "user": self.user}
        return {"success": False, "error": self.error}


def hash_password(password: str) -> str:
    """Hash a plaintext password using a salted algorithm."""

    return pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Verify a plaintext password against a stored hash."""

    if not hashed:
        pwd_context.dummy_verify()
        return False
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


def public_profile(user: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``user`` without any credential material."""

    return {key: value for key, value in user.items() if key not in _PRIVATE_FIELDS}


def upgrade_legacy_password(user: Mapping[str, Any]) -> Dict[str, Any]:
    """Replace a plaintext ``password`` field with a ``passwordHash``."""

    record = dict(user)
    plaintext = record.pop("password", None)
    if plaintext and not record.get("passwordHash"):
        record["passwordHash"] = hash_password(str(plaintext))
    return record


def _email_matches(candidate: Any, email: str) -> bool:
    if not isinstance(candidate, str):
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), email.encode("utf-8"))


def authenticate(users: Iterable[Mapping[str, Any]], email: str, password: str) -> LoginResult:
    """Check ``email``/``password`` against ``users``.

    Unknown emails, wrong passwords and inactive accounts all produce the same
    failure message, and an unknown email still pays for one hash verification.
    """

    email = (email or "").strip()
    match: Optional[Mapping[str, Any]] = None
    for user in users:
        if _email_matches(user.get("email"), email):
            match = user
            break

    if match is None:
        pwd_context.dummy_verify()
        logger.info("login_failed", reason="unknown_email")
        return LoginResult(success=False, error=LOGIN_FAILED_MESSAGE)

    if not verify_password(password or "", match.get("passwordHash")):
        logger.info("login_failed", reason="bad_password", user_id=match.get("id"))
        return LoginResult(success=False, error=LOGIN_FAILED_MESSAGE)

    if match.get("isActive") is False:
        logger.info("login_failed", reason="inactive", user_id=match.get("id"))
        return LoginResult(success=False, error=LOGIN_FAILED_MESSAGE)

    logger.info("login_succeeded", user_id=match.get("id"))
    return LoginResult(success=True, user=public_profile(match))


__all__ = [
    "LOGIN_FAILED_MESSAGE",
    "LoginResult",
    "authenticate",
    "hash_password",
    "public_profile",
    "pwd_context",
    "upgrade_legacy_password",
    "verify_password",
]
