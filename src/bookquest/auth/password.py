"""Reader credentials: argon2id hashes and the password policy."""

from __future__ import annotations

from collections.abc import Callable

import argon2

from bookquest.config import get_settings
from bookquest.errors import ValidationError

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)

# Character classes every password needs, with the message shown when missing.
_CHARACTER_RULES: list[tuple[Callable[[str], bool], str]] = [
    (str.isupper, "Password must contain at least one uppercase letter"),
    (str.islower, "Password must contain at least one lowercase letter"),
    (str.isdigit, "Password must contain at least one digit"),
]


class PasswordStrengthError(ValidationError):
    """A new password breaks the policy. Rendered as HTTP 400."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True if ``password`` matches. Malformed hashes count as a mismatch."""
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def upgraded_hash(password: str, password_hash: str) -> str | None:
    """A fresh hash when ``password_hash`` was made with older argon2 parameters.

    Call only after ``verify_password`` succeeded. None when the stored hash
    is current.
    """
    if _hasher.check_needs_rehash(password_hash):
        return _hasher.hash(password)
    return None


def validate_password_strength(password: str) -> None:
    """
    Enforce the password policy on a new password.

    Length bounds come from settings (``BQ_PASSWORD_MIN_LENGTH`` and
    ``BQ_PASSWORD_MAX_LENGTH``); the upper bound keeps argon2 input small.

    Raises:
        PasswordStrengthError: On the first rule the password breaks.
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if not settings.password_min_length <= len(password) <= settings.password_max_length:
        msg = (
            f"Password must be between {settings.password_min_length} "
            f"and {settings.password_max_length} characters"
        )
        raise PasswordStrengthError(msg)
    for has_class, message in _CHARACTER_RULES:
        if not any(has_class(c) for c in password):
            raise PasswordStrengthError(message)
