"""Password hashing and the password policy."""

import argon2
import pytest

from bookquest.auth.password import (
    PasswordStrengthError,
    hash_password,
    upgraded_hash,
    validate_password_strength,
    verify_password,
)
from bookquest.errors import ValidationError


class TestPasswordHashing:

    def test_hash_is_argon2id(self):
        assert hash_password("ReadingIsFun1").startswith("$argon2id$")

    def test_verify(self):
        hashed = hash_password("ReadingIsFun1")
        assert verify_password("ReadingIsFun1", hashed)
        assert not verify_password("readingisfun1", hashed)

    def test_verify_garbage_hash(self):
        assert verify_password("ReadingIsFun1", "not-a-hash") is False

    def test_current_hash_is_not_upgraded(self):
        assert upgraded_hash("ReadingIsFun1", hash_password("ReadingIsFun1")) is None

    def test_weaker_hash_is_upgraded(self):
        old = argon2.PasswordHasher(time_cost=1, memory_cost=8192, type=argon2.Type.ID).hash("ReadingIsFun1")

        new = upgraded_hash("ReadingIsFun1", old)

        assert new is not None
        assert new != old
        assert verify_password("ReadingIsFun1", new)


class TestPasswordStrength:

    def test_accepts_strong_password(self):
        validate_password_strength("ReadingIsFun1")

    @pytest.mark.parametrize(
        ("password", "message"),
        [
            ("", "cannot be empty"),
            ("   ", "cannot be empty"),
            ("Ab1", "between 8 and 128"),
            ("alllowercase1", "uppercase"),
            ("ALLUPPERCASE1", "lowercase"),
            ("NoDigitsHere", "digit"),
        ],
    )
    def test_rejects_weak_password(self, password: str, message: str):
        with pytest.raises(PasswordStrengthError, match=message):
            validate_password_strength(password)

    def test_rejects_too_long(self):
        with pytest.raises(PasswordStrengthError, match="between 8 and 128"):
            validate_password_strength("Aa1" + "x" * 200)

    def test_is_a_validation_error(self):
        assert issubclass(PasswordStrengthError, ValidationError)
