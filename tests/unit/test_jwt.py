"""Unit tests for password hashing, password policy and access tokens."""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from cybertrain.schemas.auth_schemas import AuthTokenPayload
from cybertrain.utils.jwt import (
    create_access_token,
    get_password_hash,
    password_problems,
    verify_password,
    verify_token,
)


@pytest.mark.unit
class TestPasswords:
    def test_hash_roundtrip(self):
        hashed = get_password_hash("Secret1")
        assert hashed != "Secret1"
        assert verify_password("Secret1", hashed)
        assert not verify_password("secret1", hashed)

    def test_malformed_hash_is_rejected(self):
        assert not verify_password("Secret1", "not-a-bcrypt-hash")

    def test_policy_accepts_good_password(self):
        assert password_problems("Abc123") == []

    @pytest.mark.parametrize("password", ["Ab1", "abcdef1", "ABCDEF1", "Abcdefg"])
    def test_policy_rejects_weak_passwords(self, password):
        assert password_problems(password)


@pytest.mark.unit
class TestTokens:
    def test_token_roundtrip_keeps_role(self):
        token = create_access_token(
            AuthTokenPayload(sub="a@example.com", role="Admin", exp=datetime.now(timezone.utc) + timedelta(minutes=5))
        )
        payload = verify_token(token)
        assert payload.sub == "a@example.com"
        assert payload.role == "Admin"

    def test_expired_token_rejected(self):
        token = create_access_token(
            AuthTokenPayload(sub="a@example.com", exp=datetime.now(timezone.utc) - timedelta(minutes=5))
        )
        with pytest.raises(HTTPException) as excinfo:
            verify_token(token)
        assert excinfo.value.status_code == 401

    def test_garbage_token_rejected(self):
        with pytest.raises(HTTPException):
            verify_token("not.a.token")

    def test_missing_token_rejected(self):
        with pytest.raises(HTTPException):
            verify_token(None)
