"""Unit tests for password hashing and access tokens."""
import uuid
from datetime import timedelta

import pytest

from app.services.errors import AuthenticationError
from app.utils.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)


class TestPasswords:

    def test_hash_verifies(self):
        hashed = get_password_hash("demo123")
        assert hashed != "demo123"
        assert verify_password("demo123", hashed)
        assert not verify_password("demo124", hashed)


class TestAccessTokens:

    def test_round_trip(self, sample_user_id):
        token = create_access_token(sample_user_id)
        assert decode_access_token(token) == sample_user_id

    def test_expired_token_rejected(self, sample_user_id):
        token = create_access_token(sample_user_id, expires_delta=timedelta(seconds=-1))
        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_tampered_token_rejected(self, sample_user_id):
        token = create_access_token(sample_user_id)
        with pytest.raises(AuthenticationError):
            decode_access_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))

    def test_garbage_rejected(self):
        with pytest.raises(AuthenticationError):
            decode_access_token("not-a-jwt")

    def test_subject_must_be_uuid(self):
        from jose import jwt
        from app.config import get_settings

        settings = get_settings()
        token = jwt.encode({"sub": "admin"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        with pytest.raises(AuthenticationError):
            decode_access_token(token)
