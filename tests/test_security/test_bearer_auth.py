"""Tests for bearer-token parsing with the dummy and jwt providers."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException
from starlette.requests import Request

from tenantauth.security.auth import extract_user_id
from tenantauth.security.config import SecurityConfig, SecurityConfigModel
from tenantauth.settings import Settings


SECRET = "test-secret"


def test_missing_header_means_anonymous():
    assert extract_user_id(_request(None), _config("dummy")) is None


def test_dummy_token_is_user_id():
    assert extract_user_id(_request("Bearer 42"), _config("dummy")) == 42


@pytest.mark.parametrize("header", ["Token 42", "Bearer ", "Bearer abc"])
def test_dummy_rejects_malformed_headers(header):
    with pytest.raises(HTTPException) as exc_info:
        extract_user_id(_request(header), _config("dummy"))
    assert exc_info.value.status_code == 400


def test_jwt_subject_is_user_id():
    token = _token({"sub": "7", "exp": _in(minutes=5)})

    assert extract_user_id(_request(f"Bearer {token}"), _config("jwt"), _settings()) == 7


def test_jwt_expired():
    token = _token({"sub": "7", "exp": _in(minutes=-5)})

    with pytest.raises(HTTPException) as exc_info:
        extract_user_id(_request(f"Bearer {token}"), _config("jwt"), _settings())
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Token expired"


@pytest.mark.parametrize(
    "token",
    [
        jwt.encode({"sub": "7", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}, "other-secret", algorithm="HS256"),
        jwt.encode({"sub": "7"}, SECRET, algorithm="HS256"),
        jwt.encode({"sub": "me", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}, SECRET, algorithm="HS256"),
        "not-a-jwt",
    ],
)
def test_jwt_rejections(token):
    with pytest.raises(HTTPException) as exc_info:
        extract_user_id(_request(f"Bearer {token}"), _config("jwt"), _settings())
    assert exc_info.value.status_code == 401


def test_jwt_provider_needs_a_secret():
    token = _token({"sub": "7", "exp": _in(minutes=5)})

    with pytest.raises(RuntimeError):
        extract_user_id(_request(f"Bearer {token}"), _config("jwt"), Settings(jwt_secret=None))


def _request(authorization: str | None) -> Request:
    headers = [] if authorization is None else [(b"authorization", authorization.encode("latin-1"))]
    return Request({"type": "http", "method": "GET", "path": "/bookings", "query_string": b"", "headers": headers})


def _config(provider: str) -> SecurityConfig:
    return SecurityConfig(SecurityConfigModel.model_validate({"auth": {"provider": provider}}))


def _settings() -> Settings:
    return Settings(jwt_secret=SECRET)


def _token(claims: dict) -> str:
    return jwt.encode(claims, SECRET, algorithm="HS256")


def _in(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)
