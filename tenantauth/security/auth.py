from __future__ import annotations

import logging

import jwt
from fastapi import HTTPException, Request, status

from tenantauth.security.config import SecurityConfig
from tenantauth.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def extract_user_id(request: Request, config: SecurityConfig, settings: Settings | None = None) -> int | None:
    """
    Read the bearer token and resolve it to a user id.

    - Input: `Authorization: Bearer <token>`
    - provider "dummy": `<token>` must be an integer user id
    - provider "jwt": `<token>` is verified with `APP_JWT_SECRET`; the `sub` claim is the user id

    Token issuance lives outside this service; we only verify and read the subject.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
        )

    if config.auth.provider == "jwt":
        return _user_id_from_jwt(token, settings or get_settings())

    try:
        return int(token)
    except ValueError as exc:
        logger.warning("Bearer token not an int (dummy provider expects user_id) path=%s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid bearer token (expected integer user id).",
        ) from exc


def _user_id_from_jwt(token: str, settings: Settings) -> int:
    if not settings.jwt_secret:
        raise RuntimeError("APP_JWT_SECRET must be set when the jwt auth provider is enabled")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        # Do not log the token.
        logger.info("Rejected bearer token: %s", type(exc).__name__)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject") from exc
