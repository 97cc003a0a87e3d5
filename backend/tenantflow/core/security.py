from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.hash import pbkdf2_sha256

from tenantflow.core.authz import Principal, principal_from_claims
from tenantflow.core.errors import AuthenticationError, ValidationError
from tenantflow.core.settings import Settings

bearer = HTTPBearer(auto_error=False)

INVALID_TOKEN = "Invalid or expired token"


def hash_password(plain: str) -> str:
    return pbkdf2_sha256.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return pbkdf2_sha256.verify(plain, hashed)
    except ValueError:
        # malformed hash in storage
        return False


def create_access_token(settings: Settings, *, user_id: str, email: str, role: str, tenant_id: str | None) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "role": role,
        "tenantId": tenant_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.token_ttl_seconds)).timestamp()),
    }
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm="HS256")


def decode_token(settings: Settings, token: str) -> Dict[str, Any]:
    # expired and malformed tokens get the same answer
    try:
        return jwt.decode(token, settings.AUTH_JWT_SECRET, algorithms=["HS256"], options={"require": ["exp", "sub"]})
    except jwt.PyJWTError as exc:
        raise AuthenticationError(INVALID_TOKEN) from exc


def get_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> Principal:
    if not creds or (creds.scheme or "").lower() != "bearer" or not creds.credentials:
        raise AuthenticationError("Authentication required")

    claims = decode_token(request.app.state.settings, creds.credentials)
    return principal_from_claims(claims)


def check_password_policy(password: str) -> None:
    """At least 8 chars with upper case, lower case and a digit."""
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise ValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        raise ValidationError("Password must contain at least one number")
