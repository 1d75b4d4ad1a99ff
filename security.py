"""
Access control: password hashing, bearer tokens and capability checks.
"""
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from bson.objectid import ObjectId
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
from database import get_db, serialize_doc
from errors import AuthError, ForbiddenError

logger = structlog.get_logger(__name__)

JWT_ALGO = "HS256"
AUTH_COOKIE = "authToken"
PBKDF2_ROUNDS = 200_000

security = HTTPBearer(auto_error=False)

ROLE_CAPABILITIES = {
    "user": frozenset({"cart", "orders:own", "profile"}),
    "admin": frozenset({
        "cart", "orders:own", "profile",
        "catalog:manage", "orders:manage", "users:manage",
    }),
}

PRIVATE_USER_FIELDS = ("password_hash", "reset_token_hash", "reset_token_expires_at")


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS).hex()
    return f"{salt}${digest}"


def verify_password(password: str, stored: Optional[str]) -> bool:
    if not stored or "$" not in stored:
        return False
    salt, digest = stored.split("$", 1)
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS).hex()
    return hmac.compare_digest(candidate, digest)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_token(payload: dict) -> str:
    exp = datetime.now(timezone.utc) + timedelta(hours=config.token_ttl_hours())
    to_encode = {**payload, "exp": exp}
    return jwt.encode(to_encode, config.jwt_secret(), algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.jwt_secret(), algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Token is not valid or expired")


def public_user(user: dict) -> dict:
    user = serialize_doc(user)
    for field in PRIVATE_USER_FIELDS:
        user.pop(field, None)
    return user


def capabilities_for(role: Optional[str]) -> frozenset:
    return ROLE_CAPABILITIES.get(role or "user", frozenset())


def get_current_user(request: Request,
                     credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    """Resolve the caller from the bearer header, falling back to the auth cookie."""
    token = credentials.credentials if credentials else request.cookies.get(AUTH_COOKIE)
    if not token:
        raise AuthError("Authentication required")
    payload = decode_token(token)
    user_id = payload.get("id")
    if not user_id or not ObjectId.is_valid(user_id):
        raise AuthError("Invalid token payload")
    user = get_db()["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise AuthError("User not found")
    return public_user(user)


def require_capability(capability: str):
    def checker(user=Depends(get_current_user)):
        if capability not in capabilities_for(user.get("role")):
            logger.warning("access_denied", user_id=user["id"], capability=capability)
            raise ForbiddenError("Access denied")
        return user
    return checker
