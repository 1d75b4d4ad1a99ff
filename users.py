"""
Identity lifecycle (register, login, password reset), self profile, and the
user management operations the admin panel calls.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo.errors import DuplicateKeyError

import config
from database import create_document, get_db, get_documents, now, to_object_id
from errors import AuthError, ConflictError, InvalidStateError, NotFoundError, ValidationError
from schemas import Role, User as UserSchema
from security import (
    AUTH_COOKIE,
    create_token,
    get_current_user,
    hash_password,
    hash_token,
    public_user,
    require_capability,
    verify_password,
)

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["users"])

RESET_TOKEN_TTL = timedelta(hours=1)
MIN_PASSWORD_LENGTH = 6


# ----------------------- Models -----------------------
class RegisterBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordBody(BaseModel):
    email: EmailStr


class ResetPasswordBody(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, alias="newPassword")

    model_config = ConfigDict(populate_by_name=True)


class ProfileBody(BaseModel):
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None


class AdminUserCreateBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    role: Role = "user"
    phone: str = ""


class AdminUserUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    phone: Optional[str] = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _find_by_email(email: str) -> Optional[dict]:
    return get_db()["user"].find_one({"email": normalize_email(email)})


def _get_user_doc(user_id: str) -> dict:
    user = get_db()["user"].find_one({"_id": to_object_id(user_id)})
    if not user:
        raise NotFoundError("User not found")
    return user


# ----------------------- Operations -----------------------
def register(name: str, email: str, password: str, role: str = "user", phone: str = "") -> dict:
    if _find_by_email(email):
        raise ConflictError("User with this email already exists")
    user = UserSchema(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        phone=phone,
    )
    try:
        user_id = create_document("user", user)
    except DuplicateKeyError:
        raise ConflictError("User with this email already exists")
    logger.info("user_registered", user_id=user_id, role=role)
    return public_user(_get_user_doc(user_id))


def login(email: str, password: str) -> dict:
    user = _find_by_email(email)
    if not user or not verify_password(password, user.get("password_hash")):
        raise AuthError("Invalid email or password")
    suser = public_user(user)
    token = create_token({"id": suser["id"], "role": suser.get("role", "user")})
    logger.info("user_logged_in", user_id=suser["id"])
    return {"token": token, "user": suser}


def issue_reset_token(email: str) -> Optional[str]:
    """Store a fresh reset token for `email`, replacing any earlier one."""
    user = _find_by_email(email)
    if not user:
        return None
    token = secrets.token_urlsafe(32)
    get_db()["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {
            "reset_token_hash": hash_token(token),
            "reset_token_expires_at": now() + RESET_TOKEN_TTL,
            "updated_at": now(),
        }},
    )
    logger.info("password_reset_issued", user_id=str(user["_id"]))
    # e-mail delivery is not wired up; the raw token is only logged when explicitly enabled
    if config.log_reset_tokens():
        logger.debug("password_reset_token", user_id=str(user["_id"]), token=token)
    return token


def reset_password(token: str, new_password: str):
    users = get_db()["user"]
    user = users.find_one({"reset_token_hash": hash_token(token)})
    if not user:
        raise ValidationError("Invalid or expired reset token")
    expires_at = user.get("reset_token_expires_at")
    if isinstance(expires_at, datetime) and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if not expires_at or expires_at < now():
        raise ValidationError("Invalid or expired reset token")
    users.update_one(
        {"_id": user["_id"]},
        {"$set": {
            "password_hash": hash_password(new_password),
            "reset_token_hash": None,
            "reset_token_expires_at": None,
            "updated_at": now(),
        }},
    )
    logger.info("password_reset", user_id=str(user["_id"]))


def update_profile(user_id: str, name: str, phone: Optional[str], address: Optional[str]) -> dict:
    name = (name or "").strip()
    if len(name) < 2:
        raise ValidationError("Name must be at least 2 characters long")
    res = get_db()["user"].update_one(
        {"_id": to_object_id(user_id)},
        {"$set": {"name": name, "phone": phone or "", "address": address or "", "updated_at": now()}},
    )
    if res.matched_count == 0:
        raise NotFoundError("User not found")
    return public_user(_get_user_doc(user_id))


def list_users() -> List[dict]:
    return [public_user(u) for u in get_documents("user", newest_first=True)]


def update_user(user_id: str, body: AdminUserUpdateBody) -> dict:
    user = _get_user_doc(user_id)
    update = body.model_dump(exclude_none=True)
    if "email" in update:
        update["email"] = normalize_email(update["email"])
        if update["email"] != user["email"] and _find_by_email(update["email"]):
            raise ConflictError("Email already in use")
    update["updated_at"] = now()
    try:
        get_db()["user"].update_one({"_id": user["_id"]}, {"$set": update})
    except DuplicateKeyError:
        raise ConflictError("Email already in use")
    logger.info("user_updated", user_id=user_id, fields=sorted(update))
    return public_user(_get_user_doc(user_id))


def delete_user(user_id: str):
    user = _get_user_doc(user_id)
    handle = get_db()
    if handle["order"].count_documents({"user_id": user_id}) > 0:
        raise InvalidStateError("Cannot delete user with existing orders")
    handle["user"].delete_one({"_id": user["_id"]})
    handle["cart"].delete_one({"user_id": user_id})
    logger.info("user_deleted", user_id=user_id)


# ----------------------- Routes -----------------------
@router.post("/register", status_code=201)
def register_route(body: RegisterBody):
    user = register(body.name, body.email, body.password)
    return {"success": True, "message": "User registered successfully", "user": user}


@router.post("/login")
def login_route(body: LoginBody, response: Response):
    result = login(body.email, body.password)
    response.set_cookie(
        AUTH_COOKIE,
        result["token"],
        httponly=True,
        secure=config.cookie_secure(),
        samesite="strict",
        max_age=config.token_ttl_hours() * 3600,
    )
    return {"success": True, "message": "Login successful", **result}


@router.get("/logout")
def logout_route(response: Response, user=Depends(get_current_user)):
    response.delete_cookie(AUTH_COOKIE)
    return {"success": True, "message": "Logged out successfully"}


@router.post("/forgot-password")
def forgot_password_route(body: ForgotPasswordBody):
    issue_reset_token(body.email)
    return {"success": True, "message": "If that account exists, a reset link has been sent"}


@router.post("/reset-password")
def reset_password_route(body: ResetPasswordBody):
    reset_password(body.token, body.new_password)
    return {"success": True, "message": "Password has been reset"}


@router.get("/me")
def me(user=Depends(require_capability("profile"))):
    return {"success": True, "user": user}


@router.put("/profile")
def profile(body: ProfileBody, user=Depends(require_capability("profile"))):
    updated = update_profile(user["id"], body.name, body.phone, body.address)
    return {"success": True, "message": "Profile updated successfully", "user": updated}
