# backend/ruralcare/services/auth_service.py

import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import uuid4

import bcrypt

from ruralcare.models.auth import AuthSession, SignupRequest
from ruralcare.models.session import UserProfile, UserRole
from ruralcare.services import kv_store

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo123"
DEMO_USERS = [
    {"id": "demo-patient-1", "email": "patient@demo.com", "name": "Sarah Johnson", "role": UserRole.PATIENT, "phone": "+1 (555) 123-4567"},
    {"id": "demo-doctor-1", "email": "doctor@demo.com", "name": "Dr. Michael Chen", "role": UserRole.DOCTOR, "phone": "+1 (555) 234-5678"},
    {"id": "demo-nurse-1", "email": "nurse@demo.com", "name": "Emily Rodriguez", "role": UserRole.NURSE, "phone": "+1 (555) 345-6789"},
    {"id": "demo-admin-1", "email": "admin@demo.com", "name": "John Administrator", "role": UserRole.ADMIN, "phone": "+1 (555) 456-7890"},
]

# email -> {"user_id", "password_hash"}
_credentials: Dict[str, Dict[str, str]] = {}
# access token -> user id
_tokens: Dict[str, str] = {}


class AuthError(Exception):
    pass


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_user(request: SignupRequest, user_id: Optional[str] = None) -> UserProfile:
    email = request.email.strip().lower()
    if email in _credentials:
        raise AuthError("A user with this email address has already been registered")
    if len(request.password) < 6:
        raise AuthError("Password should be at least 6 characters")

    user_id = user_id or str(uuid4())
    _credentials[email] = {"user_id": user_id, "password_hash": _hash_password(request.password)}
    profile = UserProfile(
        id=user_id,
        email=email,
        name=request.name,
        role=request.role,
        phone=request.phone,
        created_at=_now(),
        updated_at=_now(),
    )
    kv_store.set(f"user_profile:{user_id}", profile.model_dump(mode="json"))
    return profile


def sign_in(email: str, password: str) -> AuthSession:
    record = _credentials.get(email.strip().lower())
    if not record or not _verify_password(password, record["password_hash"]):
        raise AuthError("Invalid login credentials")

    profile = get_profile(record["user_id"])
    if profile is None:
        raise AuthError("Profile not found")

    token = secrets.token_urlsafe(32)
    _tokens[token] = record["user_id"]
    return AuthSession(access_token=token, profile=profile)


def sign_out(token: str) -> None:
    _tokens.pop(token, None)


def get_user_id(token: str) -> Optional[str]:
    return _tokens.get(token)


def get_profile(user_id: str) -> Optional[UserProfile]:
    data = kv_store.get(f"user_profile:{user_id}")
    return UserProfile.model_validate(data) if data else None


def seed_demo_users() -> None:
    for user in DEMO_USERS:
        if kv_store.get(f"user_profile:{user['id']}"):
            continue
        try:
            create_user(
                SignupRequest(
                    email=user["email"],
                    password=DEMO_PASSWORD,
                    name=user["name"],
                    role=user["role"],
                    phone=user["phone"],
                ),
                user_id=user["id"],
            )
            logger.info("Created demo user: %s", user["email"])
        except AuthError as e:
            logger.warning("Could not create demo user %s: %s", user["email"], e)


def reset() -> None:
    _credentials.clear()
    _tokens.clear()
