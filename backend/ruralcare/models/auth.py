# backend/ruralcare/models/auth.py

from typing import Optional

from pydantic import BaseModel

from .session import UserProfile, UserRole


class SignupRequest(BaseModel):
    email: str
    password: str
    name: str
    role: UserRole
    phone: Optional[str] = None


class SigninRequest(BaseModel):
    email: str
    password: str


class AuthSession(BaseModel):
    access_token: str
    profile: UserProfile
