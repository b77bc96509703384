# backend/ruralcare/models/session.py

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, model_validator


class Screen(str, Enum):
    SPLASH = "splash"
    LOGIN = "login"
    REGISTER = "register"
    DASHBOARD = "dashboard"
    CLINIC_LOCATOR = "clinic-locator"
    CLINIC_DETAILS = "clinic-details"
    APPOINTMENT_BOOKING = "appointment-booking"
    TELEMEDICINE = "telemedicine"
    HEALTH_RECORDS = "health-records"
    HEALTH_EDUCATION = "health-education"
    ARTICLE_VIEW = "article-view"
    ADMIN_PANEL = "admin-panel"
    AI_ASSISTANT = "ai-assistant"
    TRANSLATION_DEMO = "translation-demo"


class UserRole(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    NURSE = "nurse"
    ADMIN = "admin"


class UserProfile(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AppSession(BaseModel):
    """Navigation and identity state owned by the navigation controller."""

    current_screen: Screen = Screen.SPLASH
    nav_history: List[Screen] = []
    is_logged_in: bool = False
    user_role: Optional[UserRole] = None
    user_profile: Optional[UserProfile] = None
    access_token: Optional[str] = None
    selected_clinic: Optional[Dict[str, Any]] = None
    selected_article: Optional[Dict[str, Any]] = None
    is_loading: bool = False

    @model_validator(mode="after")
    def _token_matches_login(self) -> "AppSession":
        if (self.access_token is not None) != self.is_logged_in:
            raise ValueError("access_token must be set exactly when the session is logged in")
        return self
