# backend/ruralcare/client/navigation.py

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from ruralcare.client.api_client import RuralCareClient
from ruralcare.client.errors import InputValidationError, NavigationError, ServiceError, UnknownScreenError
from ruralcare.client.screen import AlertHandler, ScreenController, require_text
from ruralcare.models.session import AppSession, Screen, UserProfile, UserRole

logger = logging.getLogger(__name__)

PAYLOAD_FIELDS = ("selected_clinic", "selected_article")


class View(str, Enum):
    SPLASH = "splash"
    LOGIN = "login"
    REGISTER = "register"
    PATIENT_DASHBOARD = "patient-dashboard"
    DOCTOR_DASHBOARD = "doctor-dashboard"
    ADMIN_DASHBOARD = "admin-dashboard"
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


_SCREEN_VIEWS: Dict[Screen, View] = {
    Screen.SPLASH: View.SPLASH,
    Screen.LOGIN: View.LOGIN,
    Screen.REGISTER: View.REGISTER,
    Screen.CLINIC_LOCATOR: View.CLINIC_LOCATOR,
    Screen.CLINIC_DETAILS: View.CLINIC_DETAILS,
    Screen.APPOINTMENT_BOOKING: View.APPOINTMENT_BOOKING,
    Screen.TELEMEDICINE: View.TELEMEDICINE,
    Screen.HEALTH_RECORDS: View.HEALTH_RECORDS,
    Screen.HEALTH_EDUCATION: View.HEALTH_EDUCATION,
    Screen.ARTICLE_VIEW: View.ARTICLE_VIEW,
    Screen.ADMIN_PANEL: View.ADMIN_PANEL,
    Screen.AI_ASSISTANT: View.AI_ASSISTANT,
    Screen.TRANSLATION_DEMO: View.TRANSLATION_DEMO,
}

_DASHBOARD_VIEWS: Dict[UserRole, View] = {
    UserRole.PATIENT: View.PATIENT_DASHBOARD,
    UserRole.DOCTOR: View.DOCTOR_DASHBOARD,
    UserRole.NURSE: View.DOCTOR_DASHBOARD,
    UserRole.ADMIN: View.ADMIN_DASHBOARD,
}

def parse_screen(screen: Union[Screen, str]) -> Screen:
    """Turn a screen identifier from a child view into a Screen, rejecting unknown names."""
    if isinstance(screen, Screen):
        return screen
    try:
        return Screen(screen)
    except ValueError:
        raise UnknownScreenError(screen) from None


def resolve_view(session: AppSession) -> View:
    """Pick the view for the active screen; the dashboard depends on the user's role."""
    if session.current_screen is Screen.DASHBOARD:
        if session.user_role is None:
            return View.LOGIN
        return _DASHBOARD_VIEWS[session.user_role]
    return _SCREEN_VIEWS[session.current_screen]


class NavigationController(ScreenController):
    """
    Owns the AppSession: the current screen, the back stack and the
    signed-in identity. Views read `session` and call the methods here;
    they never write fields themselves.
    """

    def __init__(self, api: RuralCareClient, on_alert: Optional[AlertHandler] = None):
        super().__init__(on_alert)
        self.api = api
        self._session = AppSession()
        self._listeners: List[Callable[[AppSession], None]] = []

    @property
    def session(self) -> AppSession:
        return self._session

    @property
    def view(self) -> View:
        return resolve_view(self._session)

    def subscribe(self, listener: Callable[[AppSession], None]) -> None:
        self._listeners.append(listener)

    def _transition(self, **changes: Any) -> None:
        data = self._session.model_dump()
        data.update(changes)
        self._session = AppSession.model_validate(data)
        self.api.access_token = self._session.access_token
        for listener in self._listeners:
            listener(self._session)

    def navigate_to(self, screen: Union[Screen, str], payload: Optional[Dict[str, Any]] = None) -> None:
        target = parse_screen(screen)
        payload = payload or {}
        unknown = set(payload) - set(PAYLOAD_FIELDS)
        if unknown:
            raise NavigationError(f"Unsupported navigation payload: {', '.join(sorted(unknown))}")

        logger.debug("Navigate %s -> %s", self._session.current_screen.value, target.value)
        self._transition(
            nav_history=self._session.nav_history + [self._session.current_screen],
            current_screen=target,
            **payload,
        )

    def go_back(self) -> None:
        history = list(self._session.nav_history)
        if history:
            target = history.pop()
        else:
            target = Screen.DASHBOARD if self._session.is_logged_in else Screen.LOGIN
        self._transition(nav_history=history, current_screen=target)

    async def start(self, access_token: Optional[str] = None) -> None:
        """Resume a stored session if there is one, otherwise stay on the splash screen."""
        if access_token:
            self._transition(is_loading=True)
            await self._load_user_profile(access_token)
        else:
            self._transition(is_loading=False, current_screen=Screen.SPLASH)

    async def _load_user_profile(self, access_token: str) -> bool:
        try:
            profile = await self.api.get_profile(access_token)
        except ServiceError as e:
            logger.error("Load profile error: %s", e)
            self._transition(
                is_loading=False,
                is_logged_in=False,
                access_token=None,
                user_profile=None,
                user_role=None,
                current_screen=Screen.LOGIN,
            )
            return False

        self._signed_in(profile, access_token)
        return True

    def _signed_in(self, profile: UserProfile, access_token: str) -> None:
        self._transition(
            is_loading=False,
            is_logged_in=True,
            access_token=access_token,
            user_profile=profile,
            user_role=profile.role,
            current_screen=Screen.DASHBOARD,
            nav_history=[],
        )

    async def login(self, email: str, password: str) -> bool:
        try:
            email = require_text(email, "Please enter your email address")
            require_text(password, "Please enter your password")
        except InputValidationError as e:
            self.alert(str(e))
            return False

        self._transition(is_loading=True)
        try:
            auth = await self.api.sign_in(email, password)
        except ServiceError as e:
            logger.error("Login error: %s", e)
            self._transition(is_loading=False)
            self.alert(str(e) if e.status_code == 400 else "Login failed. Please try again.")
            return False

        return await self._load_user_profile(auth.access_token)

    async def register(
        self, email: str, password: str, name: str, role: UserRole, phone: Optional[str] = None
    ) -> bool:
        try:
            email = require_text(email, "Please enter your email address")
            require_text(password, "Please enter a password")
            name = require_text(name, "Please enter your name")
        except InputValidationError as e:
            self.alert(str(e))
            return False

        self._transition(is_loading=True)
        try:
            await self.api.sign_up(email, password, name, role, phone)
        except ServiceError as e:
            logger.error("Registration error: %s", e)
            self._transition(is_loading=False)
            self.alert(str(e) if e.status_code == 400 else "Registration failed. Please try again.")
            return False

        return await self.login(email, password)

    async def logout(self) -> None:
        token = self._session.access_token
        if token:
            try:
                await self.api.sign_out(token)
            except ServiceError as e:
                logger.warning("Logout error: %s", e)

        self._session = AppSession(current_screen=Screen.LOGIN)
        self.api.access_token = None
        for listener in self._listeners:
            listener(self._session)
