# backend/ruralcare/client/errors.py

from typing import Optional


class RuralCareError(Exception):
    """Base class for errors raised by the application core."""


class ServiceError(RuralCareError):
    """A remote call failed: non-2xx, network failure or unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ServiceTimeout(ServiceError):
    pass


class ServiceUnavailable(ServiceError):
    pass


class InputValidationError(RuralCareError):
    """A required field was empty; raised before any network call."""


class NavigationError(RuralCareError):
    pass


class UnknownScreenError(NavigationError):
    def __init__(self, screen: str):
        super().__init__(f"Unknown screen: {screen!r}")
        self.screen = screen
