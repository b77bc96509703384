# backend/ruralcare/client/screen.py

import logging
from typing import Callable, Optional

from ruralcare.client.errors import InputValidationError

logger = logging.getLogger(__name__)

AlertHandler = Callable[[str], None]


def require_text(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise InputValidationError(message)
    return value.strip()


class ScreenController:
    """Shared plumbing for screen controllers: user-facing alerts."""

    def __init__(self, on_alert: Optional[AlertHandler] = None):
        self._on_alert = on_alert
        self.last_alert: Optional[str] = None

    def alert(self, message: str) -> None:
        logger.info("Alert: %s", message)
        self.last_alert = message
        if self._on_alert is not None:
            self._on_alert(message)
