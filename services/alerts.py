"""Operator alert side-channel."""

import logging
from typing import TYPE_CHECKING

from core.settings import Settings

if TYPE_CHECKING:
    from services.context import MessagingGateway


logger = logging.getLogger(__name__)


class OperatorAlerts:
    """Log every alert; also text it to the operator phone when one is configured."""

    def __init__(self, messenger: "MessagingGateway", settings: Settings):
        self.messenger = messenger
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return self.settings.alerts_enabled

    def notify(self, text: str) -> None:
        """Send an alert. Never raises: alerts are best-effort."""
        logger.warning("Operator alert", extra={"alert": text})
        if not self.enabled:
            return

        try:
            result = self.messenger.send(
                self.settings.alert_phone_e164,
                f"[{self.settings.brand_name} alert] {text}",
            )
        except Exception:
            logger.exception("Operator alert send raised")
            return

        if not result.ok:
            logger.error(
                "Operator alert not delivered",
                extra={"outcome": result.outcome.value, "reason": result.reason},
            )
