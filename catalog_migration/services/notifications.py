"""Migration start/end notifications."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from ..models.result import MigrationResult

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """
    Receives migration lifecycle notifications.

    Notifications are fire-and-forget: implementations must never raise.
    """

    @abstractmethod
    def notify_start(self, parent_code: str, variant_codes: List[str], instances: List[str]) -> None:
        pass

    @abstractmethod
    def notify_end(self, result: MigrationResult) -> None:
        pass


class NullNotifier(NotificationSink):
    """Discards every notification."""

    def notify_start(self, parent_code: str, variant_codes: List[str], instances: List[str]) -> None:
        pass

    def notify_end(self, result: MigrationResult) -> None:
        pass


def _text(text: str) -> Dict[str, Any]:
    return {"decoratedText": {"text": text}}


class WebhookNotifier(NotificationSink):
    """Posts chat cards to an incoming webhook."""

    def __init__(self, webhook_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, card_id: str, header: str, widgets: List[Dict[str, Any]]) -> None:
        card = {
            "cardsV2": [{
                "cardId": card_id,
                "card": {"sections": [{"header": header, "widgets": widgets}]},
            }]
        }
        try:
            response = self._session.post(self.webhook_url, json=card, timeout=self.timeout)
            response.raise_for_status()
            logger.info(f"Sent {card_id} notification")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to send {card_id} notification: {e}")

    def notify_start(self, parent_code: str, variant_codes: List[str], instances: List[str]) -> None:
        widgets = [
            _text(f"<b>Parent SKU:</b> {parent_code}"),
            _text(f"<b>Child SKUs ({len(variant_codes)}):</b> {', '.join(variant_codes) or 'None'}"),
            _text(f"<b>Targets:</b> {', '.join(instances) or 'None'}"),
        ]
        self.send("migration-start", "Product Migration Started", widgets)

    def notify_end(self, result: MigrationResult) -> None:
        summary = result.summary
        header = "Migration Completed" if result.success else "Migration Failed"
        widgets = [
            _text(f"<b>SKU:</b> {result.source_code}"),
            _text(f"<b>Status:</b> {'Completed Successfully' if result.success else 'Failed'}"),
            _text(f"<b>Duration:</b> {summary['total_duration_seconds']}s"),
            _text(f"<b>Children Migrated:</b> {summary['children_created']}"),
        ]
        for name, instance in result.instance_results.items():
            mode = instance.mode.value if instance.mode else "none"
            status = "ok" if instance.success else "failed"
            widgets.append(_text(f"<b>{name}:</b> {mode} ({status})"))

        errors = list(result.errors)
        for instance in result.instance_results.values():
            errors.extend(instance.all_errors)
        if errors:
            widgets.append(_text(f"<b>Error:</b> {errors[-1].get('error', 'Unknown error')}"))

        self.send("migration-end", header, widgets)
