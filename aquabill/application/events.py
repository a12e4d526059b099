"""Tipos de evento y publicación best-effort hacia el canal de notificaciones."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import structlog

from aquabill.application.ports.notifier import NotificationPublisher

logger = structlog.get_logger()

INVOICE_CREATED = "invoice_created"
PAYMENT_RECEIVED = "payment_received"
READING_RECORDED = "reading_recorded"
SYSTEM_ALERT = "system_alert"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def publish_event(
    publisher: NotificationPublisher | None,
    event_type: str,
    payload: dict[str, Any],
) -> None:
    """Publica un evento; cualquier falla se registra y nunca se propaga."""
    if publisher is None:
        return
    data = _jsonable(payload)
    data.setdefault("timestamp", datetime.now(UTC).isoformat())
    try:
        publisher.publish(event_type, data)
    except Exception as e:
        logger.warning("notification_failed", event_type=event_type, error=str(e))


def system_alert(
    publisher: NotificationPublisher | None,
    message: str,
    level: str = "info",
    data: dict[str, Any] | None = None,
) -> None:
    """Alerta genérica: level es info | warning | error | success."""
    publish_event(
        publisher,
        SYSTEM_ALERT,
        {"mensaje": message, "nivel": level, "datos": data or {}},
    )
