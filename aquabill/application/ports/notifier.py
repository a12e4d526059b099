from typing import Any, Protocol


class NotificationPublisher(Protocol):
    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """Fire-and-forget: no espera confirmación de entrega."""
        ...
