"""Publicadores de eventos de facturación."""

from __future__ import annotations

import queue
import threading
from typing import Any

import structlog

logger = structlog.get_logger()


class LoggingPublisher:
    """Registra cada evento en el log estructurado."""

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        logger.info("event_published", event_type=event_type, payload=payload)


class InMemoryBroadcaster:
    """
    Difunde eventos a suscriptores en proceso, una cola por suscriptor.

    Pensado para alimentar un stream tipo SSE: cada cliente conectado llama
    ``subscribe()`` y consume su cola. Si la cola de un suscriptor está llena
    se considera muerto y se descarta.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: list[queue.Queue[dict[str, Any]]] = []
        self._lock = threading.Lock()

    def subscribe(self) -> queue.Queue[dict[str, Any]]:
        q: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=self._max_queue_size)
        with self._lock:
            self._subscribers.append(q)
        logger.info("subscriber_added", subscribers=self.subscriber_count)
        return q

    def unsubscribe(self, q: queue.Queue[dict[str, Any]]) -> None:
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)
        logger.info("subscriber_removed", subscribers=self.subscriber_count)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        message = {"type": event_type, "data": payload}
        dead: list[queue.Queue[dict[str, Any]]] = []

        with self._lock:
            subscribers = list(self._subscribers)

        for q in subscribers:
            try:
                q.put_nowait(message)
            except queue.Full:
                dead.append(q)

        for q in dead:
            self.unsubscribe(q)

        logger.debug(
            "event_broadcast",
            event_type=event_type,
            delivered=len(subscribers) - len(dead),
            dropped=len(dead),
        )
