"""Fan-out of progress messages to server-sent-event listeners."""

from __future__ import annotations

import logging
import queue
import threading
from contextlib import suppress

log = logging.getLogger(__name__)

CLIENT_BUFFER = 10


def format_event(message: str) -> str:
    """Encode a message as one server-sent event."""
    return f"data: {message}\n\n"


class LogBroadcaster:
    """Delivers messages to every subscribed client, dropping them for slow ones."""

    def __init__(self) -> None:
        self._clients: set[queue.Queue[str]] = set()
        self._lock = threading.Lock()

    def subscribe(self) -> queue.Queue[str]:
        client: queue.Queue[str] = queue.Queue(maxsize=CLIENT_BUFFER)
        with self._lock:
            self._clients.add(client)
        return client

    def unsubscribe(self, client: queue.Queue[str]) -> None:
        with self._lock:
            self._clients.discard(client)

    def publish(self, message: str) -> None:
        """Offer message to every client without blocking."""
        with self._lock:
            clients = list(self._clients)
        for client in clients:
            with suppress(queue.Full):
                client.put_nowait(message)

    def log(self, message: str) -> None:
        """Write message to the process log and publish it."""
        log.info("%s", message)
        self.publish(message)