"""
Request slots for in-flight model requests.

Each stage owns one slot per kind of request (a conversational turn, a
forced summary, an idea batch, a bias analysis). Starting a request in a
busy slot cancels the one already in flight; the cancelled request's result
is discarded when it arrives.

Usage:
    slot = RequestSlot("challenge-biases")
    token = slot.begin()
    try:
        raw = backend.complete(request)
        token.raise_if_cancelled()
        ...apply raw to the session...
    finally:
        slot.finish(token)
"""

import threading
from typing import Optional

from ..errors import RequestCancelled


class CancellationToken:
    """Marks one request; cancelled once a newer request replaces it."""

    def __init__(self, label: str = ""):
        self.label = label
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise RequestCancelled(f"{self.label} request was cancelled")


class RequestSlot:
    """At most one live request per slot; a new begin() supersedes the old one."""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._current: Optional[CancellationToken] = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._current is not None

    def begin(self) -> CancellationToken:
        token = CancellationToken(self.name)
        with self._lock:
            if self._current is not None:
                self._current.cancel()
            self._current = token
        return token

    def finish(self, token: CancellationToken):
        """Release the slot if token is still the live request."""
        with self._lock:
            if self._current is token:
                self._current = None

    def cancel(self):
        """Cancel the live request, if any, and free the slot."""
        with self._lock:
            if self._current is not None:
                self._current.cancel()
            self._current = None
