"""Confirmation and broadcast channels.

A confirmation channel asks a human to approve a destructive commit and
blocks until an answer arrives.  There is no internal timeout: the
caller cancels through a :class:`CancelToken`, and a cancelled or
timed-out request always counts as declined.

The broadcaster notifies observers (UI views, sockets) that a metadata
record changed or that a new plan awaits review.  It is fire-and-forget
from the committer's view, but an observer that raises propagates to
the caller.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

log = logging.getLogger(__name__)

METADATA_UPDATED = "mediaMetadataUpdated"
# Sent when a staged task is sealed into a pending plan.
RECOGNIZE_PLAN_READY = "recognizeMediaFilePlanReady"
RENAME_PLAN_READY = "renameFilesPlanReady"


class CancelToken:
    """Thread-safe cancellation flag shared between a caller and a wait."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or *timeout* elapses; True if cancelled."""
        return self._event.wait(timeout)


class ConfirmationChannel(Protocol):
    """Request/response pairing with a human."""

    def ask(
        self,
        message: str,
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> bool:
        ...


def is_confirmed(response: Any) -> bool:
    """Interpret a UI acknowledgement payload.

    Accepts a boolean, ``{"confirmed": bool}`` or ``{"response": "yes"}``.
    """
    if isinstance(response, bool):
        return response
    if isinstance(response, dict):
        if "confirmed" in response:
            return bool(response["confirmed"])
        return str(response.get("response", "")).strip().lower() == "yes"
    return False


class ConsoleConfirmation:
    """Ask for confirmation on the terminal."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        print_func: Callable[[str], None] = print,
    ):
        self._input = input_func
        self._print = print_func

    def ask(
        self,
        message: str,
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> bool:
        self._print(message)
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                return False
            try:
                response = self._input("Proceed? (y/n): ").strip().lower()
            except EOFError:
                return False
            if response in ('y', 'yes'):
                return True
            if response in ('n', 'no'):
                return False
            self._print("Please enter 'y' or 'n'.")


class StaticConfirmation:
    """Answer every request with a fixed decision (``--yes`` and scripts)."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.messages: list[str] = []

    def ask(
        self,
        message: str,
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> bool:
        self.messages.append(message)
        if cancel_token is not None and cancel_token.cancelled:
            return False
        return self.answer


Observer = Callable[[str, dict[str, Any], "str | None"], None]


class Broadcaster:
    """Fan-out of events to subscribed observers."""

    def __init__(self):
        self._observers: list[Observer] = []
        self._lock = threading.Lock()

    def subscribe(self, observer: Observer) -> None:
        with self._lock:
            self._observers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def broadcast(
        self,
        event: str,
        data: dict[str, Any],
        client_id: str | None = None,
    ) -> None:
        """Deliver *event* to every observer.

        *client_id* scopes the event to the originating caller; observers
        decide whether to act on events for other clients.
        """
        with self._lock:
            observers = list(self._observers)
        log.debug("Broadcast %s to %d observer(s): %s", event, len(observers), data)
        for observer in observers:
            observer(event, data, client_id)
