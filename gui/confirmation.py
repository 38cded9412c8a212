"""Qt confirmation channel.

The batch matcher runs on a worker thread and blocks in :meth:`ask`;
the GUI thread shows a dialog on ``confirmation_requested`` and answers
with :meth:`respond`.
"""
import logging

from PySide6.QtCore import QObject, Signal, QMutex, QWaitCondition

from episodematch.channels import CancelToken, is_confirmed

log = logging.getLogger(__name__)

_NO_RESULT = object()

# How often a blocked ask() wakes up to look at its cancel token
POLL_INTERVAL_MS = 100


class QtConfirmationChannel(QObject):
    """Blocks a worker thread until the GUI thread answers."""

    # Signals
    confirmation_requested = Signal(str, str)  # message, client id ("" if none)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._cancelled = False
        self._mutex = QMutex()
        self._condition = QWaitCondition()
        self._response = _NO_RESULT  # set by main thread

    def cancel(self):
        """Decline the pending request, or the next one if none is pending."""
        self._mutex.lock()
        self._cancelled = True
        self._condition.wakeAll()
        self._mutex.unlock()

    def respond(self, response):
        """Called from main thread with the user's answer.

        *response* is a bool or an acknowledgement payload such as
        ``{"confirmed": True}`` or ``{"response": "yes"}``.
        """
        self._mutex.lock()
        self._response = is_confirmed(response)
        self._condition.wakeAll()
        self._mutex.unlock()

    def ask(
        self,
        message: str,
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> bool:
        # A cancel that arrived before this request still declines it.
        self._mutex.lock()
        self._response = _NO_RESULT
        self._mutex.unlock()

        log.debug("Requesting confirmation (client %s)", client_id)
        self.confirmation_requested.emit(message, client_id or "")

        self._mutex.lock()
        while self._response is _NO_RESULT and not self._cancelled:
            if cancel_token is not None and cancel_token.cancelled:
                break
            self._condition.wait(self._mutex, POLL_INTERVAL_MS)
        response = self._response
        self._response = _NO_RESULT
        self._cancelled = False
        self._mutex.unlock()

        if response is _NO_RESULT:
            log.info("Confirmation request cancelled")
            return False
        return response
