"""
Transaction status notifications.

    idle ──begin──▶ pending ──succeed/fail──▶ success | error ──dwell──▶ idle

Every begin() hands out a fresh token and preempts whatever was showing,
cancelling its pending dismissal.  update/succeed/fail carrying an older token
are ignored, so a late callback from a superseded operation cannot bring its
message back.
"""

import asyncio
from typing import Callable, Optional

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.types import TransactionStatus

PENDING = "pending"
SUCCESS = "success"
ERROR = "error"

IDLE = TransactionStatus()

Listener = Callable[[TransactionStatus], None]


class TransactionStatusController:
    def __init__(
        self,
        success_dwell: float = config.STATUS_SUCCESS_DWELL_SECONDS,
        error_dwell: float = config.STATUS_ERROR_DWELL_SECONDS,
    ):
        self.success_dwell = success_dwell
        self.error_dwell = error_dwell
        self._status = IDLE
        self._token = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._listeners: list[Listener] = []

    @property
    def current(self) -> TransactionStatus:
        return self._status

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _publish(self, status: TransactionStatus) -> None:
        self._status = status
        for listener in list(self._listeners):
            listener(status)

    def _is_current(self, token: int) -> bool:
        return token == self._token

    def begin(self, message: str) -> int:
        """Start a new operation in the pending phase and return its token."""
        self._cancel_timer()
        self._token += 1
        self._publish(TransactionStatus(visible=True, phase=PENDING, message=message, token=self._token))
        return self._token

    def update(self, token: int, message: str) -> bool:
        if not self._is_current(token):
            return False
        self._publish(TransactionStatus(visible=True, phase=PENDING, message=message, token=token))
        return True

    def succeed(self, token: int, message: str) -> bool:
        return self._finish(token, SUCCESS, message, self.success_dwell)

    def fail(self, token: int, message: str) -> bool:
        return self._finish(token, ERROR, message, self.error_dwell)

    def notify(self, phase: str, message: str) -> int:
        """One-shot terminal message (no pending phase), e.g. a rejected precondition."""
        if phase not in (SUCCESS, ERROR):
            raise ValueError(f"notify() takes a terminal phase, got {phase!r}")
        token = self.begin(message)
        dwell = self.success_dwell if phase == SUCCESS else self.error_dwell
        self._finish(token, phase, message, dwell)
        return token

    def _finish(self, token: int, phase: str, message: str, dwell: float) -> bool:
        if not self._is_current(token):
            return False
        self._cancel_timer()
        self._publish(TransactionStatus(visible=True, phase=phase, message=message, token=token))
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(dwell, self._dismiss, token)
        return True

    def _dismiss(self, token: int) -> None:
        if not self._is_current(token):
            return
        self._timer = None
        self._publish(TransactionStatus(token=token))

    def clear(self) -> None:
        self._cancel_timer()
        self._token += 1
        self._publish(TransactionStatus(token=self._token))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
