"""
Unidirectional status channel.

Every phase change goes through StatusChannel.publish(); readers either look at
``current`` or subscribe to a queue of updates. FAILED is terminal.
"""
from __future__ import annotations
import asyncio
import logging
from typing import List, Optional

from core.models import AuthState, AuthStatus, VerificationOutcome

logger = logging.getLogger(__name__)

INITIALIZING_MESSAGE = "Initializing..."
READY_MESSAGE = "Webcam started"
VERIFYING_MESSAGE = "Verifying..."
MODEL_FAILURE_MESSAGE = "Failed to load models or webcam"
CAMERA_DENIED_MESSAGE = "Webcam access denied"

SUBSCRIBER_QUEUE_SIZE = 32


def initializing() -> AuthStatus:
    return AuthStatus(state=AuthState.INITIALIZING, message=INITIALIZING_MESSAGE)

def ready() -> AuthStatus:
    return AuthStatus(state=AuthState.READY, message=READY_MESSAGE)

def verifying() -> AuthStatus:
    return AuthStatus(state=AuthState.VERIFYING, message=VERIFYING_MESSAGE)

def failed(reason: str, message: str = MODEL_FAILURE_MESSAGE) -> AuthStatus:
    return AuthStatus(state=AuthState.FAILED, message=message, reason=reason)

def from_outcome(outcome: VerificationOutcome) -> AuthStatus:
    return AuthStatus(state=outcome.state, message=outcome.message, label=outcome.label)


class StatusChannel:
    def __init__(self, initial: Optional[AuthStatus] = None):
        self._current = initial or initializing()
        self._subscribers: List[asyncio.Queue] = []
        self.history: List[AuthStatus] = [self._current]

    @property
    def current(self) -> AuthStatus:
        return self._current

    @property
    def terminal(self) -> bool:
        return self._current.state == AuthState.FAILED

    def publish(self, status: AuthStatus) -> bool:
        """Apply ``status``; returns False (and drops it) once the channel is terminal."""
        if self.terminal:
            logger.debug(f"[state] ignoring {status.state.value}; channel already failed")
            return False
        self._current = status
        self.history.append(status)
        logger.info(f"[state] {status.state.value}: {status.message}")
        for q in list(self._subscribers):
            if q.full():
                # slow reader: drop its oldest update
                q.get_nowait()
            q.put_nowait(status)
        return True

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        q.put_nowait(self._current)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)
