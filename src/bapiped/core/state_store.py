from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class LoopState(str, Enum):
    RUNNING = "RUNNING"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    TERMINATED = "TERMINATED"


VALID_TRANSITIONS = {
    LoopState.RUNNING: {LoopState.SHUTTING_DOWN, LoopState.TERMINATED},
    LoopState.SHUTTING_DOWN: {LoopState.TERMINATED},
    LoopState.TERMINATED: set(),
}


@dataclass
class LoopStatus:
    state: LoopState = LoopState.RUNNING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notifications: int = 0
    discarded: int = 0
    last_error: dict[str, Any] | None = None


class InvalidTransitionError(ValueError):
    pass


class LoopStateStore:
    """Dispatch loop state and counters.

    Only the dispatch task writes here; the status API reads snapshots.
    """

    def __init__(self) -> None:
        self._status = LoopStatus()

    @property
    def state(self) -> LoopState:
        return self._status.state

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self._status.state.value,
            "started_at": self._status.started_at.isoformat(),
            "notifications": self._status.notifications,
            "discarded": self._status.discarded,
            "last_error": self._status.last_error,
        }

    def transition(self, next_state: LoopState) -> None:
        current = self._status.state
        if current == next_state:
            return
        if next_state not in VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(f"invalid loop transition {current.value} -> {next_state.value}")
        self._status.state = next_state

    def count_notification(self) -> None:
        self._status.notifications += 1

    def record_discard(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self._status.discarded += 1
        self._status.last_error = {
            "code": code,
            "message": message,
            "details": details or {},
            "ts": datetime.now(timezone.utc).isoformat(),
        }
