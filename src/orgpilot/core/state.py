"""
Observable state cells and stale-response guarding.

Each piece of asynchronously loaded data (scalar record, related lists,
layouts) lives in its own ``StateCell``. Writers present the token they were
issued when the request started; a token that is no longer current means the
user has moved on and the write is dropped.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CellStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class RequestTracker:
    """Issues one increasing token per data key; only the latest is current."""

    def __init__(self):
        self._generations: Dict[str, int] = defaultdict(int)

    def begin(self, key: str) -> int:
        self._generations[key] += 1
        return self._generations[key]

    def is_current(self, key: str, token: int) -> bool:
        return self._generations[key] == token

    def current(self, key: str) -> int:
        return self._generations[key]


@dataclass
class StateCell(Generic[T]):
    """
    Single-writer cell for one piece of loaded data.

    Attributes:
        name: Identifier used in logs.
        value: Latest accepted value.
        error: Message of the latest accepted failure.
        status: Loading state.
        token: Token of the request that owns the cell.
    """
    name: str
    value: Optional[T] = None
    error: Optional[str] = None
    status: CellStatus = CellStatus.IDLE
    token: int = 0
    _listeners: List[Callable[["StateCell[T]"], None]] = field(default_factory=list, repr=False)

    def subscribe(self, listener: Callable[["StateCell[T]"], None]) -> None:
        self._listeners.append(listener)

    def start(self, token: int) -> None:
        """Claim the cell for a new request and clear the previous result."""
        self.token = token
        self.value = None
        self.error = None
        self.status = CellStatus.LOADING
        self._notify()

    def resolve(self, token: int, value: T) -> bool:
        if token != self.token:
            logger.debug(f"Discarding stale value for {self.name} (token {token}, current {self.token})")
            return False
        self.value = value
        self.error = None
        self.status = CellStatus.READY
        self._notify()
        return True

    def fail(self, token: int, message: str) -> bool:
        if token != self.token:
            logger.debug(f"Discarding stale error for {self.name} (token {token}, current {self.token})")
            return False
        self.error = message
        self.status = CellStatus.FAILED
        self._notify()
        return True

    @property
    def is_loading(self) -> bool:
        return self.status == CellStatus.LOADING

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self)
