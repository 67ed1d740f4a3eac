"""Identifier and time sources injected into :class:`~meshlink.connection.Connection`."""

from __future__ import annotations

import itertools
import threading
import uuid
from datetime import datetime, timezone
from typing import Protocol


class IDSource(Protocol):
    def generate(self) -> str:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class UUIDSource:
    """Random UUID4 identifiers, rendered in canonical string form."""

    def generate(self) -> str:
        return str(uuid.uuid4())


class SequentialIDSource:
    """Deterministic ``<prefix>-<n>`` identifiers, handy for tests and fixtures."""

    def __init__(self, prefix: str = "conn", start: int = 1) -> None:
        self.prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def generate(self) -> str:
        with self._lock:
            n = next(self._counter)
        return f"{self.prefix}-{n}"


class UTCClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock that always reports the same instant unless advanced explicitly."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def set(self, instant: datetime) -> None:
        self.instant = instant


DEFAULT_ID_SOURCE: IDSource = UUIDSource()
DEFAULT_CLOCK: Clock = UTCClock()


__all__ = [
    "IDSource",
    "Clock",
    "UUIDSource",
    "SequentialIDSource",
    "UTCClock",
    "FixedClock",
    "DEFAULT_ID_SOURCE",
    "DEFAULT_CLOCK",
]
