"""Caller context: who is calling, and when.

The host that invokes registry operations is the trust anchor for the
caller's identity and for the clock. Operations receive both through an
explicit ``CallerContext`` instead of reaching for ambient globals.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ipledger.registry.identity import Identity


@runtime_checkable
class CallerContext(Protocol):
    def identity(self) -> Identity: ...

    def logical_time(self) -> int: ...


@dataclass(frozen=True)
class StaticCallerContext:
    """A fixed identity and a fixed logical time."""

    caller: Identity
    time: int = 0

    def identity(self) -> Identity:
        return self.caller

    def logical_time(self) -> int:
        return self.time


@dataclass(frozen=True)
class SystemCallerContext:
    """A fixed identity; time is wall-clock nanoseconds since the epoch."""

    caller: Identity

    def identity(self) -> Identity:
        return self.caller

    def logical_time(self) -> int:
        return time.time_ns()
