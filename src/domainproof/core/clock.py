"""Injectable time source.

Services never call ``datetime.now`` directly; they ask their clock.
Production code uses :class:`SystemClock`; tests substitute a clock
they move by hand.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Timezone-aware UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)
