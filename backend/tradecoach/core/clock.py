"""
Wall clock abstraction so loops and gates can be driven by tests.
"""
from datetime import datetime, timezone


class Clock:
    """Timezone-aware UTC clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = Clock()
