"""
Local clock for EchoProbe timestamps.
"""

import time


class LocalClock:
    """Provides epoch-millisecond timestamps for T1 and T4."""

    def now_ms(self) -> float:
        """Get current local time in milliseconds since epoch."""
        return time.time_ns() / 1_000_000
