"""Shared spend window: one clock, one lock, one source of truth.

BudgetManager and PolicyEngine read and mutate the same ``SpendLedger`` so
the hard cap, the reservation holds and the per-vendor counters always reset
together.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class SpendLedger:
    """Mutable window state. Every access must hold ``lock``."""

    def __init__(self, cap: int, window_seconds: int, clock: Clock | None = None):
        if cap < 0:
            raise ValueError("cap must be >= 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be >= 1")
        self.cap = int(cap)
        self.window_ms = int(window_seconds) * 1000
        self.clock: Clock = clock or wall_clock_ms
        self.lock = threading.RLock()

        self.window_start = self.clock()
        self.spent = 0
        self.reservations: dict[str, int] = {}
        self.orphaned: set[str] = set()
        self.receipts: list = []
        self.vendor_request_counts: dict[str, int] = {}
        self.vendor_admissions: dict[str, int] = {}
        self.resets = 0

    @property
    def window_end(self) -> int:
        return self.window_start + self.window_ms

    @property
    def reserved(self) -> int:
        return sum(self.reservations.values())

    @property
    def available(self) -> int:
        return max(0, self.cap - self.spent - self.reserved)

    def roll_window(self) -> bool:
        """Reset the window when the clock has moved past it.

        Outstanding reservations are dropped; their ids are kept as orphaned
        so a late commit can still be charged to the new window.
        """
        with self.lock:
            now = self.clock()
            if now - self.window_start <= self.window_ms:
                return False

            dropped = list(self.reservations)
            if dropped:
                logger.warning(
                    "Window reset dropped in-flight reservations",
                    dropped=len(dropped),
                    reserved=self.reserved,
                )
            self.orphaned = set(dropped)
            self.window_start = now
            self.spent = 0
            self.reservations.clear()
            self.receipts = []
            self.vendor_request_counts.clear()
            self.vendor_admissions.clear()
            self.resets += 1
            logger.info("Spend window reset", window_start=self.window_start, window_end=self.window_end)
            return True
