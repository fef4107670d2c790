"""
Admission slots.

A fixed-size counting gate: a task may start only if it can take a slot,
and gives the slot back when it finishes. The limit can be changed at
any time; a lower limit never preempts work already holding a slot, it
only blocks new admissions until enough slots are returned.
"""

import logging

logger = logging.getLogger(__name__)


class AdmissionSlots:
    """Counting gate for concurrent task execution."""

    def __init__(self, limit: int = 1):
        self._limit = max(1, int(limit))
        self._in_use = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> bool:
        """True if another slot can be taken right now."""
        return self._in_use < self._limit

    def try_acquire(self) -> bool:
        """Take a slot if one is free."""
        if not self.available:
            return False
        self._in_use += 1
        logger.debug(f"[Slots] Acquired, in use: {self._in_use}/{self._limit}")
        return True

    def release(self) -> None:
        """Return a slot."""
        self._in_use = max(0, self._in_use - 1)
        logger.debug(f"[Slots] Released, in use: {self._in_use}/{self._limit}")

    def resize(self, limit: int) -> int:
        """
        Change the limit, clamped to at least 1.

        Returns:
            The limit actually applied
        """
        self._limit = max(1, int(limit))
        return self._limit
