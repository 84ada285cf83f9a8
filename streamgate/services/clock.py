"""Clocks for expiry calculations.

Responsibilities:
- Provide the current time in Unix milliseconds
- Offer a virtual clock that tests and simulations can fast-forward
"""

import threading
import time
from typing import Optional

from streamgate.logging_config import get_logger

logger = get_logger(__name__)


class Clock:
    """Wall clock backed by ``time.time()``."""

    def now_millis(self) -> int:
        """Get the current time in milliseconds."""
        return int(time.time() * 1000)


class VirtualClock(Clock):
    """Clock that only moves when told to.

    Args:
        start_millis: initial virtual time, defaults to the real current time
    """

    def __init__(self, start_millis: Optional[int] = None) -> None:
        self._lock = threading.RLock()
        self._virtual_time_millis = start_millis if start_millis is not None else int(time.time() * 1000)

        logger.debug(
            "virtual_clock initialized",
            virtual_time_millis=self._virtual_time_millis,
        )

    def now_millis(self) -> int:
        with self._lock:
            return self._virtual_time_millis

    def advance(
            self,
            days: int = 0,
            hours: int = 0,
            minutes: int = 0,
            seconds: int = 0,
    ) -> int:
        """Advance virtual time.

        Returns:
            The new virtual time in milliseconds

        Raises:
            ValueError: if any value is negative
        """
        if days < 0 or hours < 0 or minutes < 0 or seconds < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed.")

        millis_to_advance = (
            (days * 24 * 60 * 60 * 1000) +
            (hours * 60 * 60 * 1000) +
            (minutes * 60 * 1000) +
            (seconds * 1000)
        )

        with self._lock:
            old_time = self._virtual_time_millis
            self._virtual_time_millis += millis_to_advance
            new_time = self._virtual_time_millis

        logger.debug(
            "virtual time advanced",
            old_time_millis=old_time,
            new_time_millis=new_time,
        )
        return new_time

    def set_time(self, timestamp_millis: int) -> None:
        """Jump to a specific timestamp.

        Raises:
            ValueError: If timestamp is before the current virtual time
        """
        with self._lock:
            if timestamp_millis < self._virtual_time_millis:
                raise ValueError(
                    f"cannot set time backwards, current: {self._virtual_time_millis}, "
                    f"requested: {timestamp_millis}"
                )
            self._virtual_time_millis = timestamp_millis
