"""Guest trial and trailer preview countdowns.

Both count active playback seconds toward a fixed allowance. Pausing
suspends the count without resetting it; reaching the allowance fires the
callback exactly once and freezes the countdown at zero.
"""

import asyncio
from typing import Callable, Optional

from streamgate.logging_config import get_logger
from streamgate.models.guest import GuestSession
from streamgate.state_logger import log_guest_limit_reached

logger = get_logger(__name__)

LimitCallback = Callable[[], None]


class CountdownTimer:
    """Single-fire countdown over active seconds.

    Args:
        limit_seconds: allowance in seconds
        on_limit_reached: called once when the allowance is used up
        tick_interval_seconds: real time between ticks when auto-ticking
        autotick: schedule ticks on the running event loop; when False the
            owner drives the countdown by calling ``tick()``
    """

    name = "countdown"

    def __init__(
        self,
        limit_seconds: int = 60,
        on_limit_reached: Optional[LimitCallback] = None,
        tick_interval_seconds: float = 1.0,
        autotick: bool = True,
    ) -> None:
        if limit_seconds <= 0:
            raise ValueError(f"limit_seconds must be positive, got {limit_seconds}")
        self.limit_seconds = limit_seconds
        self.tick_interval_seconds = tick_interval_seconds
        self.autotick = autotick
        self._on_limit_reached = on_limit_reached
        self._elapsed = 0
        self._reached_limit = False
        self._is_playing = False
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def time_left(self) -> int:
        return max(self.limit_seconds - self._elapsed, 0)

    @property
    def has_reached_limit(self) -> bool:
        return self._reached_limit

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _can_tick(self) -> bool:
        return self._is_playing and not self._reached_limit and not self._cancelled

    def tick(self) -> bool:
        """Count one active second.

        Returns:
            True if the second was counted, False if the timer was idle
        """
        if not self._can_tick():
            return False

        self._elapsed += 1
        if self._elapsed >= self.limit_seconds:
            self._elapsed = self.limit_seconds
            self._reached_limit = True
            self._fire()
        return True

    def pause(self) -> None:
        """Suspend counting; elapsed time is kept."""
        self._is_playing = False
        self._sync_ticker()

    def resume(self) -> None:
        """Continue counting after a pause."""
        self._is_playing = True
        self._sync_ticker()

    def reset(self) -> None:
        """Restore the full allowance and clear the reached-limit flag."""
        self._elapsed = 0
        self._reached_limit = False
        self._sync_ticker()

    def cancel(self) -> None:
        """Tear the timer down; the callback will never fire afterwards."""
        self._cancelled = True
        self._on_limit_reached = None
        self._stop_ticker()

    def _fire(self) -> None:
        log_guest_limit_reached(timer=self.name, limit_seconds=self.limit_seconds)
        callback = self._on_limit_reached
        if callback is None:
            return
        try:
            callback()
        except Exception as e:
            logger.error(
                "limit_callback_failed",
                timer=self.name,
                error=str(e),
                exc_info=True,
            )

    def _sync_ticker(self) -> None:
        """Start or stop the background ticker to match the current conditions."""
        if not self.autotick:
            return
        if self._can_tick():
            if not self.is_running:
                self._task = asyncio.get_running_loop().create_task(self._run())
        else:
            self._stop_ticker()

    def _stop_ticker(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        while self._can_tick():
            await asyncio.sleep(self.tick_interval_seconds)
            self.tick()


class GuestTrialTimer(CountdownTimer):
    """Playback allowance for unauthenticated viewers.

    Counts only while the viewer is a guest and the video is playing.
    """

    name = "guest_trial"

    def __init__(
        self,
        limit_seconds: int = 60,
        on_limit_reached: Optional[LimitCallback] = None,
        tick_interval_seconds: float = 1.0,
        autotick: bool = True,
    ) -> None:
        super().__init__(limit_seconds, on_limit_reached, tick_interval_seconds, autotick)
        self._is_guest = False

    @classmethod
    def from_settings(cls, settings, on_limit_reached: Optional[LimitCallback] = None, autotick: bool = True):
        """Build from ``GuestSettings``."""
        return cls(
            limit_seconds=settings.trial_limit_seconds,
            on_limit_reached=on_limit_reached,
            tick_interval_seconds=settings.tick_interval_seconds,
            autotick=autotick,
        )

    @property
    def is_guest(self) -> bool:
        return self._is_guest

    def _can_tick(self) -> bool:
        return self._is_guest and super()._can_tick()

    def start(
        self,
        is_guest: bool,
        is_playing: bool,
        on_limit_reached: Optional[LimitCallback] = None,
    ) -> None:
        """Begin (or re-evaluate) the countdown for a playback attempt."""
        if on_limit_reached is not None:
            self._on_limit_reached = on_limit_reached
        self._cancelled = False
        self.update(is_guest=is_guest, is_playing=is_playing)

    def update(self, is_guest: Optional[bool] = None, is_playing: Optional[bool] = None) -> None:
        """Apply changed viewer or playback conditions."""
        if is_guest is not None:
            self._is_guest = is_guest
        if is_playing is not None:
            self._is_playing = is_playing
        self._sync_ticker()

    @property
    def session(self) -> GuestSession:
        """Snapshot of the countdown as a GuestSession."""
        return GuestSession(
            is_guest=self._is_guest,
            elapsed_seconds=self._elapsed,
            limit_seconds=self.limit_seconds,
            reached_limit=self._reached_limit,
        )


class TrailerPreviewTimer(CountdownTimer):
    """Preview allowance scoped to one trailer view."""

    name = "trailer_preview"

    def __init__(
        self,
        limit_seconds: int = 60,
        on_limit_reached: Optional[LimitCallback] = None,
        tick_interval_seconds: float = 1.0,
        autotick: bool = True,
    ) -> None:
        super().__init__(limit_seconds, on_limit_reached, tick_interval_seconds, autotick)
        self.trailer_id: Optional[str] = None

    @classmethod
    def from_settings(cls, settings, on_limit_reached: Optional[LimitCallback] = None, autotick: bool = True):
        """Build from ``GuestSettings``."""
        return cls(
            limit_seconds=settings.trailer_preview_seconds,
            on_limit_reached=on_limit_reached,
            tick_interval_seconds=settings.tick_interval_seconds,
            autotick=autotick,
        )

    def begin_view(self, trailer_id: str, is_playing: bool = True) -> None:
        """Start a fresh allowance for a new trailer view."""
        self.trailer_id = trailer_id
        self._cancelled = False
        self._elapsed = 0
        self._reached_limit = False
        self._is_playing = is_playing
        self._stop_ticker()
        self._sync_ticker()
