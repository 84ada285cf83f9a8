"""Tests for the guest trial and trailer preview countdowns."""

import asyncio

import pytest

from streamgate.models import GuestSettings
from streamgate.services.guest_timer import CountdownTimer, GuestTrialTimer, TrailerPreviewTimer


class Counter:
    """Callback that counts its invocations."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


@pytest.fixture
def fired():
    return Counter()


@pytest.fixture
def timer(fired):
    """Manually ticked guest timer, playing as a guest."""
    timer = GuestTrialTimer(limit_seconds=60, autotick=False)
    timer.start(is_guest=True, is_playing=True, on_limit_reached=fired)
    return timer


class TestCounting:
    """Tests for active-second counting."""

    def test_initial_state(self):
        timer = GuestTrialTimer(autotick=False)
        assert timer.elapsed_seconds == 0
        assert timer.time_left == 60
        assert timer.has_reached_limit is False

    def test_limit_after_sixty_ticks(self, timer, fired):
        for _ in range(59):
            timer.tick()
        assert timer.has_reached_limit is False
        assert timer.time_left == 1

        timer.tick()
        assert timer.has_reached_limit is True
        assert timer.time_left == 0
        assert fired.calls == 1

    def test_fires_exactly_once(self, timer, fired):
        for _ in range(75):
            timer.tick()
        assert fired.calls == 1
        assert timer.elapsed_seconds == 60

    def test_tick_after_limit_reports_idle(self, timer):
        for _ in range(60):
            timer.tick()
        assert timer.tick() is False

    def test_paused_ticks_do_not_count(self, timer):
        timer.tick()
        timer.pause()
        assert timer.tick() is False
        assert timer.elapsed_seconds == 1

    def test_pause_does_not_reset(self, timer, fired):
        for _ in range(30):
            timer.tick()
        timer.pause()
        timer.resume()
        for _ in range(30):
            timer.tick()
        assert fired.calls == 1

    def test_signed_in_viewer_is_not_counted(self, fired):
        timer = GuestTrialTimer(autotick=False)
        timer.start(is_guest=False, is_playing=True, on_limit_reached=fired)
        assert timer.tick() is False
        assert timer.elapsed_seconds == 0

    def test_update_changes_conditions(self, timer):
        timer.update(is_playing=False)
        assert timer.tick() is False
        timer.update(is_playing=True)
        assert timer.tick() is True

    def test_reset_restores_allowance(self, timer, fired):
        for _ in range(60):
            timer.tick()
        timer.reset()
        assert timer.has_reached_limit is False
        assert timer.time_left == 60
        for _ in range(60):
            timer.tick()
        assert fired.calls == 2

    def test_session_snapshot(self, timer):
        for _ in range(10):
            timer.tick()
        session = timer.session
        assert session.is_guest is True
        assert session.elapsed_seconds == 10
        assert session.time_left == 50
        assert session.reached_limit is False

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            CountdownTimer(limit_seconds=0)


class TestTeardown:
    """Tests for cancellation and callback safety."""

    def test_cancel_prevents_callback(self, timer, fired):
        for _ in range(59):
            timer.tick()
        timer.cancel()
        timer.tick()
        assert fired.calls == 0

    def test_callback_error_is_contained(self):
        def broken():
            raise RuntimeError("consumer unmounted")

        timer = GuestTrialTimer(limit_seconds=2, autotick=False)
        timer.start(is_guest=True, is_playing=True, on_limit_reached=broken)
        timer.tick()
        timer.tick()
        assert timer.has_reached_limit is True


class TestAutotick:
    """Tests for the asyncio ticker."""

    @pytest.mark.asyncio
    async def test_ticks_on_event_loop(self, fired):
        timer = GuestTrialTimer(limit_seconds=3, tick_interval_seconds=0.001)
        timer.start(is_guest=True, is_playing=True, on_limit_reached=fired)
        assert timer.is_running is True

        for _ in range(200):
            if timer.has_reached_limit:
                break
            await asyncio.sleep(0.005)

        assert timer.has_reached_limit is True
        assert fired.calls == 1
        await asyncio.sleep(0.005)
        assert timer.is_running is False

    @pytest.mark.asyncio
    async def test_pause_stops_ticker(self, fired):
        timer = GuestTrialTimer(limit_seconds=60, tick_interval_seconds=0.001)
        timer.start(is_guest=True, is_playing=True, on_limit_reached=fired)
        timer.pause()
        assert timer.is_running is False
        elapsed = timer.elapsed_seconds
        await asyncio.sleep(0.01)
        assert timer.elapsed_seconds == elapsed

    @pytest.mark.asyncio
    async def test_cancel_stops_ticker(self, fired):
        timer = GuestTrialTimer(limit_seconds=60, tick_interval_seconds=0.001)
        timer.start(is_guest=True, is_playing=True, on_limit_reached=fired)
        timer.cancel()
        assert timer.is_running is False


class TestTrailerPreview:
    """Tests for the per-view trailer countdown."""

    def test_counts_regardless_of_guest_status(self, fired):
        timer = TrailerPreviewTimer(limit_seconds=60, on_limit_reached=fired, autotick=False)
        timer.begin_view("trailer-1")
        for _ in range(60):
            timer.tick()
        assert fired.calls == 1
        assert timer.trailer_id == "trailer-1"

    def test_new_view_restarts_allowance(self, fired):
        timer = TrailerPreviewTimer(limit_seconds=60, on_limit_reached=fired, autotick=False)
        timer.begin_view("trailer-1")
        for _ in range(60):
            timer.tick()
        timer.begin_view("trailer-2")
        assert timer.has_reached_limit is False
        assert timer.time_left == 60

    def test_from_settings(self):
        settings = GuestSettings(trial_limit_seconds=90, trailer_preview_seconds=30)
        assert TrailerPreviewTimer.from_settings(settings, autotick=False).limit_seconds == 30
        assert GuestTrialTimer.from_settings(settings, autotick=False).limit_seconds == 90
