import logging
from typing import Callable, Optional

import pygame

from config.settings import EngagementConfig
from game.timers import TimerHandle, TimerScheduler


logger = logging.getLogger(__name__)

FOCUS_TIMER = "focus_countdown"
IDLE_POLL_TIMER = "idle_poll"
IDLE_WARNING_TIMER = "idle_warning"

REASON_FOCUS_LOST = "focus_lost"
REASON_IDLE = "idle"

ACTIVITY_EVENTS = {
    pygame.MOUSEMOTION,
    pygame.MOUSEBUTTONDOWN,
    pygame.KEYDOWN,
    pygame.MOUSEWHEEL,
    pygame.FINGERDOWN,
    pygame.FINGERMOTION,
}


class EngagementMonitor:
    """
    Two independent watchdogs: window focus and input inactivity.

    Both only run while armed. Expiry of either countdown calls on_block
    once; after that the monitor disarms itself. hold_idle() parks the idle
    watchdog alone (the pause screen), focus keeps being watched.
    """

    def __init__(
        self,
        scheduler: TimerScheduler,
        config: EngagementConfig,
        on_block: Callable[[str, int], None],
        on_event: Optional[Callable[[str, dict], None]] = None,
    ) -> None:
        self.scheduler = scheduler
        self.config = config
        self._on_block = on_block
        self._on_event = on_event
        self.armed: bool = False
        self.has_focus: bool = True
        self.last_activity_ms: int = 0
        self.warning_active: bool = False
        self.idle_held: bool = False
        self._focus_handle: Optional[TimerHandle] = None
        self._warning_handle: Optional[TimerHandle] = None
        self._poll_handle: Optional[TimerHandle] = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def arm(self, now_ms: int) -> None:
        if self.armed:
            return
        self.armed = True
        self.has_focus = True
        self.last_activity_ms = now_ms
        self.warning_active = False
        self.idle_held = False
        self._schedule_poll(now_ms)

    def teardown(self) -> None:
        self.armed = False
        self.warning_active = False
        self.idle_held = False
        for name in (FOCUS_TIMER, IDLE_POLL_TIMER, IDLE_WARNING_TIMER):
            self.scheduler.cancel(name)
        self._focus_handle = None
        self._warning_handle = None
        self._poll_handle = None

    def hold_idle(self) -> None:
        if not self.armed or self.idle_held:
            return
        self.idle_held = True
        self._clear_warning()
        self.scheduler.cancel(IDLE_POLL_TIMER)
        self._poll_handle = None

    def release_idle(self, now_ms: int) -> None:
        if not self.armed or not self.idle_held:
            return
        self.idle_held = False
        # the pause itself does not count as inactivity
        self.last_activity_ms = now_ms
        self._schedule_poll(now_ms)

    # ------------------------------------------------------------------
    # inputs
    # ------------------------------------------------------------------
    def process_pygame_event(self, event: pygame.event.Event, now_ms: int) -> None:
        if event.type == pygame.WINDOWFOCUSLOST:
            self.focus_lost(now_ms)
        elif event.type == pygame.WINDOWFOCUSGAINED:
            self.focus_gained(now_ms)
        elif event.type in ACTIVITY_EVENTS:
            self.record_activity(now_ms)

    def focus_lost(self, now_ms: int) -> None:
        if not self.armed or not self.has_focus:
            return
        self.has_focus = False
        self._focus_handle = self.scheduler.schedule(
            FOCUS_TIMER, self.config.focus_timeout_ms, now_ms, self._on_focus_expired
        )
        self._emit("focus_lost", {"countdown_ms": self.config.focus_timeout_ms})

    def focus_gained(self, now_ms: int) -> None:
        if not self.armed or self.has_focus:
            return
        self.has_focus = True
        remaining = self.scheduler.remaining_ms(FOCUS_TIMER, now_ms)
        self.scheduler.cancel(FOCUS_TIMER)
        self._focus_handle = None
        self.last_activity_ms = now_ms
        self._emit("focus_regained", {"remaining_ms": remaining})

    def record_activity(self, now_ms: int) -> None:
        if not self.armed:
            return
        self.last_activity_ms = now_ms
        if self.warning_active:
            self._clear_warning()
            self._emit("idle_warning_cleared", {"source": "activity"})

    def acknowledge(self, now_ms: int) -> None:
        """Explicit "still here" from the idle warning dialog."""
        if not self.armed:
            return
        self.last_activity_ms = now_ms
        if self.warning_active:
            self._clear_warning()
            self._emit("idle_warning_cleared", {"source": "acknowledge"})

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def focus_remaining_ms(self, now_ms: int) -> Optional[int]:
        return self.scheduler.remaining_ms(FOCUS_TIMER, now_ms)

    def warning_remaining_ms(self, now_ms: int) -> Optional[int]:
        return self.scheduler.remaining_ms(IDLE_WARNING_TIMER, now_ms)

    # ------------------------------------------------------------------
    # timer callbacks
    # ------------------------------------------------------------------
    def _schedule_poll(self, now_ms: int) -> None:
        self._poll_handle = self.scheduler.schedule(
            IDLE_POLL_TIMER, self.config.idle_poll_ms, now_ms, self._on_poll
        )

    def _on_poll(self, handle: TimerHandle, now_ms: int) -> None:
        if not self.armed or self.idle_held:
            return
        if self._poll_handle is None or handle.generation != self._poll_handle.generation:
            return
        if not self.warning_active and now_ms - self.last_activity_ms >= self.config.idle_threshold_ms:
            self.warning_active = True
            self._warning_handle = self.scheduler.schedule(
                IDLE_WARNING_TIMER, self.config.idle_warning_ms, now_ms, self._on_warning_expired
            )
            self._emit(
                "idle_warning",
                {"idle_ms": now_ms - self.last_activity_ms, "countdown_ms": self.config.idle_warning_ms},
            )
        self._schedule_poll(now_ms)

    def _on_focus_expired(self, handle: TimerHandle, now_ms: int) -> None:
        if not self.armed or self._focus_handle is None or handle.generation != self._focus_handle.generation:
            return
        if self.has_focus:
            return
        self._expire(REASON_FOCUS_LOST, now_ms)

    def _on_warning_expired(self, handle: TimerHandle, now_ms: int) -> None:
        if not self.armed or self._warning_handle is None or handle.generation != self._warning_handle.generation:
            return
        if not self.warning_active:
            return
        self._expire(REASON_IDLE, now_ms)

    def _expire(self, reason: str, now_ms: int) -> None:
        logger.warning("Engagement watchdog expired: %s", reason)
        self.teardown()
        self._on_block(reason, now_ms)

    def _clear_warning(self) -> None:
        self.warning_active = False
        self.scheduler.cancel(IDLE_WARNING_TIMER)
        self._warning_handle = None

    def _emit(self, event_type: str, payload: dict) -> None:
        if self._on_event is not None:
            self._on_event(event_type, payload)
