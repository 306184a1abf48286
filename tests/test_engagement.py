import pygame

from config.settings import EngagementConfig
from game.engagement import REASON_FOCUS_LOST, REASON_IDLE, EngagementMonitor
from game.timers import TimerScheduler


class TestEngagementMonitor:
    def setup_method(self):
        self.scheduler = TimerScheduler()
        self.blocks = []
        self.events = []
        self.monitor = EngagementMonitor(
            self.scheduler,
            EngagementConfig(),
            lambda reason, now: self.blocks.append((reason, now)),
            lambda kind, payload: self.events.append(kind),
        )
        self.monitor.arm(0)

    def test_focus_regained_before_timeout(self):
        self.monitor.focus_lost(1000)
        self.scheduler.update(10000)
        self.monitor.focus_gained(10000)
        self.scheduler.update(20000)
        assert self.blocks == []
        assert self.events[:2] == ["focus_lost", "focus_regained"]

    def test_focus_timeout_blocks_once(self):
        self.monitor.focus_lost(1000)
        self.scheduler.update(15999)
        assert self.blocks == []
        self.scheduler.update(16000)
        assert self.blocks == [(REASON_FOCUS_LOST, 16000)]
        assert not self.monitor.armed
        self.scheduler.update(60000)
        assert len(self.blocks) == 1

    def test_idle_warning_then_block(self):
        self.scheduler.update(29999)
        assert not self.monitor.warning_active
        self.scheduler.update(31000)
        assert self.monitor.warning_active
        assert self.monitor.warning_remaining_ms(32000) == 4000
        self.scheduler.update(36000)
        assert self.blocks == [(REASON_IDLE, 36000)]

    def test_acknowledge_clears_warning(self):
        self.scheduler.update(30000)
        assert self.monitor.warning_active
        self.monitor.acknowledge(31000)
        assert not self.monitor.warning_active
        self.scheduler.update(40000)
        assert self.blocks == []
        assert "idle_warning_cleared" in self.events

    def test_pygame_activity_resets_idle(self):
        self.scheduler.update(25000)
        self.monitor.process_pygame_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_a), 25000)
        self.scheduler.update(50000)
        assert not self.monitor.warning_active

    def test_pygame_focus_events(self):
        self.monitor.process_pygame_event(pygame.event.Event(pygame.WINDOWFOCUSLOST), 100)
        assert not self.monitor.has_focus
        self.monitor.process_pygame_event(pygame.event.Event(pygame.WINDOWFOCUSGAINED), 200)
        assert self.monitor.has_focus

    def test_teardown_is_idempotent_and_disarms(self):
        self.monitor.focus_lost(0)
        self.monitor.teardown()
        self.monitor.teardown()
        assert self.scheduler.pending_count() == 0
        self.monitor.focus_lost(100)
        self.scheduler.update(100000)
        assert self.blocks == []

    def test_held_idle_keeps_focus_watch(self):
        self.monitor.hold_idle()
        self.scheduler.update(100000)
        assert self.blocks == []
        assert not self.monitor.warning_active
        self.monitor.focus_lost(100000)
        self.scheduler.update(115000)
        assert self.blocks == [(REASON_FOCUS_LOST, 115000)]

    def test_release_restarts_idle_window(self):
        self.monitor.hold_idle()
        self.monitor.release_idle(50000)
        self.scheduler.update(60000)
        assert not self.monitor.warning_active
        assert self.monitor.last_activity_ms == 50000
        assert self.scheduler.is_pending("idle_poll")
