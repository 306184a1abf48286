from game.timers import TimerScheduler


class TestTimerScheduler:
    def test_fires_once_when_due(self):
        scheduler = TimerScheduler()
        fired = []
        scheduler.schedule("t", 100, 0, lambda handle, now: fired.append(now))
        assert scheduler.update(99) == 0
        assert scheduler.update(100) == 1
        assert scheduler.update(500) == 0
        assert fired == [100]

    def test_reschedule_replaces_pending_timer(self):
        scheduler = TimerScheduler()
        fired = []
        first = scheduler.schedule("t", 100, 0, lambda handle, now: fired.append("first"))
        second = scheduler.schedule("t", 300, 50, lambda handle, now: fired.append("second"))
        assert second.generation == first.generation + 1
        assert not scheduler.is_current(first)
        scheduler.update(200)
        assert fired == []
        scheduler.update(350)
        assert fired == ["second"]

    def test_cancel_is_idempotent(self):
        scheduler = TimerScheduler()
        handle = scheduler.schedule("t", 100, 0, lambda handle, now: None)
        scheduler.cancel("t")
        scheduler.cancel("t")
        scheduler.cancel("never-scheduled")
        assert not scheduler.is_current(handle)
        assert scheduler.pending_count() == 0
        assert scheduler.update(1000) == 0

    def test_callback_cancelling_later_timer_in_same_batch(self):
        scheduler = TimerScheduler()
        fired = []

        def first(handle, now):
            fired.append("a")
            scheduler.cancel("b")

        scheduler.schedule("a", 10, 0, first)
        scheduler.schedule("b", 20, 0, lambda handle, now: fired.append("b"))
        assert scheduler.update(100) == 1
        assert fired == ["a"]

    def test_remaining_ms(self):
        scheduler = TimerScheduler()
        scheduler.schedule("t", 3000, 1000, lambda handle, now: None)
        assert scheduler.remaining_ms("t", 2500) == 1500
        assert scheduler.remaining_ms("t", 9000) == 0
        assert scheduler.remaining_ms("missing", 0) is None

    def test_cancel_all(self):
        scheduler = TimerScheduler()
        for name in ("a", "b", "c"):
            scheduler.schedule(name, 10, 0, lambda handle, now: None)
        scheduler.cancel_all()
        assert scheduler.pending_count() == 0
