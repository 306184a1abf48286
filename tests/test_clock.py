from game.clock import SessionClock, format_clock


class TestSessionClock:
    def test_elapsed_excludes_pauses(self):
        clock = SessionClock()
        clock.start(1000)
        clock.pause(3000)
        assert clock.elapsed_ms(10000) == 2000
        assert clock.resume(8000) == 5000
        assert clock.elapsed_ms(9000) == 3000
        assert clock.paused_total_ms == 5000

    def test_pause_twice_keeps_first_start(self):
        clock = SessionClock()
        clock.start(0)
        clock.pause(1000)
        clock.pause(2000)
        assert clock.resume(4000) == 3000

    def test_resume_without_pause_is_noop(self):
        clock = SessionClock()
        clock.start(0)
        assert clock.resume(500) == 0
        assert clock.paused_total_ms == 0

    def test_stop_freezes_and_closes_pause(self):
        clock = SessionClock()
        clock.start(0)
        clock.pause(1000)
        clock.stop(3000)
        assert not clock.is_running
        assert not clock.is_paused
        assert clock.elapsed_ms(99999) == 1000

    def test_start_with_previous_elapsed(self):
        clock = SessionClock()
        clock.start(5000, already_elapsed_ms=60000)
        assert clock.elapsed_sec(6000) == 61

    def test_not_started(self):
        assert SessionClock().elapsed_ms(1234) == 0


def test_format_clock():
    assert format_clock(0) == "00:00"
    assert format_clock(75) == "01:15"
    assert format_clock(-3) == "00:00"
