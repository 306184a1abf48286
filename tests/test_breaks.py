from game.breaks import BREAK_TIMER, BreakController, default_destination
from game.runtime.models import (
    ALL_TASKS,
    FAMILY_COUNT,
    FAMILY_MATCH,
    FAMILY_TYPE,
    STATUS_AVAILABLE,
    STATUS_COMPLETED,
    STATUS_LOCKED,
    TaskId,
)
from game.timers import TimerScheduler


def statuses_with(completed=(), locked=()):
    statuses = {task: STATUS_AVAILABLE for task in ALL_TASKS}
    for task in locked:
        statuses[task] = STATUS_LOCKED
    for task in completed:
        statuses[task] = STATUS_COMPLETED
    return statuses


class TestDefaultDestination:
    def test_next_level_same_family(self):
        assert default_destination(TaskId(FAMILY_MATCH, 1), statuses_with()) == TaskId(FAMILY_MATCH, 2)

    def test_after_level_three_goes_to_other_family(self):
        done = [TaskId(FAMILY_COUNT, level) for level in (1, 2, 3)] + [TaskId(FAMILY_MATCH, 1)]
        statuses = statuses_with(completed=done, locked=[TaskId(FAMILY_MATCH, 3)])
        assert default_destination(TaskId(FAMILY_COUNT, 3), statuses) == TaskId(FAMILY_MATCH, 2)

    def test_nothing_open(self):
        statuses = statuses_with(completed=ALL_TASKS)
        assert default_destination(TaskId(FAMILY_TYPE, 3), statuses) is None


class TestBreakController:
    def setup_method(self):
        self.scheduler = TimerScheduler()
        self.expired = []
        self.breaks = BreakController(self.scheduler, 3000, lambda dest, now: self.expired.append((dest, now)))

    def test_expiry_reports_default_destination(self):
        self.breaks.start(TaskId(FAMILY_COUNT, 1), statuses_with(), 0)
        assert self.breaks.active
        assert self.breaks.remaining_ms(1000) == 2000
        self.scheduler.update(2999)
        assert self.expired == []
        self.scheduler.update(3000)
        assert self.expired == [(TaskId(FAMILY_COUNT, 2), 3000)]
        assert not self.breaks.active

    def test_manual_destination_last_choice_wins(self):
        self.breaks.start(TaskId(FAMILY_COUNT, 1), statuses_with(locked=[TaskId(FAMILY_TYPE, 2)]), 0)
        statuses = statuses_with(locked=[TaskId(FAMILY_TYPE, 2)])
        assert self.breaks.set_manual_destination(TaskId(FAMILY_MATCH, 1), statuses)
        assert not self.breaks.set_manual_destination(TaskId(FAMILY_TYPE, 2), statuses)
        assert self.breaks.set_manual_destination(TaskId(FAMILY_TYPE, 1), statuses)
        self.scheduler.update(3000)
        assert self.expired == [(TaskId(FAMILY_TYPE, 1), 3000)]

    def test_manual_destination_outside_break_rejected(self):
        assert not self.breaks.set_manual_destination(TaskId(FAMILY_TYPE, 1), statuses_with())

    def test_second_start_supersedes_first(self):
        self.breaks.start(TaskId(FAMILY_COUNT, 1), statuses_with(), 0)
        self.breaks.start(TaskId(FAMILY_MATCH, 1), statuses_with(), 1000)
        assert self.breaks.breaks_started == 2
        self.scheduler.update(3000)
        assert self.expired == []
        self.scheduler.update(4000)
        assert self.expired == [(TaskId(FAMILY_MATCH, 2), 4000)]

    def test_stale_handle_dropped_in_callback(self):
        self.breaks.start(TaskId(FAMILY_COUNT, 1), statuses_with(), 0)
        stale = self.breaks._handle
        self.breaks.start(TaskId(FAMILY_MATCH, 1), statuses_with(), 10)
        self.breaks._on_timer(stale, 3000)
        assert self.expired == []
        assert self.breaks.active

    def test_cancel_is_idempotent(self):
        self.breaks.start(TaskId(FAMILY_COUNT, 1), statuses_with(), 0)
        self.breaks.cancel()
        self.breaks.cancel()
        assert not self.scheduler.is_pending(BREAK_TIMER)
        self.scheduler.update(10000)
        assert self.expired == []
        assert self.breaks.remaining_ms(0) == 0
