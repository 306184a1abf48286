import logging
from typing import Callable, Mapping, Optional

from game.runtime.models import (
    FAMILIES,
    STATUS_AVAILABLE,
    STATUS_ACTIVE,
    TaskId,
    family_tasks,
)
from game.timers import TimerHandle, TimerScheduler


logger = logging.getLogger(__name__)

BREAK_TIMER = "break"

OPEN_STATUSES = (STATUS_AVAILABLE, STATUS_ACTIVE)


def default_destination(completed_task: TaskId, statuses: Mapping[TaskId, str]) -> Optional[TaskId]:
    """
    Where the auto-advance lands when the participant does not choose.

    Next level of the same family first; after a level-3 task, the first open
    task of the other families in family order, then any family.
    """
    next_task = completed_task.next_level()
    if next_task is not None:
        return next_task

    for family in FAMILIES:
        if family == completed_task.family:
            continue
        for task in family_tasks(family):
            if statuses.get(task) in OPEN_STATUSES:
                return task

    for family in FAMILIES:
        for task in family_tasks(family):
            if statuses.get(task) in OPEN_STATUSES:
                return task
    return None


class BreakController:
    def __init__(
        self,
        scheduler: TimerScheduler,
        break_ms: int,
        on_expire: Callable[[Optional[TaskId], int], None],
    ) -> None:
        self.scheduler = scheduler
        self.break_ms = break_ms
        self._on_expire = on_expire
        self._handle: Optional[TimerHandle] = None
        self.breaks_started: int = 0
        self.active: bool = False
        self.anchor_task: Optional[TaskId] = None
        self.default_destination: Optional[TaskId] = None
        self.manual_destination: Optional[TaskId] = None
        self.started_ms: Optional[int] = None

    @property
    def destination(self) -> Optional[TaskId]:
        if self.manual_destination is not None:
            return self.manual_destination
        return self.default_destination

    def start(self, completed_task: TaskId, statuses: Mapping[TaskId, str], now_ms: int) -> Optional[TaskId]:
        # A break that is still pending is superseded, never left to fire.
        if self.active:
            logger.info("Break for %s superseded by %s", self.anchor_task, completed_task)
        self.cancel()

        self.breaks_started += 1
        self.active = True
        self.anchor_task = completed_task
        self.default_destination = default_destination(completed_task, statuses)
        self.manual_destination = None
        self.started_ms = now_ms
        self._handle = self.scheduler.schedule(BREAK_TIMER, self.break_ms, now_ms, self._on_timer)
        return self.default_destination

    def set_manual_destination(self, task: TaskId, statuses: Mapping[TaskId, str]) -> bool:
        if not self.active:
            return False
        if statuses.get(task) not in OPEN_STATUSES:
            return False
        self.manual_destination = task
        return True

    def cancel(self) -> None:
        self.scheduler.cancel(BREAK_TIMER)
        self._handle = None
        self.active = False

    def remaining_ms(self, now_ms: int) -> int:
        if not self.active:
            return 0
        remaining = self.scheduler.remaining_ms(BREAK_TIMER, now_ms)
        return remaining if remaining is not None else 0

    def _on_timer(self, handle: TimerHandle, now_ms: int) -> None:
        if not self.active or self._handle is None or handle.generation != self._handle.generation:
            logger.debug("Dropping stale break timer generation %s", handle.generation)
            return
        destination = self.destination
        self._handle = None
        self.active = False
        self._on_expire(destination, now_ms)
