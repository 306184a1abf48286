from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class TimerHandle:
    name: str
    generation: int
    due_ms: int


TimerCallback = Callable[[TimerHandle, int], None]


class TimerScheduler:
    """
    Named one-shot timers driven by the frame loop.

    Every schedule/cancel bumps the generation of its name, so a handle
    captured before that point is stale. update() only fires handles that
    are still current; owners re-check the generation inside their callback
    as well, because the callback may run after a user action in the same
    frame has already moved on.
    """

    def __init__(self) -> None:
        self._generations: Dict[str, int] = {}
        self._pending: Dict[str, Tuple[TimerHandle, TimerCallback]] = {}

    def schedule(self, name: str, delay_ms: int, now_ms: int, callback: TimerCallback) -> TimerHandle:
        generation = self._generations.get(name, 0) + 1
        self._generations[name] = generation
        handle = TimerHandle(name=name, generation=generation, due_ms=now_ms + max(0, int(delay_ms)))
        self._pending[name] = (handle, callback)
        return handle

    def cancel(self, name: str) -> None:
        if name in self._pending:
            del self._pending[name]
        self._generations[name] = self._generations.get(name, 0) + 1

    def cancel_all(self) -> None:
        for name in list(self._pending):
            self.cancel(name)

    def is_current(self, handle: Optional[TimerHandle]) -> bool:
        if handle is None:
            return False
        entry = self._pending.get(handle.name)
        return entry is not None and entry[0].generation == handle.generation

    def is_pending(self, name: str) -> bool:
        return name in self._pending

    def pending_count(self) -> int:
        return len(self._pending)

    def remaining_ms(self, name: str, now_ms: int) -> Optional[int]:
        entry = self._pending.get(name)
        if entry is None:
            return None
        return max(0, entry[0].due_ms - now_ms)

    def update(self, now_ms: int) -> int:
        due: List[Tuple[TimerHandle, TimerCallback]] = [
            entry for entry in self._pending.values() if entry[0].due_ms <= now_ms
        ]
        due.sort(key=lambda entry: entry[0].due_ms)
        fired = 0
        for handle, callback in due:
            # An earlier callback in this batch may have cancelled or rescheduled it.
            if not self.is_current(handle):
                continue
            del self._pending[handle.name]
            callback(handle, now_ms)
            fired += 1
        return fired
