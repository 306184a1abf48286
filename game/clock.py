from typing import Optional


class SessionClock:
    """Elapsed main-game time with pause/resume; paused spans are not counted."""

    def __init__(self) -> None:
        self.started_ms: Optional[int] = None
        self.stopped_ms: Optional[int] = None
        self.paused_total_ms: int = 0
        self.pause_started_ms: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self.started_ms is not None and self.stopped_ms is None

    @property
    def is_paused(self) -> bool:
        return self.pause_started_ms is not None

    def start(self, now_ms: int, already_elapsed_ms: int = 0) -> None:
        self.started_ms = now_ms - max(0, already_elapsed_ms)
        self.stopped_ms = None
        self.paused_total_ms = 0
        self.pause_started_ms = None

    def pause(self, now_ms: int) -> None:
        if not self.is_running or self.is_paused:
            return
        self.pause_started_ms = now_ms

    def resume(self, now_ms: int) -> int:
        """Ends the current pause and returns its length (0 when not paused)."""
        if self.pause_started_ms is None:
            return 0
        paused = max(0, now_ms - self.pause_started_ms)
        self.paused_total_ms += paused
        self.pause_started_ms = None
        return paused

    def stop(self, now_ms: int) -> None:
        if not self.is_running:
            return
        self.resume(now_ms)
        self.stopped_ms = now_ms

    def elapsed_ms(self, now_ms: int) -> int:
        if self.started_ms is None:
            return 0
        end = self.stopped_ms if self.stopped_ms is not None else now_ms
        if self.pause_started_ms is not None:
            end = min(end, self.pause_started_ms)
        return max(0, end - self.started_ms - self.paused_total_ms)

    def elapsed_sec(self, now_ms: int) -> int:
        return self.elapsed_ms(now_ms) // 1000


def format_clock(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
