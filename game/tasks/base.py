from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Tuple

import pygame

from game.runtime.models import Enhancement, TaskId, TaskOutcome


@dataclass
class TaskRenderContext:
    rect: pygame.Rect
    font_big: pygame.font.Font
    font_mid: pygame.font.Font
    font_small: pygame.font.Font
    color_main: Tuple[int, int, int]
    color_accent: Tuple[int, int, int]
    color_alert: Tuple[int, int, int]
    color_highlight: Tuple[int, int, int] = (250, 220, 90)


class TaskBase:
    """
    One task screen. Renderers only read their TaskId and enhancement;
    progression is decided elsewhere from the outcomes they hand back.
    """

    family: str = "BASE"

    def __init__(self, task: TaskId, enhancement: Optional[Enhancement], rng: random.Random) -> None:
        self.task = task
        self.enhancement = enhancement
        self.rng = rng
        self.started_ms: Optional[int] = None
        self.attempts: int = 0
        self.feedback: str = ""
        self._outcome: Optional[TaskOutcome] = None

    @property
    def enhanced(self) -> bool:
        return self.enhancement is not None

    def handle_event(self, event: pygame.event.Event, now_ms: int) -> None:
        raise NotImplementedError

    def render(self, screen: pygame.Surface, ctx: TaskRenderContext) -> None:
        raise NotImplementedError

    def evaluate(self) -> Tuple[bool, float, str]:
        """Returns (passed, accuracy percent, response)."""
        raise NotImplementedError

    def submit(self, now_ms: int) -> TaskOutcome:
        if self.started_ms is None:
            self.started_ms = now_ms
        passed, accuracy, response = self.evaluate()
        self.attempts += 1
        outcome = TaskOutcome(
            correct=passed,
            accuracy_percent=round(accuracy, 1),
            response=response,
            rt_ms=now_ms - self.started_ms,
        )
        self.feedback = self.feedback_text(outcome)
        self._outcome = outcome
        return outcome

    def feedback_text(self, outcome: TaskOutcome) -> str:
        if outcome.correct:
            return f"Passed! ({outcome.accuracy_percent:.0f}% accuracy)"
        return f"Try again! ({outcome.accuracy_percent:.0f}% accuracy)"

    def take_outcome(self) -> Optional[TaskOutcome]:
        outcome = self._outcome
        self._outcome = None
        return outcome

    def mark_shown(self, now_ms: int) -> None:
        if self.started_ms is None:
            self.started_ms = now_ms
