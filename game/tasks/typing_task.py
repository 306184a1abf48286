from __future__ import annotations

import random
from typing import Optional, Tuple

import pygame

from game.runtime.models import FAMILY_TYPE, Enhancement, TaskId
from game.tasks.base import TaskBase, TaskRenderContext
from game.tasks.input_utils import edit_text, is_submit


PATTERNS_BY_LEVEL = {
    1: ("hello world", "quick test", "type this", "easy mode", "simple text", "good job"),
    2: ("HeLLo WoRLd", "QuIcK tEsT", "TyPe ThIs", "MiXeD cAsE", "KeEp GoInG", "NiCe WoRk"),
    3: ("Test@123", "Go4It!Now", "X9%Y8&Z7*", "P6!Q5?R4+", "Z1@Y2#X3$", "M7&N8*O9!"),
}


def simplify_pattern(pattern: str) -> str:
    """Lower-case letters and spaces only; never empty."""
    simple = "".join(ch for ch in pattern.lower() if ch.isalpha() or ch == " ").strip()
    return simple or pattern.lower()


def typing_accuracy(typed: str, expected: str) -> float:
    if typed == expected:
        return 100.0
    longest = max(len(typed), len(expected))
    if longest == 0:
        return 0.0
    matches = sum(1 for i in range(longest) if i < len(typed) and i < len(expected) and typed[i] == expected[i])
    return round(100.0 * matches / longest)


class TypingTask(TaskBase):
    family = FAMILY_TYPE

    def __init__(self, task: TaskId, enhancement: Optional[Enhancement], rng: random.Random) -> None:
        super().__init__(task, enhancement, rng)
        original = rng.choice(PATTERNS_BY_LEVEL[task.level])
        self.pattern = simplify_pattern(original) if self.enhanced else original
        self.input_text = ""

    def handle_event(self, event: pygame.event.Event, now_ms: int) -> None:
        self.mark_shown(now_ms)
        if is_submit(event):
            self.submit(now_ms)
            return
        self.input_text = edit_text(event, self.input_text, max_len=40)

    def evaluate(self) -> Tuple[bool, float, str]:
        accuracy = typing_accuracy(self.input_text, self.pattern)
        return accuracy >= 100.0, accuracy, self.input_text

    def feedback_text(self, outcome) -> str:
        if outcome.correct:
            return f"Passed! ({outcome.accuracy_percent:.0f}% accuracy)"
        return f"Try again! ({outcome.accuracy_percent:.0f}% accuracy - need 100%)"

    def render(self, screen: pygame.Surface, ctx: TaskRenderContext) -> None:
        x0 = ctx.rect.x + 16
        y = ctx.rect.y + 16
        title = ctx.font_mid.render("Type exactly:", True, ctx.color_main)
        screen.blit(title, (x0, y))
        y += title.get_height() + 16
        pattern = ctx.font_big.render(self.pattern, True, ctx.color_accent)
        screen.blit(pattern, (x0, y))
        y += pattern.get_height() + 24

        box = pygame.Rect(x0, y, ctx.rect.width - 32, ctx.font_big.get_linesize() + 12)
        pygame.draw.rect(screen, ctx.color_main, box, width=2, border_radius=6)
        typed = ctx.font_big.render(self.input_text, True, ctx.color_main)
        screen.blit(typed, (box.x + 8, box.y + 6))

        hint = ctx.font_small.render("Enter to submit", True, ctx.color_main)
        screen.blit(hint, (x0, ctx.rect.bottom - hint.get_height() - 12))
        if self.feedback:
            fb = ctx.font_small.render(self.feedback, True, ctx.color_alert)
            screen.blit(fb, (x0, box.bottom + 12))
