from __future__ import annotations

import random
from typing import Optional, Tuple

import pygame

from game.runtime.models import FAMILY_MATCH, Enhancement, TaskId
from game.tasks.base import TaskBase, TaskRenderContext
from game.tasks.input_utils import is_submit, read_left_right_key


SLIDER_MIN = 0.0
SLIDER_MAX = 10.0
PRECISION_BY_LEVEL = {1: 0, 2: 1, 3: 2}


def snap(value: float, precision: int) -> float:
    value = max(SLIDER_MIN, min(SLIDER_MAX, value))
    return round(value, precision)


class MatchSliderTask(TaskBase):
    family = FAMILY_MATCH

    def __init__(self, task: TaskId, enhancement: Optional[Enhancement], rng: random.Random) -> None:
        super().__init__(task, enhancement, rng)
        self.precision = PRECISION_BY_LEVEL[task.level]
        self.step = 10 ** -self.precision
        self.target = snap(rng.uniform(SLIDER_MIN, SLIDER_MAX), self.precision)
        self.show_value = task.level < 3
        self.value = 0.0
        self.dragging = False
        self._track: Optional[pygame.Rect] = None

    def set_value_from_x(self, x: int) -> None:
        if self._track is None or self._track.width <= 0:
            return
        ratio = (x - self._track.x) / self._track.width
        self.value = snap(SLIDER_MIN + ratio * (SLIDER_MAX - SLIDER_MIN), self.precision)

    def handle_event(self, event: pygame.event.Event, now_ms: int) -> None:
        self.mark_shown(now_ms)
        if is_submit(event):
            self.submit(now_ms)
            return
        key = read_left_right_key(event)
        if key is not None:
            step = self.step * (10 if event.mod & pygame.KMOD_SHIFT else 1)
            delta = -step if key == "LEFT" else step
            self.value = snap(self.value + delta, self.precision)
            return
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and self._track is not None:
            if self._track.inflate(0, 30).collidepoint(event.pos):
                self.dragging = True
                self.set_value_from_x(event.pos[0])
        elif event.type == pygame.MOUSEMOTION and self.dragging:
            self.set_value_from_x(event.pos[0])
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self.dragging = False

    def difference(self) -> float:
        return abs(round(self.value - self.target, self.precision))

    def evaluate(self) -> Tuple[bool, float, str]:
        diff = self.difference()
        accuracy = max(0.0, 100.0 * (1.0 - diff / (SLIDER_MAX - SLIDER_MIN)))
        # slider rounds always count as done; accuracy carries the score
        return True, accuracy, f"{self.value:.{self.precision}f}"

    def feedback_text(self, outcome) -> str:
        diff = self.difference()
        if diff == 0:
            return "Perfect! Exactly on target!"
        return f"Task complete. Off by {diff:.{self.precision}f}"

    def render(self, screen: pygame.Surface, ctx: TaskRenderContext) -> None:
        x0 = ctx.rect.x + 16
        y = ctx.rect.y + 16
        title = ctx.font_mid.render(
            f"Move the slider to {self.target:.{self.precision}f}", True, ctx.color_main
        )
        screen.blit(title, (x0, y))

        track = pygame.Rect(x0 + 20, ctx.rect.centery, ctx.rect.width - 72, 8)
        self._track = track
        pygame.draw.rect(screen, ctx.color_main, track, border_radius=4)

        if self.enhanced:
            # fine ticks on every tenth, labels on whole numbers
            for i in range(101):
                tx = track.x + int(track.width * i / 100)
                tall = i % 10 == 0
                pygame.draw.line(screen, ctx.color_accent, (tx, track.y - (12 if tall else 5)), (tx, track.y))
                if tall:
                    label = ctx.font_small.render(str(i // 10), True, ctx.color_main)
                    screen.blit(label, (tx - label.get_width() // 2, track.bottom + 8))
        else:
            for i in (0, 5, 10):
                tx = track.x + int(track.width * i / 10)
                pygame.draw.line(screen, ctx.color_main, (tx, track.y - 8), (tx, track.y))

        ratio = (self.value - SLIDER_MIN) / (SLIDER_MAX - SLIDER_MIN)
        thumb_x = track.x + int(track.width * ratio)
        pygame.draw.circle(screen, ctx.color_accent, (thumb_x, track.centery), 12)

        if self.show_value or self.enhanced:
            value = ctx.font_big.render(f"{self.value:.{self.precision}f}", True, ctx.color_accent)
            screen.blit(value, (x0, track.bottom + 36))

        hint = ctx.font_small.render("Drag or use Left/Right (Shift = x10), Enter to submit", True, ctx.color_main)
        screen.blit(hint, (x0, ctx.rect.bottom - hint.get_height() - 12))
        if self.feedback:
            fb = ctx.font_small.render(self.feedback, True, ctx.color_alert)
            screen.blit(fb, (x0, track.y - 60))
