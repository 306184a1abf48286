from __future__ import annotations

import random
import re
from typing import List, Optional, Tuple

import pygame

from game.runtime.models import FAMILY_COUNT, Enhancement, TaskId
from game.tasks.base import TaskBase, TaskRenderContext
from game.tasks.input_utils import edit_text, is_submit


PASSAGES = (
    "The river ran past the old mill and into the valley where the farmers kept their sheep. "
    "In spring the water rose and the children watched it from the bridge.",
    "A lighthouse keeper climbed to the lamp each night and wrote the weather in a small book. "
    "Ships passed to the north and the keeper waved to each of them in turn.",
    "The market opened at dawn and the smell of bread filled the square. Traders called out "
    "prices and the first customers argued over the best of the fruit.",
)

WORD_TARGETS = ("the", "and", "of", "to", "in")
LETTER_TARGETS = ("e", "a", "i", "o", "s")
LETTER_PAIRS = (("a", "e"), ("i", "o"), ("s", "t"), ("n", "r"), ("l", "d"))

_WORD_RE = re.compile(r"[A-Za-z']+")


def count_word(text: str, word: str) -> int:
    word = word.lower()
    return sum(1 for token in _WORD_RE.findall(text) if token.lower() == word)


def count_letters(text: str, letters: Tuple[str, ...]) -> int:
    wanted = {ch.lower() for ch in letters}
    return sum(1 for ch in text.lower() if ch in wanted)


def wrap_words(text: str, font: pygame.font.Font, max_width: int) -> List[str]:
    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if current and font.size(candidate)[0] > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


class CountingTask(TaskBase):
    family = FAMILY_COUNT

    def __init__(self, task: TaskId, enhancement: Optional[Enhancement], rng: random.Random) -> None:
        super().__init__(task, enhancement, rng)
        self.text = rng.choice(PASSAGES)
        self.targets: Tuple[str, ...]
        if task.level == 1:
            self.targets = (rng.choice(WORD_TARGETS),)
            self.by_word = True
            self.answer = count_word(self.text, self.targets[0])
            self.instruction = f'Count how many times the word "{self.targets[0]}" appears:'
        elif task.level == 2:
            self.targets = (rng.choice(LETTER_TARGETS),)
            self.by_word = False
            self.answer = count_letters(self.text, self.targets)
            self.instruction = f'Count how many times the letter "{self.targets[0]}" appears (case-insensitive):'
        else:
            self.targets = rng.choice(LETTER_PAIRS)
            self.by_word = False
            self.answer = count_letters(self.text, self.targets)
            self.instruction = (
                f'Count how many times the letters "{self.targets[0]}" and "{self.targets[1]}" appear in total:'
            )
        self.input_text = ""

    def handle_event(self, event: pygame.event.Event, now_ms: int) -> None:
        self.mark_shown(now_ms)
        if is_submit(event):
            if self.input_text:
                self.submit(now_ms)
            return
        self.input_text = edit_text(event, self.input_text, max_len=4, digits_only=True)

    def evaluate(self) -> Tuple[bool, float, str]:
        try:
            guess = int(self.input_text)
        except ValueError:
            return False, 0.0, self.input_text
        if guess == self.answer:
            return True, 100.0, self.input_text
        miss = abs(guess - self.answer) / max(1, self.answer)
        return False, max(0.0, 100.0 * (1.0 - miss)), self.input_text

    def _is_marked_word(self, word: str) -> bool:
        return word.strip(".,;:!?\"").lower() == self.targets[0]

    def render(self, screen: pygame.Surface, ctx: TaskRenderContext) -> None:
        x0 = ctx.rect.x + 16
        y = ctx.rect.y + 16
        title = ctx.font_mid.render(self.instruction, True, ctx.color_main)
        screen.blit(title, (x0, y))
        y += title.get_height() + 12

        line_h = ctx.font_small.get_linesize() + 4
        for line in wrap_words(self.text, ctx.font_small, ctx.rect.width - 32):
            x = x0
            if self.by_word:
                for word in line.split(" "):
                    surf = ctx.font_small.render(word, True, ctx.color_main)
                    if self.enhanced and self._is_marked_word(word):
                        pygame.draw.rect(screen, ctx.color_highlight, (x - 2, y - 1, surf.get_width() + 4, line_h - 2))
                    screen.blit(surf, (x, y))
                    x += ctx.font_small.size(word + " ")[0]
            else:
                for ch in line:
                    surf = ctx.font_small.render(ch, True, ctx.color_main)
                    if self.enhanced and ch.lower() in self.targets:
                        pygame.draw.rect(screen, ctx.color_highlight, (x - 1, y - 1, surf.get_width() + 2, line_h - 2))
                    screen.blit(surf, (x, y))
                    x += surf.get_width()
            y += line_h

        y += 12
        entry = ctx.font_big.render(self.input_text or "_", True, ctx.color_accent)
        screen.blit(entry, (x0, y))
        hint = ctx.font_small.render("Type a number, Enter to submit", True, ctx.color_main)
        screen.blit(hint, (x0, ctx.rect.bottom - hint.get_height() - 12))
        if self.feedback:
            fb = ctx.font_small.render(self.feedback, True, ctx.color_alert)
            screen.blit(fb, (x0 + entry.get_width() + 24, y + 8))
