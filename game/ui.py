from dataclasses import dataclass
import math
from typing import Dict, List, Optional, Sequence, Tuple

import pygame

from game.runtime.models import (
    FAMILIES,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_LOCKED,
    TaskId,
    family_tasks,
)
from game.session_metrics import compute_progress, task_title


@dataclass(frozen=True)
class UiTheme:
    bg: Tuple[int, int, int] = (244, 245, 248)
    panel: Tuple[int, int, int] = (255, 255, 255)
    border: Tuple[int, int, int] = (200, 206, 216)
    text: Tuple[int, int, int] = (40, 44, 52)
    muted: Tuple[int, int, int] = (150, 156, 166)
    accent: Tuple[int, int, int] = (50, 110, 220)
    done: Tuple[int, int, int] = (60, 160, 90)
    alert: Tuple[int, int, int] = (210, 80, 60)
    highlight: Tuple[int, int, int] = (250, 220, 90)


class GameUI:
    def __init__(self, screen: pygame.Surface) -> None:
        self.screen = screen
        self.w, self.h = screen.get_size()
        self.theme = UiTheme()
        self.ui_scale = max(0.75, min(1.15, min(self.w / 1600.0, self.h / 900.0)))
        self.font_big = self._make_font(max(28, int(36 * self.ui_scale)), bold=True)
        self.font_huge = self._make_font(max(44, int(64 * self.ui_scale)), bold=True)
        self.font_mid = self._make_font(max(20, int(26 * self.ui_scale)))
        self.font_small = self._make_font(max(16, int(20 * self.ui_scale)))
        self.font_tiny = self._make_font(max(13, int(16 * self.ui_scale)))

        margin = max(8, min(20, self.w // 70))
        top = max(60, min(84, self.h // 12))
        gap = max(8, min(18, self.w // 90))
        main_h = max(260, self.h - top - margin)
        available_w = max(320, self.w - (margin * 2) - (gap * 2))
        left_w = max(150, min(240, int(available_w * 0.2)))
        right_w = max(240, min(380, int(available_w * 0.3)))
        center_w = available_w - left_w - right_w

        self.left_panel = pygame.Rect(margin, top, left_w, main_h)
        self.center_panel = pygame.Rect(self.left_panel.right + gap, top, center_w, main_h)
        self.right_panel = pygame.Rect(self.center_panel.right + gap, top, right_w, main_h)
        self.tab_rects = self._layout_tabs()

    def _layout_tabs(self) -> Dict[TaskId, pygame.Rect]:
        rects: Dict[TaskId, pygame.Rect] = {}
        x = self.left_panel.x + 10
        width = self.left_panel.width - 20
        y = self.left_panel.y + 44
        row_h = self.font_small.get_height() + 14
        for family in FAMILIES:
            y += self.font_tiny.get_height() + 6
            for task in family_tasks(family):
                rects[task] = pygame.Rect(x, y, width, row_h)
                y += row_h + 4
            y += 10
        return rects

    def tab_at(self, pos: Tuple[int, int]) -> Optional[TaskId]:
        for task, rect in self.tab_rects.items():
            if rect.collidepoint(pos):
                return task
        return None

    def clear(self) -> None:
        self.screen.fill(self.theme.bg)

    def draw_frame(self) -> None:
        for rect in [self.left_panel, self.center_panel, self.right_panel]:
            pygame.draw.rect(self.screen, self.theme.panel, rect, border_radius=10)
            pygame.draw.rect(self.screen, self.theme.border, rect, width=2, border_radius=10)

    def draw_title(self, text: str) -> None:
        main = self.font_big.render(text, True, self.theme.accent)
        rect = main.get_rect(midleft=(self.left_panel.x, 36))
        self.screen.blit(main, rect)

    def draw_status(self, clock_text: str, completed: int, total: int, prompts_left: int, prompts_total: int) -> None:
        text = f"Time {clock_text}   |   Tasks {completed}/{total}   |   Help {prompts_left}/{prompts_total}"
        surf = self.font_small.render(text, True, self.theme.text)
        self.screen.blit(surf, surf.get_rect(midright=(self.right_panel.right, 36)))
        bar = pygame.Rect(self.center_panel.x, 54, self.center_panel.width, 6)
        pygame.draw.rect(self.screen, self.theme.border, bar, border_radius=3)
        if total > 0:
            filled = bar.copy()
            filled.width = int(bar.width * compute_progress(completed, total))
            pygame.draw.rect(self.screen, self.theme.done, filled, border_radius=3)

    def draw_task_nav(self, statuses: Dict[TaskId, str], current: Optional[TaskId], destination: Optional[TaskId]) -> None:
        header = self.font_mid.render("Tasks", True, self.theme.accent)
        self.screen.blit(header, (self.left_panel.x + 12, self.left_panel.y + 10))
        seen_family = set()
        for task, rect in self.tab_rects.items():
            if task.family not in seen_family:
                seen_family.add(task.family)
                label = self.font_tiny.render(task_title(task).rsplit(" ", 1)[0], True, self.theme.muted)
                self.screen.blit(label, (rect.x, rect.y - label.get_height() - 4))
            status = statuses.get(task, STATUS_LOCKED)
            if status == STATUS_COMPLETED:
                fill, color = (228, 244, 233), self.theme.done
            elif status == STATUS_LOCKED:
                fill, color = (238, 239, 242), self.theme.muted
            elif task == current or status == STATUS_ACTIVE:
                fill, color = (224, 234, 252), self.theme.accent
            else:
                fill, color = self.theme.panel, self.theme.text
            pygame.draw.rect(self.screen, fill, rect, border_radius=6)
            border = self.theme.highlight if task == destination else color
            pygame.draw.rect(self.screen, border, rect, width=2, border_radius=6)
            mark = {STATUS_COMPLETED: "done", STATUS_LOCKED: "locked"}.get(status, "")
            text = f"{task_title(task)}  {mark}".strip()
            self._draw_fitted_text(text=text, rect=rect, color=color, align="left")

    def draw_task_panel(self, title: str, enhanced: bool) -> pygame.Rect:
        rect = self.center_panel
        header = self.font_mid.render(title, True, self.theme.accent)
        self.screen.blit(header, (rect.x + 16, rect.y + 10))
        if enhanced:
            badge = self.font_tiny.render("Enhanced", True, self.theme.done)
            self.screen.blit(badge, (rect.right - badge.get_width() - 16, rect.y + 16))
        return pygame.Rect(rect.x, rect.y + 44, rect.width, rect.height - 44)

    def draw_chat(
        self,
        transcript: Sequence[Tuple[str, str]],
        input_text: str,
        focused: bool,
        disabled: bool,
        waiting: bool,
    ) -> None:
        rect = self.right_panel
        header = self.font_mid.render("AI Assistant", True, self.theme.accent)
        self.screen.blit(header, (rect.x + 12, rect.y + 10))

        input_rect = pygame.Rect(rect.x + 10, rect.bottom - 52, rect.width - 20, 40)
        lines: List[Tuple[str, Tuple[int, int, int]]] = []
        for sender, text in transcript:
            color = self.theme.accent if sender == "You" else self.theme.text
            if sender == "System":
                color = self.theme.alert
            for line in self._wrap(f"{sender}: {text}", self.font_tiny, rect.width - 24):
                lines.append((line, color))
        if waiting:
            lines.append(("AI is thinking...", self.theme.muted))

        line_h = self.font_tiny.get_linesize()
        max_lines = max(1, (input_rect.y - rect.y - 50) // line_h)
        y = rect.y + 46
        for line, color in lines[-max_lines:]:
            self.screen.blit(self.font_tiny.render(line, True, color), (rect.x + 12, y))
            y += line_h

        border = self.theme.accent if focused else self.theme.border
        pygame.draw.rect(self.screen, self.theme.bg if disabled else self.theme.panel, input_rect, border_radius=6)
        pygame.draw.rect(self.screen, border, input_rect, width=2, border_radius=6)
        if disabled:
            placeholder, color = "Complete a task to earn more help", self.theme.muted
        elif input_text:
            placeholder, color = input_text, self.theme.text
        else:
            placeholder, color = "Tab to type, Enter to send", self.theme.muted
        self._draw_fitted_text(text=placeholder, rect=input_rect, color=color, align="left")

    def draw_overlay(self, title: str, lines: Sequence[str], accent: bool = True) -> None:
        full = pygame.Surface(self.screen.get_size(), pygame.SRCALPHA)
        full.fill((20, 24, 32, 150))
        self.screen.blit(full, (0, 0))
        box_w = int(self.w * 0.5)
        box_h = 120 + 30 * len(lines)
        box = pygame.Rect((self.w - box_w) // 2, (self.h - box_h) // 2, box_w, box_h)
        pygame.draw.rect(self.screen, self.theme.panel, box, border_radius=12)
        pygame.draw.rect(self.screen, self.theme.border, box, width=2, border_radius=12)
        color = self.theme.accent if accent else self.theme.alert
        head = self.font_big.render(title, True, color)
        self.screen.blit(head, head.get_rect(midtop=(box.centerx, box.y + 20)))
        yy = box.y + 30 + head.get_height()
        for line in lines:
            surf = self.font_small.render(line, True, self.theme.text)
            self.screen.blit(surf, surf.get_rect(midtop=(box.centerx, yy)))
            yy += 30

    def draw_countdown(self, label: str, remaining_ms: int) -> None:
        seconds = max(0, math.ceil(remaining_ms / 1000.0))
        surf = self.font_huge.render(str(seconds), True, self.theme.alert)
        rect = surf.get_rect(center=(self.w // 2, self.h // 2 + 90))
        self.screen.blit(surf, rect)
        sub = self.font_small.render(label, True, self.theme.text)
        self.screen.blit(sub, sub.get_rect(midtop=(rect.centerx, rect.bottom + 4)))

    def _wrap(self, text: str, font: pygame.font.Font, width: int) -> List[str]:
        lines: List[str] = []
        for paragraph in text.split("\n"):
            current = ""
            for word in paragraph.split(" "):
                candidate = f"{current} {word}" if current else word
                if current and font.size(candidate)[0] > width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current)
        return lines

    def _draw_fitted_text(
        self,
        text: str,
        rect: pygame.Rect,
        color: Tuple[int, int, int],
        align: str = "center",
    ) -> None:
        fonts = [self.font_small, self.font_tiny]
        surf = None
        for font in fonts:
            if font.size(text)[0] <= rect.width - 12:
                surf = font.render(text, True, color)
                break
        if surf is None:
            clipped = text
            while len(clipped) > 3 and self.font_tiny.size(clipped + "...")[0] > rect.width - 12:
                clipped = clipped[:-1]
            surf = self.font_tiny.render(clipped + "...", True, color)
        if align == "left":
            text_rect = surf.get_rect(midleft=(rect.x + 8, rect.centery))
        else:
            text_rect = surf.get_rect(center=rect.center)
        self.screen.blit(surf, text_rect)

    def _make_font(self, size: int, bold: bool = False) -> pygame.font.Font:
        candidates = [
            "sfprotext",
            "helveticaneue",
            "segoeui",
            "dejavusans",
            "arial",
        ]
        for name in candidates:
            path = pygame.font.match_font(name)
            if path:
                font = pygame.font.Font(path, size)
                if bold:
                    font.set_bold(True)
                return font
        return pygame.font.SysFont(None, size, bold=bold)
