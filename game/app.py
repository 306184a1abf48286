import logging
import random
from typing import Dict, Optional, Tuple

import pygame

from config.settings import BudgetConfig, EngagementConfig, ServiceConfig, SessionConfig, WindowConfig
from data.recorder import SessionRecorder
from data.reply_client import ReplyClient
from game.chat import ChatAssistant
from game.clock import format_clock
from game.errors import BudgetExceeded
from game.runtime.access import LocalAccessGate
from game.runtime.models import FAMILIES, Enhancement, TaskId
from game.session_metrics import task_title
from game.state import (
    PHASE_ACCESS_DENIED,
    PHASE_BLOCKED,
    PHASE_COMPLETE,
    PHASE_LANDING,
    PHASE_MAIN_GAME,
    PHASE_PRACTICE,
    PHASE_PRACTICE_CHOICE,
)
from game.state_machine import ExperimentStateMachine
from game.tasks import TASK_CLASSES
from game.tasks.base import TaskBase, TaskRenderContext
from game.tasks.input_utils import edit_text, is_submit
from game.ui import GameUI


logger = logging.getLogger(__name__)

PRACTICE_KEYS = {pygame.K_1: FAMILIES[0], pygame.K_2: FAMILIES[1], pygame.K_3: FAMILIES[2]}


class GameApp:
    def __init__(
        self,
        window: WindowConfig,
        session: SessionConfig,
        budget: BudgetConfig,
        engagement: EngagementConfig,
        services: ServiceConfig,
        data_dir: str,
    ) -> None:
        pygame.init()
        self.screen = pygame.display.set_mode((window.width, window.height))
        pygame.display.set_caption(window.title)
        self.clock = pygame.time.Clock()
        self.ui = GameUI(self.screen)
        self.window = window
        self.rng = random.Random(session.seed or None)

        self.recorder = SessionRecorder(
            endpoint_url=services.recorder_url,
            api_key=services.recorder_api_key,
            client_version=services.client_version,
            data_dir=data_dir,
            max_batch_size=services.max_batch_size,
            flush_interval_sec=services.flush_interval_sec,
        )
        self.chat = ChatAssistant(ReplyClient(services.reply_url, timeout_sec=services.timeout_sec))
        self.gate = LocalAccessGate(self.recorder.snapshots_path)
        self.machine = ExperimentStateMachine(
            session_config=session,
            budget_config=budget,
            engagement_config=engagement,
            recorder=self.recorder,
            chat=self.chat,
            rng=self.rng,
        )
        self.task_views: Dict[Tuple[TaskId, Optional[str]], TaskBase] = {}
        self.chat_focused = False
        self.chat_input = ""
        self.running = True

    def run(self) -> None:
        decision = self.gate.check()
        self.machine.enter_landing(decision)
        pygame.key.start_text_input()

        while self.running:
            self.clock.tick(self.window.fps)
            now_ms = pygame.time.get_ticks()
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.running = False
                    break
                self.machine.process_pygame_event(event, now_ms)
                self._handle_event(event, now_ms)
            self.machine.update(now_ms)
            self._render(now_ms)

        self.machine.teardown(pygame.time.get_ticks())
        pygame.quit()

    # ------------------------------------------------------------------
    # input
    # ------------------------------------------------------------------
    def _handle_event(self, event: pygame.event.Event, now_ms: int) -> None:
        phase = self.machine.phase
        if phase in (PHASE_ACCESS_DENIED, PHASE_BLOCKED, PHASE_COMPLETE):
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                self.running = False
            return
        if phase == PHASE_LANDING:
            self._handle_landing(event, now_ms)
        elif phase == PHASE_PRACTICE_CHOICE:
            if event.type == pygame.KEYDOWN and event.key == pygame.K_p:
                self.machine.choose_practice(True, now_ms)
                self.machine.select_practice_task(TaskId(FAMILIES[0], 1))
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_s:
                self.machine.choose_practice(False, now_ms)
        elif phase == PHASE_PRACTICE:
            self._handle_practice(event, now_ms)
        elif phase == PHASE_MAIN_GAME:
            self._handle_main(event, now_ms)

    def _handle_landing(self, event: pygame.event.Event, now_ms: int) -> None:
        if event.type != pygame.KEYDOWN:
            return
        resume_id = self.machine.access.resume_session_id if self.machine.access else None
        if event.key == pygame.K_r and resume_id:
            snapshot = self.recorder.load_snapshot(resume_id)
            if snapshot is not None and self.machine.restore(snapshot, now_ms):
                self.task_views.clear()
                return
        if event.key == pygame.K_SPACE:
            self.machine.open_practice_choice()

    def _handle_practice(self, event: pygame.event.Event, now_ms: int) -> None:
        if event.type == pygame.KEYDOWN:
            if event.key in PRACTICE_KEYS and not self.chat_focused:
                self.machine.select_practice_task(TaskId(PRACTICE_KEYS[event.key], 1))
                return
            if event.key == pygame.K_F2:
                self.task_views.clear()
                self.machine.start_main_game(now_ms)
                return
        self._forward_to_task(event, now_ms)

    def _handle_main(self, event: pygame.event.Event, now_ms: int) -> None:
        state = self.machine.state
        if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
            if state.is_suspended:
                self.machine.resume(now_ms)
            else:
                self.machine.suspend(now_ms)
            return
        if state.is_suspended:
            return
        if self.machine.engagement.warning_active:
            if event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE:
                self.machine.engagement.acknowledge(now_ms)
            return
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            task = self.ui.tab_at(event.pos)
            if task is not None:
                if state.is_in_break:
                    self.machine.set_break_destination(task)
                else:
                    self.machine.switch_to(task, now_ms)
                return
            self.chat_focused = self.ui.right_panel.collidepoint(event.pos)
        if event.type == pygame.KEYDOWN and event.key == pygame.K_TAB:
            self.chat_focused = not self.chat_focused
            return
        if self.chat_focused:
            self._handle_chat_input(event)
            return
        if not state.is_in_break:
            self._forward_to_task(event, now_ms)

    def _handle_chat_input(self, event: pygame.event.Event) -> None:
        if self.machine.state.chat_input_disabled:
            return
        if is_submit(event):
            text = self.chat_input
            try:
                if self.machine.send_chat(text) is not None:
                    self.chat_input = ""
            except BudgetExceeded as exc:
                self.chat.system_message(exc.message)
            return
        self.chat_input = edit_text(event, self.chat_input, max_len=400)

    def _forward_to_task(self, event: pygame.event.Event, now_ms: int) -> None:
        view = self._current_view()
        if view is None:
            return
        view.handle_event(event, now_ms)
        outcome = view.take_outcome()
        if outcome is None:
            return
        task = view.task
        if self.machine.phase == PHASE_PRACTICE or outcome.correct:
            self.machine.complete_task(task, outcome, now_ms)
        else:
            self.machine.record_attempt(task, outcome)

    def _current_view(self) -> Optional[TaskBase]:
        task = self.machine.state.current_task
        if task is None:
            return None
        enhancement: Optional[Enhancement] = self.machine.enhancement_for(task)
        key = (task, enhancement.kind if enhancement else None)
        view = self.task_views.get(key)
        if view is None:
            view = TASK_CLASSES[task.family](task, enhancement, self.rng)
            self.task_views[key] = view
        return view

    # ------------------------------------------------------------------
    # drawing
    # ------------------------------------------------------------------
    def _render(self, now_ms: int) -> None:
        self.ui.clear()
        phase = self.machine.phase
        if phase == PHASE_ACCESS_DENIED:
            reason = self.machine.access.reason if self.machine.access else ""
            self.ui.draw_overlay("Access denied", [reason, "Press ESC to exit."], accent=False)
        elif phase == PHASE_LANDING:
            self._render_landing()
        elif phase == PHASE_PRACTICE_CHOICE:
            self.ui.draw_overlay(
                "Practice first?",
                ["[P] Practice one task of each kind", "[S] Skip to the main game"],
            )
        elif phase in (PHASE_PRACTICE, PHASE_MAIN_GAME):
            self._render_game(now_ms)
        elif phase == PHASE_COMPLETE:
            summary = self.machine.summary(now_ms)
            self.ui.draw_overlay(
                "All tasks complete!",
                [
                    f"Completion code: {summary.completion_code}",
                    f"Time: {format_clock(summary.total_time_sec)}   Switches: {summary.total_switches}   Accuracy: {summary.mean_accuracy:.0f}%",
                    "Copy the code, then press ESC to exit.",
                ],
            )
        elif phase == PHASE_BLOCKED:
            self.ui.draw_overlay(
                "Session ended",
                ["The session was stopped because of inactivity or leaving the window.", "Press ESC to exit."],
                accent=False,
            )
        pygame.display.flip()

    def _render_landing(self) -> None:
        lines = [
            "Complete nine tasks across counting, slider and typing games.",
            "Finishing a task unlocks the next level and earns one more AI prompt.",
            "Some tasks make others easier. Stay in the window and keep active.",
            "",
            "Press SPACE to begin.",
        ]
        access = self.machine.access
        if access is not None and access.resume_session_id:
            lines.append("Press R to resume your unfinished session.")
        self.ui.draw_overlay("Multi-Task Challenge", lines)

    def _render_game(self, now_ms: int) -> None:
        machine = self.machine
        state = machine.state
        practice = machine.phase == PHASE_PRACTICE
        self.ui.draw_frame()
        self.ui.draw_title("Practice" if practice else "Multi-Task Challenge")
        if not practice:
            self.ui.draw_status(
                clock_text=format_clock(machine.elapsed_sec(now_ms)),
                completed=len(state.completed),
                total=machine.config.total_tasks,
                prompts_left=machine.prompts_remaining(),
                prompts_total=machine.prompt_allowance(),
            )
        self.ui.draw_task_nav(state.statuses(), state.current_task, machine.breaks.destination if state.is_in_break else None)

        view = self._current_view()
        if view is not None:
            panel = self.ui.draw_task_panel(task_title(view.task), view.enhanced)
            view.render(self.screen, self._task_context(panel))

        self.ui.draw_chat(
            self.chat.transcript,
            self.chat_input,
            focused=self.chat_focused,
            disabled=practice or state.chat_input_disabled,
            waiting=self.chat.busy,
        )

        if practice:
            done = ", ".join(sorted(state.practice_completed)) or "none"
            footer = f"1/2/3 switch practice task | passed: {done} | F2 start the main game"
            surf = self.ui.font_tiny.render(footer, True, self.ui.theme.muted)
            self.screen.blit(surf, (self.ui.center_panel.x, self.ui.h - surf.get_height() - 2))
            return

        if state.is_in_break:
            destination = machine.breaks.destination
            target = task_title(destination) if destination else "-"
            self.ui.draw_overlay("Short break", [f"Next: {target}", "Click a task on the left to go there instead."])
            self.ui.draw_countdown("seconds", machine.break_remaining_ms(now_ms))
        elif state.is_suspended:
            self.ui.draw_overlay("Paused", ["Press ESC to continue.", "Leaving the window still ends the session."])
            self.ui.draw_countdown("until the game continues", machine.suspend_remaining_ms(now_ms))
        elif machine.engagement.warning_active:
            remaining = machine.engagement.warning_remaining_ms(now_ms) or 0
            self.ui.draw_overlay("Are you still there?", ["Press SPACE to keep playing."], accent=False)
            self.ui.draw_countdown("until the session ends", remaining)

    def _task_context(self, rect: pygame.Rect) -> TaskRenderContext:
        return TaskRenderContext(
            rect=rect,
            font_big=self.ui.font_big,
            font_mid=self.ui.font_mid,
            font_small=self.ui.font_small,
            color_main=self.ui.theme.text,
            color_accent=self.ui.theme.accent,
            color_alert=self.ui.theme.alert,
            color_highlight=self.ui.theme.highlight,
        )
