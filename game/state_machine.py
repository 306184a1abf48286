import logging
import random
import uuid
from typing import Any, Dict, Optional

from config.settings import BudgetConfig, EngagementConfig, SessionConfig
from data.models import ROLE_ASSISTANT, ROLE_USER, ChatTurn
from game.breaks import BreakController, default_destination
from game.budget import BudgetEnforcer, PromptAuthorization
from game.chat import ChatAssistant
from game.clock import SessionClock
from game.dependencies import DependencyEngine
from game.engagement import EngagementMonitor
from game.errors import BUDGET_PROMPTS, BudgetExceeded, InvalidTransition
from game.runtime.access import AccessDecision
from game.runtime.models import (
    ALL_TASKS,
    FAMILIES,
    STATUS_ACTIVE,
    STATUS_AVAILABLE,
    STATUS_LOCKED,
    TaskId,
    TaskOutcome,
)
from game.session_metrics import build_summary, generate_completion_code
from game.state import (
    PHASE_ACCESS_DENIED,
    PHASE_BLOCKED,
    PHASE_COMPLETE,
    PHASE_LANDING,
    PHASE_MAIN_GAME,
    PHASE_PRACTICE,
    PHASE_PRACTICE_CHOICE,
    SESSION_ABANDONED,
    SESSION_BLOCKED,
    SESSION_COMPLETED,
    SESSION_IN_PROGRESS,
    TERMINAL_PHASES,
    GameState,
    restore_state,
    to_snapshot,
)
from game.timers import TimerScheduler


logger = logging.getLogger(__name__)

FIRST_TASK = ALL_TASKS[0]
SUSPEND_TIMER = "suspend_limit"


class ExperimentStateMachine:
    """
    Sequences the whole session and is the only writer of GameState.

    Phases: LANDING -> PRACTICE_CHOICE -> PRACTICE? -> MAIN_GAME -> COMPLETE,
    with BLOCKED reachable from every phase but COMPLETE. Inside MAIN_GAME the
    break flag separates task work from the short rest after a completion.

    Every method takes now_ms from the frame loop; timers fire from update().
    Illegal requests raise InvalidTransition internally and come back as a
    logged no-op, so UI code never has to guard its calls.
    """

    def __init__(
        self,
        session_config: SessionConfig = SessionConfig(),
        budget_config: BudgetConfig = BudgetConfig(),
        engagement_config: EngagementConfig = EngagementConfig(),
        recorder=None,
        chat: Optional[ChatAssistant] = None,
        rng: Optional[random.Random] = None,
        state: Optional[GameState] = None,
        scheduler: Optional[TimerScheduler] = None,
    ) -> None:
        self.config = session_config
        self.rng = rng or random.Random(session_config.seed or None)
        self.scheduler = scheduler or TimerScheduler()
        self.clock = SessionClock()
        self.dependencies = DependencyEngine(rng=self.rng, practice_probability=session_config.practice_probability)
        self.budget = BudgetEnforcer(budget_config)
        self.breaks = BreakController(self.scheduler, session_config.break_ms, self._on_break_expired)
        self.engagement = EngagementMonitor(self.scheduler, engagement_config, self.block, self._log)
        self.recorder = recorder
        self.chat = chat
        self.state = state or GameState(session_id=uuid.uuid4().hex)
        self.access: Optional[AccessDecision] = None
        if self.recorder is not None:
            self.recorder.set_session(self.state.session_id)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    @property
    def phase(self) -> str:
        return self.state.phase

    @property
    def is_live(self) -> bool:
        return self.state.phase == PHASE_MAIN_GAME and not self.state.finalized

    def status_of(self, task: TaskId) -> str:
        return self.state.status_of(task)

    def enhancement_for(self, task: TaskId):
        return self.dependencies.query(task)

    def prompts_remaining(self) -> int:
        return self.budget.remaining(self.state.num_prompts_used, self.state.bonus_prompts)

    def prompt_allowance(self) -> int:
        return self.budget.total_allowance(self.state.bonus_prompts)

    def elapsed_sec(self, now_ms: int) -> int:
        return self.clock.elapsed_sec(now_ms)

    def break_remaining_ms(self, now_ms: int) -> int:
        return self.breaks.remaining_ms(now_ms)

    def suspend_remaining_ms(self, now_ms: int) -> int:
        return self.scheduler.remaining_ms(SUSPEND_TIMER, now_ms) or 0

    def summary(self, now_ms: int):
        s = self.state
        return build_summary(
            session_id=s.session_id,
            elapsed_sec=self.clock.elapsed_sec(now_ms),
            switch_count=s.switch_count,
            completed=len(s.completed),
            bonus_prompts=s.bonus_prompts,
            prompts_used=s.num_prompts_used,
            completion_code=s.completion_code,
            outcomes=s.task_outcomes,
        )

    # ------------------------------------------------------------------
    # landing and practice
    # ------------------------------------------------------------------
    def enter_landing(self, decision: AccessDecision) -> bool:
        self.access = decision
        if not decision.allowed:
            self.state.phase = PHASE_ACCESS_DENIED
            self._log("access_denied", {"reason": decision.reason})
            return False
        self.state.phase = PHASE_LANDING
        return True

    def open_practice_choice(self) -> bool:
        try:
            self._require_phase(PHASE_LANDING)
        except InvalidTransition as exc:
            logger.info("Ignored practice choice: %s", exc)
            return False
        self.state.phase = PHASE_PRACTICE_CHOICE
        return True

    def choose_practice(self, wants_practice: bool, now_ms: int) -> bool:
        try:
            self._require_phase(PHASE_PRACTICE_CHOICE)
        except InvalidTransition as exc:
            logger.info("Ignored practice decision: %s", exc)
            return False
        self._log("practice_choice", {"practice": wants_practice})
        if not wants_practice:
            return self.start_main_game(now_ms)
        self.state.phase = PHASE_PRACTICE
        self.state.is_practice = True
        self.state.current_task = None
        self.dependencies.reset()
        return True

    def select_practice_task(self, task: TaskId) -> bool:
        try:
            self._require_phase(PHASE_PRACTICE)
            if task.level != 1:
                raise InvalidTransition(f"{task} is not a practice task")
        except InvalidTransition as exc:
            logger.info("Ignored practice selection: %s", exc)
            return False
        self.state.current_task = task
        return True

    def practice_done(self) -> bool:
        return len(self.state.practice_completed) == len(FAMILIES)

    def _complete_practice_task(self, task: TaskId, outcome: TaskOutcome) -> bool:
        if task.level != 1 or task.family in self.state.practice_completed:
            return False
        passed = outcome.accuracy_percent >= self.config.practice_required_accuracy
        self._log(
            "practice_attempt",
            {"task": task.key, "accuracy_percent": outcome.accuracy_percent, "passed": passed},
        )
        if not passed:
            return False
        self.state.practice_completed.add(task.family)
        for activation in self.dependencies.activate(task, practice=True):
            self._log_activation(activation, practice=True)
        return True

    # ------------------------------------------------------------------
    # main game
    # ------------------------------------------------------------------
    def start_main_game(self, now_ms: int) -> bool:
        try:
            self._require_phase(PHASE_PRACTICE_CHOICE, PHASE_PRACTICE)
        except InvalidTransition as exc:
            logger.info("Ignored game start: %s", exc)
            return False
        practiced = sorted(self.state.practice_completed)
        # practice leaves nothing behind
        self.state = GameState(session_id=self.state.session_id, phase=PHASE_MAIN_GAME)
        self.dependencies.reset()
        self.breaks.cancel()
        self.clock.start(now_ms)
        self.engagement.arm(now_ms)
        self.state.current_task = FIRST_TASK
        self.state.task_started_ms[FIRST_TASK] = now_ms
        self._log("game_start", {"practice_completed": practiced, "first_task": FIRST_TASK.key})
        self._save_snapshot(SESSION_IN_PROGRESS, now_ms)
        return True

    def restore(self, snapshot: Dict[str, Any], now_ms: int) -> bool:
        try:
            self._require_phase(PHASE_LANDING)
        except InvalidTransition as exc:
            logger.info("Ignored restore: %s", exc)
            return False
        if snapshot.get("status") != SESSION_IN_PROGRESS:
            logger.info("Snapshot %s is not resumable", snapshot.get("session_id"))
            return False
        try:
            state = restore_state(snapshot)
            next_key = snapshot.get("next_task")
            next_task = TaskId.from_key(next_key) if next_key else None
        except (KeyError, ValueError) as exc:
            logger.warning("Snapshot could not be restored: %s", exc)
            return False
        self.scheduler.cancel_all()
        self.breaks.cancel()
        self.state = state
        if self.recorder is not None:
            self.recorder.set_session(state.session_id)
        self.dependencies.reset()
        self.clock.start(now_ms, already_elapsed_ms=int(snapshot.get("elapsed_ms", 0)))
        self.engagement.arm(now_ms)
        state.current_task = self._resume_target(state, next_task)
        if state.current_task is not None:
            state.task_started_ms[state.current_task] = now_ms
        self._log("session_resumed", {"completed": len(state.completed)})
        return True

    def _resume_target(self, state: GameState, next_task: Optional[TaskId]) -> Optional[TaskId]:
        """Where a resumed session continues: the break's pick, then the unfinished task."""
        open_statuses = (STATUS_AVAILABLE, STATUS_ACTIVE)
        for candidate in (next_task, state.current_task):
            if candidate is not None and state.status_of(candidate) in open_statuses:
                return candidate
        # snapshot taken at break start without a destination: redo the break's choice
        if state.current_task is not None:
            fallback = default_destination(state.current_task, state.statuses())
            if fallback is not None and state.status_of(fallback) in open_statuses:
                return fallback
        return next((task for task in ALL_TASKS if state.status_of(task) == STATUS_AVAILABLE), None)

    def switch_to(self, task: TaskId, now_ms: int, auto_advance: bool = False) -> bool:
        s = self.state
        try:
            self._require_live()
            if s.is_in_break:
                raise InvalidTransition("switch during break")
            if s.is_suspended and not auto_advance:
                raise InvalidTransition("switch while suspended")
            if s.status_of(task) == STATUS_LOCKED:
                raise InvalidTransition(f"{task} is locked")
        except InvalidTransition as exc:
            logger.info("Ignored switch to %s: %s", task, exc)
            return False

        previous = s.current_task
        if previous is not None:
            self._accumulate_task_time(previous, now_ms)
        if previous is not None and previous != task and not auto_advance:
            s.switch_count += 1
            self._log("page_switch", {"from": previous.key, "to": task.key, "switch_count": s.switch_count})
        s.current_task = task
        s.task_started_ms[task] = now_ms
        if auto_advance:
            self._log("auto_advance", {"to": task.key})
        return True

    def complete_task(self, task: TaskId, outcome: TaskOutcome, now_ms: int) -> bool:
        s = self.state
        if s.phase == PHASE_PRACTICE:
            return self._complete_practice_task(task, outcome)
        try:
            self._require_live()
            if s.is_suspended:
                raise InvalidTransition("completion while suspended")
            if s.status_of(task) == STATUS_LOCKED:
                raise InvalidTransition(f"{task} is locked")
        except InvalidTransition as exc:
            logger.info("Ignored completion of %s: %s", task, exc)
            return False
        if task in s.completed:
            logger.debug("Duplicate completion of %s", task)
            return False

        # close the timing slice first so the break below never counts as task time
        if task in s.task_started_ms:
            self._accumulate_task_time(task, now_ms)
        s.completed.add(task)
        s.completion_order.append(task)
        s.task_outcomes[task] = outcome
        # every completion earns one prompt; an exhausted chat opens again
        s.bonus_prompts += 1
        if s.chat_input_disabled and self.prompts_remaining() > 0:
            s.chat_input_disabled = False

        self._log(
            "task_complete",
            {
                "task": task.key,
                "difficulty": task.difficulty,
                "correct": outcome.correct,
                "accuracy_percent": outcome.accuracy_percent,
                "completed": len(s.completed),
                "progress": s.progress,
                "bonus_prompts": s.bonus_prompts,
            },
        )
        # effects land before the break so the next screen already shows them
        for activation in self.dependencies.activate(task):
            self._log_activation(activation)
        unlocked = task.next_level()
        if unlocked is not None:
            self._log("task_unlocked", {"task": unlocked.key})

        if len(s.completed) >= self.config.total_tasks:
            self._finish(now_ms)
            return True

        # a break already running (completion from inside a break) is superseded
        # by breaks.start; the clock simply stays paused
        s.is_in_break = True
        self._sync_pause(now_ms)
        destination = self.breaks.start(task, s.statuses(), now_ms)
        self._log(
            "break_start",
            {"anchor": task.key, "default_destination": destination.key if destination else None},
        )
        # the snapshot carries the destination so a resume lands where the break would
        self._save_snapshot(SESSION_IN_PROGRESS, now_ms, next_task=destination)
        return True

    def record_attempt(self, task: TaskId, outcome: TaskOutcome) -> None:
        """Logs a submission that did not pass; progression is unchanged."""
        if self.state.phase not in (PHASE_MAIN_GAME, PHASE_PRACTICE):
            return
        self._log(
            "task_attempt",
            {
                "task": task.key,
                "accuracy_percent": outcome.accuracy_percent,
                "response": outcome.response,
                "rt_ms": outcome.rt_ms,
                "practice": self.state.phase == PHASE_PRACTICE,
            },
        )

    def set_break_destination(self, task: TaskId) -> bool:
        if not self.is_live or not self.state.is_in_break:
            return False
        accepted = self.breaks.set_manual_destination(task, self.state.statuses())
        if accepted:
            self._log("break_destination", {"to": task.key})
        return accepted

    def _on_break_expired(self, destination: Optional[TaskId], now_ms: int) -> None:
        s = self.state
        # blocked or finished while the timer was pending: nothing to advance
        if not self.is_live:
            return
        s.is_in_break = False
        # resume the clock before switching so the new task starts on live time;
        # a suspended session keeps its clock paused here
        self._sync_pause(now_ms)
        self._log("break_end", {"destination": destination.key if destination else None})
        if destination is not None:
            self.switch_to(destination, now_ms, auto_advance=True)

    # ------------------------------------------------------------------
    # help budget
    # ------------------------------------------------------------------
    def try_consume(self, prompt_text: str, history=None) -> Optional[PromptAuthorization]:
        """
        Charges one prompt against the budget.

        Raises BudgetExceeded when the prompt is refused; a token refusal
        leaves GameState untouched. Returns None once the session has ended.
        """
        s = self.state
        if not self.is_live:
            logger.info("Ignored prompt in phase %s", s.phase)
            return None
        if history is None:
            history = s.chat_history
        try:
            auth = self.budget.authorize(prompt_text, history, s.num_prompts_used, s.bonus_prompts)
        except BudgetExceeded as exc:
            if exc.kind == BUDGET_PROMPTS:
                s.chat_input_disabled = True
            self._log("prompt_rejected", {"kind": exc.kind})
            raise
        s.num_prompts_used += 1
        s.chat_history.append(ChatTurn(role=ROLE_USER, content=prompt_text))
        self._log(
            "ai_prompt",
            {
                "prompt_number": auth.prompt_number,
                "estimated_tokens": auth.estimated_tokens,
                "remaining": auth.remaining_after,
                "task": s.current_task.key if s.current_task else None,
            },
        )
        return auth

    def send_chat(self, prompt_text: str) -> Optional[PromptAuthorization]:
        prompt_text = prompt_text.strip()
        if not prompt_text or self.chat is None or self.chat.busy:
            return None
        auth = self.try_consume(prompt_text)
        if auth is not None:
            # the service appends the new prompt itself
            self.chat.submit(prompt_text, self.state.chat_history[:-1])
        return auth

    def _apply_chat_result(self) -> None:
        if self.chat is None:
            return
        result = self.chat.poll()
        if result is None:
            return
        if result.reply is None:
            # the prompt stays counted
            self._log("ai_reply_failed", {"error": result.error})
            return
        if self.state.finalized:
            return
        self.state.chat_history.append(ChatTurn(role=ROLE_ASSISTANT, content=result.reply.answer))
        self._log(
            "ai_reply",
            {"level_tag": result.reply.level_tag, "type_tag": result.reply.type_tag},
        )

    # ------------------------------------------------------------------
    # suspension, blocking, shutdown
    # ------------------------------------------------------------------
    def suspend(self, now_ms: int) -> bool:
        """
        Pause screen. The clock stops and the idle watchdog is parked, but
        leaving the window still blocks, and the pause ends on its own after
        max_suspend_ms.
        """
        if not self.is_live or self.state.is_suspended:
            return False
        self.state.is_suspended = True
        self._sync_pause(now_ms)
        self.engagement.hold_idle()
        self.scheduler.schedule(SUSPEND_TIMER, self.config.max_suspend_ms, now_ms, self._on_suspend_expired)
        self._log("game_paused", {"max_ms": self.config.max_suspend_ms})
        return True

    def resume(self, now_ms: int, reason: str = "participant") -> bool:
        if not self.is_live or not self.state.is_suspended:
            return False
        self.scheduler.cancel(SUSPEND_TIMER)
        self.state.is_suspended = False
        self._sync_pause(now_ms)
        self.engagement.release_idle(now_ms)
        self._log("game_resumed", {"reason": reason})
        return True

    def _on_suspend_expired(self, handle, now_ms: int) -> None:
        self.resume(now_ms, reason="timeout")

    def block(self, reason: str, now_ms: int) -> None:
        s = self.state
        if s.phase in TERMINAL_PHASES:
            return
        self.breaks.cancel()
        self.engagement.teardown()
        self.scheduler.cancel(SUSPEND_TIMER)
        # stop() closes any open pause, so the pause flags can all drop together
        self.clock.stop(now_ms)
        was_live = s.phase == PHASE_MAIN_GAME
        s.phase = PHASE_BLOCKED
        s.blocked_reason = reason
        s.is_in_break = False
        s.is_suspended = False
        s.is_paused = False
        s.paused_accumulator_ms = self.clock.paused_total_ms
        s.chat_input_disabled = True
        s.finalized = True
        self._log("session_blocked", {"reason": reason})
        if was_live:
            self._save_snapshot(SESSION_BLOCKED, now_ms)

    def teardown(self, now_ms: int) -> None:
        """Stops every timer; a session still in play is recorded as abandoned."""
        if self.is_live:
            self._log("session_abandoned", {"completed": len(self.state.completed)})
            self._save_snapshot(SESSION_ABANDONED, now_ms)
            self.state.finalized = True
        self.breaks.cancel()
        self.engagement.teardown()
        self.scheduler.cancel_all()
        if self.chat is not None:
            self.chat.close()
        if self.recorder is not None:
            self.recorder.flush_blocking()
            self.recorder.close()

    def update(self, now_ms: int) -> None:
        self.scheduler.update(now_ms)
        self._apply_chat_result()
        if self.recorder is not None:
            self.recorder.poll()
            self.recorder.flush()

    def process_pygame_event(self, event, now_ms: int) -> None:
        if self.is_live:
            self.engagement.process_pygame_event(event, now_ms)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _finish(self, now_ms: int) -> None:
        s = self.state
        self.breaks.cancel()
        self.engagement.teardown()
        s.is_in_break = False
        s.is_paused = False
        self.clock.stop(now_ms)
        s.completion_code = generate_completion_code(self.rng)
        s.phase = PHASE_COMPLETE
        s.current_task = None
        summary = self.summary(now_ms)
        self._log(
            "game_complete",
            {
                "total_time_sec": summary.total_time_sec,
                "total_switches": summary.total_switches,
                "bonus_prompts": summary.bonus_prompts,
                "prompts_used": summary.prompts_used,
                "completion_code": summary.completion_code,
                "mean_accuracy": summary.mean_accuracy,
            },
        )
        self._save_snapshot(SESSION_COMPLETED, now_ms)
        s.finalized = True

    def _sync_pause(self, now_ms: int) -> None:
        s = self.state
        should_pause = s.is_in_break or s.is_suspended
        if should_pause and not self.clock.is_paused:
            self.clock.pause(now_ms)
        elif not should_pause and self.clock.is_paused:
            self.clock.resume(now_ms)
            s.paused_accumulator_ms = self.clock.paused_total_ms
        s.is_paused = should_pause

    def _accumulate_task_time(self, task: TaskId, now_ms: int) -> None:
        started = self.state.task_started_ms.pop(task, None)
        if started is None:
            return
        spent = max(0, now_ms - started)
        self.state.task_elapsed_ms[task] = self.state.task_elapsed_ms.get(task, 0) + spent
        self._log("task_time", {"task": task.key, "ms": spent, "total_ms": self.state.task_elapsed_ms[task]})

    def _require_phase(self, *phases: str) -> None:
        if self.state.phase not in phases:
            raise InvalidTransition(f"phase is {self.state.phase}")

    def _require_live(self) -> None:
        self._require_phase(PHASE_MAIN_GAME)
        if self.state.finalized:
            raise InvalidTransition("session already finalized")

    def _log_activation(self, activation, practice: bool = False) -> None:
        rule = activation.rule
        self._log(
            "dependency_activated",
            {
                "source": rule.source_task.key,
                "target_family": rule.target_family,
                "effect": rule.effect_kind,
                "probability": rule.probability,
                "draw": activation.draw,
                "practice": practice,
            },
        )

    def _save_snapshot(self, status: str, now_ms: int, next_task: Optional[TaskId] = None) -> None:
        if self.recorder is None:
            return
        snapshot = to_snapshot(self.state, status, self.clock.elapsed_ms(now_ms), next_task=next_task)
        self.recorder.save_snapshot(snapshot)

    def _log(self, event_type: str, payload: dict) -> None:
        logger.debug("%s %s", event_type, payload)
        if self.recorder is not None:
            self.recorder.log_event(event_type, payload)
