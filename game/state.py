from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from data.models import ChatTurn
from game.runtime.models import (
    ALL_TASKS,
    STATUS_ACTIVE,
    STATUS_AVAILABLE,
    STATUS_COMPLETED,
    STATUS_LOCKED,
    TaskId,
    TaskOutcome,
)


PHASE_ACCESS_DENIED = "ACCESS_DENIED"
PHASE_LANDING = "LANDING"
PHASE_PRACTICE_CHOICE = "PRACTICE_CHOICE"
PHASE_PRACTICE = "PRACTICE"
PHASE_MAIN_GAME = "MAIN_GAME"
PHASE_COMPLETE = "COMPLETE"
PHASE_BLOCKED = "BLOCKED"

TERMINAL_PHASES = (PHASE_ACCESS_DENIED, PHASE_COMPLETE, PHASE_BLOCKED)

SESSION_IN_PROGRESS = "in_progress"
SESSION_COMPLETED = "completed"
SESSION_BLOCKED = "blocked"
SESSION_ABANDONED = "abandoned"


@dataclass
class GameState:
    session_id: str
    phase: str = PHASE_LANDING
    is_practice: bool = False
    current_task: Optional[TaskId] = None
    completed: Set[TaskId] = field(default_factory=set)
    completion_order: List[TaskId] = field(default_factory=list)
    switch_count: int = 0
    task_elapsed_ms: Dict[TaskId, int] = field(default_factory=dict)
    task_started_ms: Dict[TaskId, int] = field(default_factory=dict)
    paused_accumulator_ms: int = 0
    is_paused: bool = False
    is_in_break: bool = False
    is_suspended: bool = False
    num_prompts_used: int = 0
    bonus_prompts: int = 0
    chat_history: List[ChatTurn] = field(default_factory=list)
    chat_input_disabled: bool = False
    practice_completed: Set[str] = field(default_factory=set)
    task_outcomes: Dict[TaskId, TaskOutcome] = field(default_factory=dict)
    blocked_reason: Optional[str] = None
    completion_code: str = ""
    finalized: bool = False

    @property
    def progress(self) -> float:
        return len(self.completed) / len(ALL_TASKS)

    def status_of(self, task: TaskId) -> str:
        if task in self.completed:
            return STATUS_COMPLETED
        if task.level > 1 and TaskId(task.family, task.level - 1) not in self.completed:
            return STATUS_LOCKED
        if task == self.current_task:
            return STATUS_ACTIVE
        return STATUS_AVAILABLE

    def statuses(self) -> Dict[TaskId, str]:
        return {task: self.status_of(task) for task in ALL_TASKS}


def to_snapshot(
    state: GameState, status: str, elapsed_ms: int, next_task: Optional[TaskId] = None
) -> Dict[str, Any]:
    return {
        "session_id": state.session_id,
        "status": status,
        "phase": state.phase,
        "elapsed_ms": int(elapsed_ms),
        "current_task": state.current_task.key if state.current_task else None,
        "next_task": next_task.key if next_task else None,
        "completed": [task.key for task in state.completion_order],
        "switch_count": state.switch_count,
        "task_elapsed_ms": {task.key: ms for task, ms in state.task_elapsed_ms.items()},
        "paused_accumulator_ms": state.paused_accumulator_ms,
        "num_prompts_used": state.num_prompts_used,
        "bonus_prompts": state.bonus_prompts,
        "chat_history": [turn.to_dict() for turn in state.chat_history],
        "task_outcomes": {
            task.key: {"correct": outcome.correct, "accuracy_percent": outcome.accuracy_percent}
            for task, outcome in state.task_outcomes.items()
        },
        "blocked_reason": state.blocked_reason,
        "completion_code": state.completion_code,
    }


def restore_state(snapshot: Dict[str, Any]) -> GameState:
    order = [TaskId.from_key(key) for key in snapshot.get("completed", [])]
    current = snapshot.get("current_task")
    outcomes = {}
    for key, raw in (snapshot.get("task_outcomes") or {}).items():
        outcomes[TaskId.from_key(key)] = TaskOutcome(
            correct=bool(raw.get("correct")),
            accuracy_percent=float(raw.get("accuracy_percent", 0.0)),
        )
    state = GameState(
        session_id=str(snapshot["session_id"]),
        phase=PHASE_MAIN_GAME,
        current_task=TaskId.from_key(current) if current else None,
        completed=set(order),
        completion_order=order,
        switch_count=int(snapshot.get("switch_count", 0)),
        task_elapsed_ms={
            TaskId.from_key(key): int(ms) for key, ms in (snapshot.get("task_elapsed_ms") or {}).items()
        },
        paused_accumulator_ms=int(snapshot.get("paused_accumulator_ms", 0)),
        num_prompts_used=int(snapshot.get("num_prompts_used", 0)),
        bonus_prompts=int(snapshot.get("bonus_prompts", 0)),
        chat_history=[
            ChatTurn(role=str(turn.get("role", "")), content=str(turn.get("content", "")))
            for turn in snapshot.get("chat_history", [])
        ],
        task_outcomes=outcomes,
    )
    return state
