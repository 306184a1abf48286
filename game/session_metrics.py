from __future__ import annotations

import random
import time

from data.models import SessionSummary
from game.runtime.models import FAMILY_COUNT, FAMILY_MATCH, FAMILY_TYPE, TaskId, TaskOutcome

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def task_title(task: TaskId) -> str:
    family = {
        FAMILY_COUNT: "Counting",
        FAMILY_MATCH: "Slider",
        FAMILY_TYPE: "Typing",
    }.get(task.family, task.family)
    return f"{family} {task.level}"


def compute_progress(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return min(1.0, completed / total)


def mean_accuracy(outcomes: dict[TaskId, TaskOutcome], family: str | None = None) -> float:
    values = [
        o.accuracy_percent for task, o in outcomes.items() if family is None or task.family == family
    ]
    if not values:
        return 0.0
    return sum(values) / len(values)


def to_base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_completion_code(rng: random.Random | None = None, now_ms: int | None = None) -> str:
    rng = rng or random.Random()
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(rng.choice(_BASE36) for _ in range(6))
    return f"{to_base36(now_ms)}{suffix}".upper()


def build_summary(
    session_id: str,
    elapsed_sec: int,
    switch_count: int,
    completed: int,
    bonus_prompts: int,
    prompts_used: int,
    completion_code: str,
    outcomes: dict[TaskId, TaskOutcome] | None = None,
) -> SessionSummary:
    return SessionSummary(
        session_id=session_id,
        total_time_sec=elapsed_sec,
        total_switches=switch_count,
        completed_tasks=completed,
        bonus_prompts=bonus_prompts,
        prompts_used=prompts_used,
        completion_code=completion_code,
        mean_accuracy=round(mean_accuracy(outcomes or {}), 1),
    )
