import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from game.runtime.models import (
    FAMILY_COUNT,
    FAMILY_MATCH,
    FAMILY_TYPE,
    DependencyRule,
    Enhancement,
    TaskId,
    family_tasks,
)


EFFECT_HIGHLIGHT = "highlight"
EFFECT_ENHANCED_SLIDER = "enhanced_slider"
EFFECT_SIMPLE_PATTERN = "simple_pattern"

LEVEL_PROBABILITIES = {1: 0.3, 2: 0.6, 3: 0.9}

# source family -> (target family, effect)
DEPENDENCY_CYCLE = {
    FAMILY_MATCH: (FAMILY_COUNT, EFFECT_HIGHLIGHT),
    FAMILY_TYPE: (FAMILY_MATCH, EFFECT_ENHANCED_SLIDER),
    FAMILY_COUNT: (FAMILY_TYPE, EFFECT_SIMPLE_PATTERN),
}


def build_default_rules() -> Tuple[DependencyRule, ...]:
    rules = []
    for source_family, (target_family, effect) in DEPENDENCY_CYCLE.items():
        for source in family_tasks(source_family):
            rules.append(
                DependencyRule(
                    source_task=source,
                    target_family=target_family,
                    effect_kind=effect,
                    probability=LEVEL_PROBABILITIES[source.level],
                )
            )
    return tuple(rules)


DEFAULT_RULES = build_default_rules()


@dataclass(frozen=True)
class Activation:
    rule: DependencyRule
    draw: float
    targets: Tuple[TaskId, ...]


class DependencyEngine:
    def __init__(
        self,
        rules: Tuple[DependencyRule, ...] = DEFAULT_RULES,
        rng: Optional[random.Random] = None,
        practice_probability: float = 1.0,
    ) -> None:
        self._rules = tuple(rules)
        self._rng = rng or random.Random()
        self._practice_probability = practice_probability
        self._active: Dict[TaskId, Enhancement] = {}

    @property
    def rules(self) -> Tuple[DependencyRule, ...]:
        return self._rules

    def activate(self, source_task: TaskId, practice: bool = False) -> List[Activation]:
        activations: List[Activation] = []
        for rule in self._rules:
            if rule.source_task != source_task:
                continue
            # One draw per rule even in practice, so the draw sequence does not
            # depend on the mode.
            draw = self._rng.random()
            probability = self._practice_probability if practice else rule.probability
            if draw >= probability:
                continue
            targets = family_tasks(rule.target_family)
            for target in targets:
                self._active[target] = Enhancement(kind=rule.effect_kind, source_task=source_task)
            activations.append(Activation(rule=rule, draw=draw, targets=targets))
        return activations

    def query(self, task: TaskId) -> Optional[Enhancement]:
        return self._active.get(task)

    def active_count(self) -> int:
        return len(self._active)

    def reset(self) -> None:
        self._active = {}
