from dataclasses import dataclass
from typing import Optional


FAMILY_COUNT = "count"
FAMILY_MATCH = "match"
FAMILY_TYPE = "type"

# Order matters: it is the tab order and the default-destination scan order.
FAMILIES = (FAMILY_COUNT, FAMILY_MATCH, FAMILY_TYPE)
LEVELS = (1, 2, 3)
MAX_LEVEL = 3

DIFFICULTY_BY_LEVEL = {1: "easy", 2: "medium", 3: "hard"}

STATUS_LOCKED = "locked"
STATUS_AVAILABLE = "available"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"


@dataclass(frozen=True, order=True)
class TaskId:
    family: str
    level: int

    def __post_init__(self) -> None:
        if self.family not in FAMILIES:
            raise ValueError(f"Unknown task family: {self.family}")
        if self.level not in LEVELS:
            raise ValueError(f"Task level must be 1..3, got {self.level}")

    @property
    def key(self) -> str:
        return f"g{FAMILIES.index(self.family) + 1}t{self.level}"

    @property
    def difficulty(self) -> str:
        return DIFFICULTY_BY_LEVEL[self.level]

    def next_level(self) -> Optional["TaskId"]:
        if self.level >= MAX_LEVEL:
            return None
        return TaskId(self.family, self.level + 1)

    @classmethod
    def from_key(cls, key: str) -> "TaskId":
        key = (key or "").strip().lower()
        if len(key) != 4 or key[0] != "g" or key[2] != "t" or not key[1].isdigit() or not key[3].isdigit():
            raise ValueError(f"Invalid task key: {key!r}")
        family_index = int(key[1]) - 1
        if family_index not in range(len(FAMILIES)):
            raise ValueError(f"Invalid task key: {key!r}")
        return cls(FAMILIES[family_index], int(key[3]))

    def __str__(self) -> str:
        return self.key


ALL_TASKS = tuple(TaskId(family, level) for family in FAMILIES for level in LEVELS)


def family_tasks(family: str) -> tuple:
    return tuple(TaskId(family, level) for level in LEVELS)


@dataclass(frozen=True)
class TaskOutcome:
    correct: bool
    accuracy_percent: float
    response: Optional[str] = None
    rt_ms: Optional[int] = None


@dataclass(frozen=True)
class DependencyRule:
    source_task: TaskId
    target_family: str
    effect_kind: str
    probability: float


@dataclass(frozen=True)
class Enhancement:
    kind: str
    source_task: TaskId
