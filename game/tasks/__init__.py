from game.tasks.counting import CountingTask
from game.tasks.slider import MatchSliderTask
from game.tasks.typing_task import TypingTask
from game.runtime.models import FAMILY_COUNT, FAMILY_MATCH, FAMILY_TYPE

TASK_CLASSES = {
    FAMILY_COUNT: CountingTask,
    FAMILY_MATCH: MatchSliderTask,
    FAMILY_TYPE: TypingTask,
}

__all__ = ["CountingTask", "MatchSliderTask", "TypingTask", "TASK_CLASSES"]
