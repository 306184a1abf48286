import math
from dataclasses import dataclass
from typing import Iterable

from config.settings import BudgetConfig
from data.models import ChatTurn
from game.errors import BUDGET_PROMPTS, BUDGET_TOKENS, BudgetExceeded


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    # Coarse heuristic, not a tokenizer.
    return math.ceil(len(text or "") / max(1, chars_per_token))


@dataclass(frozen=True)
class PromptAuthorization:
    prompt_number: int
    estimated_tokens: int
    remaining_after: int


class BudgetEnforcer:
    """
    Chat-help allowance: base prompts plus one bonus per completed task,
    and a ceiling on the estimated size of prompt plus history.

    The enforcer holds no counters of its own; the state machine passes the
    current numbers in and applies the result.
    """

    def __init__(self, config: BudgetConfig = BudgetConfig()) -> None:
        self.config = config

    @property
    def base_prompts(self) -> int:
        return self.config.base_prompts

    @property
    def max_tokens(self) -> int:
        return self.config.max_tokens

    def total_allowance(self, bonus_prompts: int) -> int:
        return self.config.base_prompts + max(0, bonus_prompts)

    def remaining(self, prompts_used: int, bonus_prompts: int) -> int:
        return max(0, self.total_allowance(bonus_prompts) - prompts_used)

    def estimate(self, text: str) -> int:
        return estimate_tokens(text, self.config.chars_per_token)

    def history_tokens(self, history: Iterable[ChatTurn]) -> int:
        return sum(self.estimate(turn.content) for turn in history)

    def authorize(
        self,
        prompt_text: str,
        history: Iterable[ChatTurn],
        prompts_used: int,
        bonus_prompts: int,
    ) -> PromptAuthorization:
        estimated = self.estimate(prompt_text) + self.history_tokens(history)
        if estimated > self.config.max_tokens:
            raise BudgetExceeded(
                BUDGET_TOKENS,
                f"Exceeds token limit ({estimated}/{self.config.max_tokens}). Please shorten your message.",
            )
        allowance = self.total_allowance(bonus_prompts)
        if prompts_used >= allowance:
            raise BudgetExceeded(
                BUDGET_PROMPTS,
                f"You've used all {allowance} prompts. Complete more tasks to earn another.",
            )
        return PromptAuthorization(
            prompt_number=prompts_used + 1,
            estimated_tokens=estimated,
            remaining_after=allowance - prompts_used - 1,
        )
