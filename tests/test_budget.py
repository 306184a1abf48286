import pytest

from config.settings import BudgetConfig
from data.models import ROLE_USER, ChatTurn
from game.budget import BudgetEnforcer, estimate_tokens
from game.errors import BUDGET_PROMPTS, BUDGET_TOKENS, BudgetExceeded


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


class TestBudgetEnforcer:
    def setup_method(self):
        self.enforcer = BudgetEnforcer(BudgetConfig())

    def test_allowance_grows_with_bonus(self):
        assert self.enforcer.total_allowance(0) == 3
        assert self.enforcer.total_allowance(2) == 5

    def test_remaining_is_clamped(self):
        assert self.enforcer.remaining(5, 0) == 0
        assert self.enforcer.remaining(1, 1) == 3

    def test_authorize_returns_next_prompt_number(self):
        auth = self.enforcer.authorize("help me", [], prompts_used=1, bonus_prompts=0)
        assert auth.prompt_number == 2
        assert auth.remaining_after == 1
        assert auth.estimated_tokens == 2

    def test_rejects_when_prompts_used_up(self):
        with pytest.raises(BudgetExceeded) as exc:
            self.enforcer.authorize("hi", [], prompts_used=3, bonus_prompts=0)
        assert exc.value.kind == BUDGET_PROMPTS

    def test_history_counts_towards_tokens(self):
        history = [ChatTurn(role=ROLE_USER, content="x" * 1196)]
        with pytest.raises(BudgetExceeded) as exc:
            self.enforcer.authorize("y" * 8, history, prompts_used=0, bonus_prompts=0)
        assert exc.value.kind == BUDGET_TOKENS

    def test_token_check_comes_first(self):
        with pytest.raises(BudgetExceeded) as exc:
            self.enforcer.authorize("z" * 1204, [], prompts_used=3, bonus_prompts=0)
        assert exc.value.kind == BUDGET_TOKENS

    def test_exactly_at_token_limit_is_allowed(self):
        auth = self.enforcer.authorize("a" * 1200, [], prompts_used=0, bonus_prompts=0)
        assert auth.estimated_tokens == 300
