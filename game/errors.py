BUDGET_TOKENS = "tokens"
BUDGET_PROMPTS = "prompts"


class BudgetExceeded(Exception):
    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class InvalidTransition(Exception):
    pass


class ReplyServiceFailure(Exception):
    pass


class PersistenceFailure(Exception):
    pass
