from dataclasses import dataclass
from typing import Dict


ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ParsedReply:
    """
    Reply-service answer split into its two classification tags and display text.
    """
    level_tag: str
    type_tag: str
    answer: str


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    total_time_sec: int
    total_switches: int
    completed_tasks: int
    bonus_prompts: int
    prompts_used: int
    completion_code: str
    mean_accuracy: float = 0.0
