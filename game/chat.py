import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple

from data.models import ChatTurn, ParsedReply
from data.reply_client import ReplyClient, parse_reply
from game.errors import ReplyServiceFailure


logger = logging.getLogger(__name__)

GENERIC_ERROR_TEXT = "Error talking to the server."
WELCOME_TEXT = "Hello! I can help with counting, slider, and typing tasks. Complete tasks to earn more prompts!"


@dataclass(frozen=True)
class ChatResult:
    reply: Optional[ParsedReply]
    error: Optional[str] = None


class ChatAssistant:
    """
    Runs reply-service calls off the frame loop.

    submit() hands the request to a worker and returns immediately; poll()
    is called every frame and yields the finished result exactly once.
    """

    def __init__(self, client: ReplyClient, executor=None) -> None:
        self.client = client
        self._executor = executor
        self._owns_executor = executor is None
        self._pending: Optional[Future] = None
        self.transcript: List[Tuple[str, str]] = [("AI", WELCOME_TEXT)]

    @property
    def busy(self) -> bool:
        return self._pending is not None

    def submit(self, message: str, history: List[ChatTurn]) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reply")
        self.transcript.append(("You", message))
        self._pending = self._executor.submit(self.client.request_reply, message, list(history))

    def poll(self) -> Optional[ChatResult]:
        if self._pending is None or not self._pending.done():
            return None
        future = self._pending
        self._pending = None
        try:
            raw = future.result()
        except ReplyServiceFailure as exc:
            logger.warning("Reply service failed: %s", exc)
            self.transcript.append(("AI", GENERIC_ERROR_TEXT))
            return ChatResult(reply=None, error=str(exc) or "reply_service_failure")
        parsed = parse_reply(raw)
        self.transcript.append(("AI", parsed.answer))
        return ChatResult(reply=parsed)

    def system_message(self, text: str) -> None:
        self.transcript.append(("System", text))

    def close(self) -> None:
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False)
            self._executor = None
