import json
from typing import Iterable
from urllib import error, request

from data.models import ChatTurn, ParsedReply
from game.errors import ReplyServiceFailure


def parse_reply(raw: str) -> ParsedReply:
    """
    Splits a reply into (level tag, type tag, answer).

    The first two non-empty lines are the classification tags and the rest is
    shown to the participant. Replies too short to carry an answer after the
    tags are shown whole; single-line and empty replies carry no tags.
    """
    raw = raw or ""
    lines = [line for line in raw.split("\n") if line.strip()]
    if len(lines) <= 1:
        return ParsedReply(level_tag="", type_tag="", answer=raw)
    if len(lines) == 2:
        return ParsedReply(level_tag=lines[0].strip(), type_tag=lines[1].strip(), answer=raw)
    return ParsedReply(
        level_tag=lines[0].strip(),
        type_tag=lines[1].strip(),
        answer="\n".join(lines[2:]),
    )


class ReplyClient:
    def __init__(self, endpoint_url: str, timeout_sec: float = 10.0) -> None:
        self.endpoint_url = endpoint_url.strip()
        self.timeout_sec = max(0.5, timeout_sec)

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint_url)

    def request_reply(self, message: str, history: Iterable[ChatTurn]) -> str:
        if not self.enabled:
            raise ReplyServiceFailure("reply_service_disabled")
        body = {
            "message": message,
            "history": [turn.to_dict() for turn in history],
        }
        req = request.Request(
            self.endpoint_url,
            data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with request.urlopen(req, timeout=self.timeout_sec) as resp:
                if resp.status != 200:
                    raise ReplyServiceFailure(f"http_{resp.status}")
                raw = resp.read().decode("utf-8") or "{}"
                data = json.loads(raw)
        except (error.URLError, error.HTTPError, TimeoutError, OSError, json.JSONDecodeError) as exc:
            raise ReplyServiceFailure("connection_error") from exc
        if not isinstance(data, dict) or not isinstance(data.get("reply"), str):
            raise ReplyServiceFailure("invalid_reply_payload")
        return data["reply"]
