import json
import logging
from typing import Any
from urllib import error, request

from app.config import Settings


logger = logging.getLogger(__name__)

NO_RESPONSE = "No response."


class UpstreamError(Exception):
    pass


def build_messages(system_prompt: str, history: list[Any], message: str) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": system_prompt}]
    for turn in history:
        if not isinstance(turn, dict):
            continue
        role = str(turn.get("role", ""))
        if role not in ("user", "assistant"):
            continue
        messages.append({"role": role, "content": str(turn.get("content", ""))})
    messages.append({"role": "user", "content": message})
    return messages


def request_completion(settings: Settings, messages: list[dict[str, str]]) -> str:
    if not settings.openai_api_key:
        raise UpstreamError("chat_api_key_missing")
    body = {"model": settings.chat_model, "messages": messages}
    req = request.Request(
        settings.chat_url,
        data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.openai_api_key}",
        },
        method="POST",
    )
    try:
        with request.urlopen(req, timeout=settings.chat_timeout_sec) as resp:
            data = json.loads(resp.read().decode("utf-8") or "{}")
    except (error.URLError, error.HTTPError, TimeoutError, OSError, json.JSONDecodeError) as exc:
        raise UpstreamError(str(exc)) from exc
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return NO_RESPONSE
    return content if isinstance(content, str) and content else NO_RESPONSE
