import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_SYSTEM_PROMPT = (
    "You help participants with counting, slider and typing tasks. "
    "Start every reply with two lines: the help level (hint, partial or full) "
    "and the task type (counting, slider, typing or general). "
    "Then give the answer."
)


@dataclass(frozen=True)
class Settings:
    api_key: str
    db_path: Path
    openai_api_key: str = ""
    chat_url: str = DEFAULT_CHAT_URL
    chat_model: str = "gpt-4"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    chat_timeout_sec: float = 30.0


def _read_prompt(path: Optional[str]) -> str:
    if not path:
        return DEFAULT_SYSTEM_PROMPT
    try:
        return Path(path).expanduser().read_text(encoding="utf-8").strip() or DEFAULT_SYSTEM_PROMPT
    except OSError:
        return DEFAULT_SYSTEM_PROMPT


def load_settings() -> Settings:
    root_dir = Path(__file__).resolve().parents[2]
    db_default = root_dir / "backend" / "data" / "events.db"
    db_path = Path(os.getenv("MTC_DB_PATH", str(db_default))).expanduser()
    return Settings(
        api_key=os.getenv("MTC_API_KEY", "").strip(),
        db_path=db_path,
        openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
        chat_url=os.getenv("MTC_CHAT_URL", DEFAULT_CHAT_URL).strip() or DEFAULT_CHAT_URL,
        chat_model=os.getenv("MTC_CHAT_MODEL", "gpt-4").strip() or "gpt-4",
        system_prompt=_read_prompt(os.getenv("MTC_SYSTEM_PROMPT_PATH")),
    )
