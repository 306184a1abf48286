import os
from dataclasses import dataclass


@dataclass(frozen=True)
class WindowConfig:
    width: int = 1280
    height: int = 720
    fps: int = 60
    title: str = "Multi-Task Challenge"


@dataclass(frozen=True)
class SessionConfig:
    total_tasks: int = 9
    break_ms: int = 3000  # auto-advance delay after a completion
    max_suspend_ms: int = 60000  # pause screen closes itself after this
    practice_required_accuracy: float = 100.0
    practice_probability: float = 1.0
    seed: int = 0  # 0 -> system randomness


@dataclass(frozen=True)
class BudgetConfig:
    base_prompts: int = 3
    max_tokens: int = 300
    chars_per_token: int = 4


@dataclass(frozen=True)
class EngagementConfig:
    focus_timeout_ms: int = 15000
    idle_threshold_ms: int = 30000
    idle_warning_ms: int = 5000
    idle_poll_ms: int = 1000


@dataclass(frozen=True)
class ServiceConfig:
    reply_url: str = ""
    recorder_url: str = ""
    recorder_api_key: str = ""
    client_version: str = "mtc-dev"
    timeout_sec: float = 10.0
    flush_interval_sec: float = 5.0
    max_batch_size: int = 100


def load_service_config() -> ServiceConfig:
    defaults = ServiceConfig()
    timeout = os.getenv("MTC_TIMEOUT_SEC", "").strip()
    return ServiceConfig(
        reply_url=os.getenv("MTC_REPLY_URL", defaults.reply_url).strip(),
        recorder_url=os.getenv("MTC_RECORDER_URL", defaults.recorder_url).strip(),
        recorder_api_key=os.getenv("MTC_RECORDER_API_KEY", defaults.recorder_api_key).strip(),
        client_version=os.getenv("MTC_CLIENT_VERSION", defaults.client_version).strip() or defaults.client_version,
        timeout_sec=float(timeout) if timeout else defaults.timeout_sec,
    )
