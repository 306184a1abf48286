from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path

from config.settings import ServiceConfig


logger = logging.getLogger(__name__)

SETTINGS_FILE = "service_settings.json"


def load_service_settings(settings_path: Path, env_config: ServiceConfig) -> ServiceConfig:
    """
    Merges the per-user settings file under the environment values.

    Non-empty environment values always win. A missing file is created from
    the environment so the participant's machine keeps the endpoints.
    """
    if not settings_path.exists():
        save_service_settings(settings_path, env_config)
        return env_config
    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings %s: %s", settings_path, exc)
        return env_config
    if not isinstance(payload, dict):
        return env_config
    return replace(
        env_config,
        recorder_url=env_config.recorder_url or str(payload.get("recorder_url", "")).strip(),
        recorder_api_key=env_config.recorder_api_key or str(payload.get("recorder_api_key", "")).strip(),
        reply_url=env_config.reply_url or str(payload.get("reply_url", "")).strip(),
    )


def save_service_settings(settings_path: Path, config: ServiceConfig) -> None:
    payload = {
        "recorder_url": config.recorder_url.strip(),
        "recorder_api_key": config.recorder_api_key.strip(),
        "reply_url": config.reply_url.strip(),
    }
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = settings_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(settings_path)
    except OSError as exc:
        logger.warning("Settings not saved to %s: %s", settings_path, exc)
