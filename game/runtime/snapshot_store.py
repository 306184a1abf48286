from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def load_snapshots(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    if not isinstance(payload, dict):
        return {}
    sessions = payload.get("sessions")
    if isinstance(sessions, dict):
        return sessions
    return {}


def save_snapshots(path: Path, sessions: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(
        json.dumps({"sessions": sessions}, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    tmp.replace(path)


def latest_snapshot(sessions: dict[str, Any]) -> dict[str, Any] | None:
    best = None
    for snapshot in sessions.values():
        if not isinstance(snapshot, dict):
            continue
        if best is None or snapshot.get("saved_at", "") > best.get("saved_at", ""):
            best = snapshot
    return best
