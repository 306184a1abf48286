from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from game.runtime.snapshot_store import latest_snapshot, load_snapshots


logger = logging.getLogger(__name__)

DENIED_STATUSES = ("abandoned", "blocked")
DENIED_MESSAGE = "You have already attempted this game. Access denied."


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    resume_session_id: Optional[str] = None
    reason: str = ""


ALLOW_NEW = AccessDecision(allowed=True)


class LocalAccessGate:
    """Decides entry from the sessions recorded on this machine."""

    def __init__(self, snapshots_path: Path) -> None:
        self.snapshots_path = Path(snapshots_path)

    def check(self) -> AccessDecision:
        latest = latest_snapshot(load_snapshots(self.snapshots_path))
        if latest is None:
            return ALLOW_NEW
        status = latest.get("status")
        session_id = latest.get("session_id")
        if status in DENIED_STATUSES:
            logger.info("Access denied: last session %s is %s", session_id, status)
            return AccessDecision(allowed=False, reason=DENIED_MESSAGE)
        if status == "in_progress" and session_id:
            return AccessDecision(allowed=True, resume_session_id=str(session_id))
        return ALLOW_NEW
