import json
import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from urllib import error, request
from urllib.parse import urlparse

from data.logger import JsonlLogger
from game.errors import PersistenceFailure
from game.runtime.snapshot_store import load_snapshots, save_snapshots


logger = logging.getLogger(__name__)

SNAPSHOT_EVENT = "session_snapshot"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SessionRecorder:
    """
    Durable event log and resumable session snapshots.

    Every event lands in the local JSONL log first. When a primary store is
    configured, events are also queued in a JSONL retry file and sent in
    batches from a worker thread; a batch leaves the queue only after the
    store acknowledges it, so delivery is at-least-once.
    """

    def __init__(
        self,
        endpoint_url: str = "",
        api_key: str = "",
        client_version: str = "mtc-dev",
        data_dir: str = "data",
        max_batch_size: int = 100,
        flush_interval_sec: float = 5.0,
        timeout_sec: float = 2.5,
        executor=None,
    ) -> None:
        self.endpoint_url = endpoint_url.strip()
        self.api_key = api_key.strip()
        self.client_version = client_version
        self.max_batch_size = max(1, max_batch_size)
        self.flush_interval_sec = max(0.0, flush_interval_sec)
        self.timeout_sec = max(0.5, timeout_sec)
        self.enabled = bool(self.endpoint_url and self.api_key)
        if self.endpoint_url and not self.is_valid_endpoint(self.endpoint_url):
            logger.warning("Recorder endpoint %r is not an http(s) URL; events stay local", self.endpoint_url)
            self.enabled = False
        root = Path(data_dir)
        self.queue_path = root / "recorder_queue.jsonl"
        self.snapshots_path = root / "sessions.json"
        self.events_log = JsonlLogger(str(root / "events.jsonl"))
        self.queue_path.parent.mkdir(parents=True, exist_ok=True)
        self.queue: list[dict[str, Any]] = self._load_queue()
        self.session_id: str = ""
        self.last_flush_ts: float = 0.0
        self.last_error: str = ""
        self._executor = executor
        self._owns_executor = executor is None
        self._inflight: Optional[tuple[Future, int]] = None

    def set_session(self, session_id: str) -> None:
        self.session_id = session_id

    def log_event(self, event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        event = {
            "event_id": uuid.uuid4().hex,
            "event_type": event_type,
            "event_ts": _utc_now_iso(),
            "session_id": self.session_id,
            "client_version": self.client_version,
            "payload": payload,
        }
        self.events_log.write(event)
        if self.enabled:
            self.queue.append(event)
            self._save_queue()
            self.flush()
        return event

    def save_snapshot(self, snapshot: dict[str, Any]) -> None:
        session_id = str(snapshot.get("session_id") or self.session_id)
        if not session_id:
            return
        record = dict(snapshot)
        record["saved_at"] = _utc_now_iso()
        try:
            sessions = load_snapshots(self.snapshots_path)
            sessions[session_id] = record
            save_snapshots(self.snapshots_path, sessions)
        except OSError as exc:
            logger.warning("Snapshot for %s not written locally: %s", session_id, exc)
        self.log_event(SNAPSHOT_EVENT, record)

    def load_snapshot(self, session_id: str) -> Optional[dict[str, Any]]:
        snapshot = load_snapshots(self.snapshots_path).get(session_id)
        return snapshot if isinstance(snapshot, dict) else None

    def flush(self, force: bool = False) -> None:
        if not self.enabled or not self.queue:
            return
        if self._inflight is not None:
            return
        now = time.time()
        if not force and (now - self.last_flush_ts) < self.flush_interval_sec:
            return
        self.last_flush_ts = now
        batch = list(self.queue[: self.max_batch_size])
        future = self._get_executor().submit(self._post_batch, batch)
        self._inflight = (future, len(batch))

    def poll(self) -> None:
        """Applies a finished flush on the caller's thread."""
        if self._inflight is None:
            return
        future, sent = self._inflight
        if not future.done():
            return
        self._inflight = None
        try:
            future.result()
        except PersistenceFailure as exc:
            self.last_error = str(exc) or "connection_error"
            logger.warning("Event batch not delivered, keeping %d queued: %s", len(self.queue), self.last_error)
            return
        self.queue = self.queue[sent:]
        self.last_error = ""
        self._save_queue()

    def flush_blocking(self) -> bool:
        """Sends everything still queued from the caller's thread; used at shutdown."""
        if not self.enabled:
            return True
        self.poll()
        while self.queue and self._inflight is None:
            batch = list(self.queue[: self.max_batch_size])
            try:
                self._post_batch(batch)
            except PersistenceFailure as exc:
                self.last_error = str(exc) or "connection_error"
                return False
            self.queue = self.queue[len(batch) :]
            self._save_queue()
        return not self.queue

    def queue_size(self) -> int:
        return len(self.queue)

    def close(self) -> None:
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False)
            self._executor = None

    @staticmethod
    def is_valid_endpoint(url: str) -> bool:
        parsed = urlparse((url or "").strip())
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def _get_executor(self):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recorder")
        return self._executor

    def _post_batch(self, batch: list[dict[str, Any]]) -> None:
        body = {
            "api_key": self.api_key,
            "client_version": self.client_version,
            "sent_at": _utc_now_iso(),
            "events": batch,
        }
        payload = json.dumps(body, ensure_ascii=False, default=str).encode("utf-8")
        req = request.Request(
            self.endpoint_url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with request.urlopen(req, timeout=self.timeout_sec) as resp:
                if resp.status != 200:
                    raise PersistenceFailure(f"http_{resp.status}")
                raw = resp.read().decode("utf-8") or "{}"
                data = json.loads(raw)
        except (error.URLError, error.HTTPError, TimeoutError, OSError, json.JSONDecodeError) as exc:
            raise PersistenceFailure("connection_error") from exc
        if not isinstance(data, dict) or data.get("ok") is not True:
            raise PersistenceFailure("invalid_server_response")

    def _load_queue(self) -> list[dict[str, Any]]:
        if not self.queue_path.exists():
            return []
        events: list[dict[str, Any]] = []
        try:
            with self.queue_path.open("r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    rec = json.loads(line)
                    if isinstance(rec, dict):
                        events.append(rec)
        except (OSError, json.JSONDecodeError):
            return []
        return events

    def _save_queue(self) -> None:
        try:
            if not self.queue:
                self.queue_path.unlink(missing_ok=True)
                return
            tmp = self.queue_path.with_suffix(".tmp")
            with tmp.open("w", encoding="utf-8") as f:
                for item in self.queue:
                    f.write(json.dumps(item, ensure_ascii=False, default=str) + "\n")
            tmp.replace(self.queue_path)
        except OSError as exc:
            logger.warning("Recorder queue not persisted: %s", exc)
