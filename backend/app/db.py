import hashlib
import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

SNAPSHOT_EVENT = "session_snapshot"


def ensure_db(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS ingest_batches (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                received_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                client_version TEXT,
                events_count INTEGER NOT NULL,
                api_key_hash TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS events_raw (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id TEXT NOT NULL UNIQUE,
                event_type TEXT NOT NULL,
                event_ts TEXT NOT NULL,
                received_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                session_id TEXT NOT NULL,
                client_version TEXT,
                payload_json TEXT NOT NULL,
                batch_id INTEGER NOT NULL,
                FOREIGN KEY(batch_id) REFERENCES ingest_batches(id)
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS session_snapshots (
                session_id TEXT PRIMARY KEY,
                status TEXT,
                saved_at TEXT NOT NULL,
                snapshot_json TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_events_session_ts ON events_raw(session_id, event_ts);"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_events_type_ts ON events_raw(event_type, event_ts);"
        )


def write_batch(db_path: Path, api_key: str, client_version: str, events: list[dict[str, Any]]) -> int:
    """Stores a batch; returns how many events were new. Replays are ignored by event_id."""
    api_key_hash = hashlib.sha256(api_key.encode("utf-8")).hexdigest()
    with sqlite3.connect(db_path) as conn:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO ingest_batches (client_version, events_count, api_key_hash)
            VALUES (?, ?, ?)
            """,
            (client_version, len(events), api_key_hash),
        )
        batch_id = int(cur.lastrowid)

        inserted = 0
        for event in events:
            payload = event.get("payload", {})
            if not isinstance(payload, dict):
                payload = {"raw_payload": payload}
            cur.execute(
                """
                INSERT OR IGNORE INTO events_raw (
                    event_id, event_type, event_ts, session_id, client_version, payload_json, batch_id
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event["event_id"],
                    event["event_type"],
                    event["event_ts"],
                    event["session_id"],
                    event.get("client_version", client_version),
                    json.dumps(payload, ensure_ascii=False, separators=(",", ":")),
                    batch_id,
                ),
            )
            if cur.rowcount == 0:
                continue
            inserted += 1
            if event["event_type"] == SNAPSHOT_EVENT:
                _upsert_snapshot(cur, event["session_id"], payload)
        conn.commit()
    return inserted


def _upsert_snapshot(cur: sqlite3.Cursor, session_id: str, snapshot: dict[str, Any]) -> None:
    saved_at = str(snapshot.get("saved_at", ""))
    # out-of-order delivery must not roll a session back
    cur.execute(
        """
        INSERT INTO session_snapshots (session_id, status, saved_at, snapshot_json)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(session_id) DO UPDATE SET
            status = excluded.status,
            saved_at = excluded.saved_at,
            snapshot_json = excluded.snapshot_json,
            updated_at = CURRENT_TIMESTAMP
        WHERE excluded.saved_at >= session_snapshots.saved_at
        """,
        (
            session_id,
            snapshot.get("status"),
            saved_at,
            json.dumps(snapshot, ensure_ascii=False, separators=(",", ":")),
        ),
    )


def read_snapshot(db_path: Path, session_id: str) -> Optional[dict[str, Any]]:
    if not db_path.exists():
        return None
    with sqlite3.connect(db_path) as conn:
        row = conn.execute(
            "SELECT snapshot_json FROM session_snapshots WHERE session_id = ?",
            (session_id,),
        ).fetchone()
    if row is None:
        return None
    try:
        snapshot = json.loads(row[0])
    except json.JSONDecodeError:
        return None
    return snapshot if isinstance(snapshot, dict) else None


def count_events(db_path: Path, session_id: str) -> int:
    if not db_path.exists():
        return 0
    with sqlite3.connect(db_path) as conn:
        (count,) = conn.execute(
            "SELECT COUNT(*) FROM events_raw WHERE session_id = ?",
            (session_id,),
        ).fetchone()
    return int(count)
