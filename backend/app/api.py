import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from app import reply
from app.config import Settings, load_settings
from app.db import count_events, ensure_db, read_snapshot, write_batch

REQUIRED_EVENT_FIELDS = ("event_id", "event_type", "event_ts", "session_id", "payload")
MAX_BATCH = 500

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    ensure_db(settings.db_path)
    app = FastAPI(title="Multi-Task Challenge API", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/v1/events")
    def ingest_events(body: dict[str, Any]) -> JSONResponse:
        api_key = str(body.get("api_key", ""))
        if not api_key or api_key != settings.api_key:
            raise HTTPException(status_code=401, detail="invalid_api_key")

        events = body.get("events")
        if not isinstance(events, list) or not events:
            raise HTTPException(status_code=400, detail="events_must_be_nonempty_list")
        if len(events) > MAX_BATCH:
            raise HTTPException(status_code=400, detail="batch_too_large")

        for idx, event in enumerate(events):
            if not isinstance(event, dict):
                raise HTTPException(status_code=400, detail=f"event_{idx}_must_be_object")
            missing = [field for field in REQUIRED_EVENT_FIELDS if field not in event]
            if missing:
                raise HTTPException(
                    status_code=400,
                    detail=f"event_{idx}_missing_fields:{','.join(missing)}",
                )

        inserted = write_batch(
            db_path=settings.db_path,
            api_key=api_key,
            client_version=str(body.get("client_version", "unknown")),
            events=events,
        )
        return JSONResponse(content={"ok": True, "inserted": inserted}, status_code=200)

    @app.get("/v1/sessions/{session_id}")
    def get_session(session_id: str) -> dict[str, Any]:
        snapshot = read_snapshot(settings.db_path, session_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="session_not_found")
        return {
            "ok": True,
            "snapshot": snapshot,
            "events_count": count_events(settings.db_path, session_id),
        }

    @app.post("/api/chat")
    def chat(body: dict[str, Any]) -> JSONResponse:
        message = str(body.get("message") or "")
        history = body.get("history") or []
        if not isinstance(history, list):
            history = []
        messages = reply.build_messages(settings.system_prompt, history, message)
        try:
            text = reply.request_completion(settings, messages)
        except reply.UpstreamError as exc:
            logger.error("Chat upstream failed: %s", exc)
            return JSONResponse(content={"reply": "Server error."}, status_code=500)
        return JSONResponse(content={"reply": text}, status_code=200)

    return app


app = create_app()
