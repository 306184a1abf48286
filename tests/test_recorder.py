from concurrent.futures import Future

import pytest

from data.recorder import SNAPSHOT_EVENT, SessionRecorder
from game.errors import PersistenceFailure


def _unreachable(batch):
    raise PersistenceFailure("down")


class ImmediateExecutor:
    def submit(self, fn, *args):
        future = Future()
        try:
            future.set_result(fn(*args))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def online(tmp_path):
    recorder = SessionRecorder(
        endpoint_url="http://127.0.0.1:9/v1/events",
        api_key="secret",
        data_dir=str(tmp_path),
        flush_interval_sec=0.0,
        executor=ImmediateExecutor(),
    )
    recorder.set_session("s1")
    return recorder


class TestSessionRecorder:
    def test_disabled_recorder_writes_local_log_only(self, tmp_path):
        recorder = SessionRecorder(data_dir=str(tmp_path))
        recorder.set_session("s1")
        event = recorder.log_event("task_complete", {"task": "g1t1"})
        assert not recorder.enabled
        assert recorder.queue_size() == 0
        (stored,) = recorder.events_log.read_all()
        assert stored["event_id"] == event["event_id"]
        assert stored["session_id"] == "s1"
        assert stored["payload"] == {"task": "g1t1"}

    def test_failed_flush_keeps_queue(self, online, monkeypatch):
        def fail(batch):
            raise PersistenceFailure("connection_error")

        monkeypatch.setattr(online, "_post_batch", fail)
        online.log_event("page_switch", {"from": "g1t1", "to": "g2t1"})
        online.poll()
        assert online.queue_size() == 1
        assert online.last_error == "connection_error"
        assert online.queue_path.exists()

    def test_queue_survives_restart_and_drains(self, online, tmp_path, monkeypatch):
        monkeypatch.setattr(online, "_post_batch", _unreachable)
        online.log_event("a", {})
        online.poll()

        reopened = SessionRecorder(
            endpoint_url="http://127.0.0.1:9/v1/events",
            api_key="secret",
            data_dir=str(tmp_path),
            flush_interval_sec=0.0,
            executor=ImmediateExecutor(),
        )
        assert reopened.queue_size() == 1
        sent = []
        monkeypatch.setattr(reopened, "_post_batch", lambda batch: sent.append(batch))
        reopened.flush(force=True)
        reopened.poll()
        assert reopened.queue_size() == 0
        assert sent[0][0]["event_type"] == "a"
        assert not reopened.queue_path.exists()

    def test_only_one_batch_in_flight(self, online, monkeypatch):
        calls = []
        pending = Future()

        class HoldingExecutor:
            def submit(self, fn, *args):
                calls.append(args)
                return pending

        online._executor = HoldingExecutor()
        online.log_event("a", {})
        online.log_event("b", {})
        assert len(calls) == 1
        pending.set_result(None)
        online.poll()
        assert online.queue_size() == 1

    def test_snapshot_saved_locally_and_logged(self, tmp_path):
        recorder = SessionRecorder(data_dir=str(tmp_path))
        recorder.save_snapshot({"session_id": "s9", "status": "in_progress"})
        snapshot = recorder.load_snapshot("s9")
        assert snapshot["status"] == "in_progress"
        assert "saved_at" in snapshot
        assert recorder.events_log.read_all()[-1]["event_type"] == SNAPSHOT_EVENT
        assert recorder.load_snapshot("missing") is None

    def test_flush_blocking_reports_failure(self, online, monkeypatch):
        monkeypatch.setattr(online, "_post_batch", _unreachable)
        online.queue.append({"event_id": "x"})
        assert not online.flush_blocking()

    def test_endpoint_validation(self):
        assert SessionRecorder.is_valid_endpoint("https://example.org/v1/events")
        assert not SessionRecorder.is_valid_endpoint("example.org")
