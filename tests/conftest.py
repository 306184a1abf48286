import os
import random
import tempfile

import pytest

# backend/app/api.py builds its module-level app on import
os.environ.setdefault("MTC_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="mtc-test-"), "events.db"))

from config.settings import BudgetConfig, EngagementConfig, SessionConfig  # noqa: E402
from game.runtime.access import ALLOW_NEW  # noqa: E402
from game.state_machine import ExperimentStateMachine  # noqa: E402


class ScriptedRandom(random.Random):
    """random() returns the scripted draws in order, then 0.99."""

    def __init__(self, draws=()):
        super().__init__(1234)
        self.draws = list(draws)

    def random(self):
        if self.draws:
            return self.draws.pop(0)
        return 0.99


class FakeRecorder:
    def __init__(self):
        self.events = []
        self.snapshots = []
        self.session_id = ""
        self.flushed = False

    def set_session(self, session_id):
        self.session_id = session_id

    def log_event(self, event_type, payload):
        self.events.append((event_type, payload))

    def save_snapshot(self, snapshot):
        self.snapshots.append(snapshot)

    def poll(self):
        pass

    def flush(self, force=False):
        pass

    def flush_blocking(self):
        self.flushed = True
        return True

    def close(self):
        pass

    def types(self):
        return [event_type for event_type, _ in self.events]

    def of_type(self, event_type):
        return [payload for kind, payload in self.events if kind == event_type]


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def make_machine(recorder):
    def _make(draws=(), start_ms=0, chat=None, budget=BudgetConfig(), engagement=EngagementConfig()):
        machine = ExperimentStateMachine(
            session_config=SessionConfig(),
            budget_config=budget,
            engagement_config=engagement,
            recorder=recorder,
            chat=chat,
            rng=ScriptedRandom(draws),
        )
        machine.enter_landing(ALLOW_NEW)
        machine.open_practice_choice()
        machine.choose_practice(False, start_ms)
        return machine

    return _make


@pytest.fixture
def scripted():
    return ScriptedRandom
