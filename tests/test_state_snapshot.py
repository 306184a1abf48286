from data.models import ROLE_ASSISTANT, ROLE_USER, ChatTurn
from game.runtime.models import FAMILY_COUNT, FAMILY_MATCH, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_LOCKED, TaskId, TaskOutcome
from game.state import PHASE_MAIN_GAME, GameState, restore_state, to_snapshot

C1 = TaskId(FAMILY_COUNT, 1)
C2 = TaskId(FAMILY_COUNT, 2)
C3 = TaskId(FAMILY_COUNT, 3)
M1 = TaskId(FAMILY_MATCH, 1)


def played_state():
    state = GameState(session_id="abc", phase=PHASE_MAIN_GAME, current_task=C2)
    state.completed = {C1, M1}
    state.completion_order = [C1, M1]
    state.switch_count = 3
    state.task_elapsed_ms = {C1: 4000, M1: 2500}
    state.num_prompts_used = 2
    state.bonus_prompts = 2
    state.chat_history = [ChatTurn(role=ROLE_USER, content="q"), ChatTurn(role=ROLE_ASSISTANT, content="a")]
    state.task_outcomes = {C1: TaskOutcome(correct=True, accuracy_percent=100.0)}
    return state


class TestGameState:
    def test_statuses(self):
        state = played_state()
        assert state.status_of(C1) == STATUS_COMPLETED
        assert state.status_of(C2) == STATUS_ACTIVE
        assert state.status_of(C3) == STATUS_LOCKED
        assert state.progress == 2 / 9


class TestSnapshots:
    def test_snapshot_uses_task_keys(self):
        snapshot = to_snapshot(played_state(), "in_progress", 12000)
        assert snapshot["completed"] == ["g1t1", "g2t1"]
        assert snapshot["current_task"] == "g1t2"
        assert snapshot["elapsed_ms"] == 12000
        assert snapshot["task_elapsed_ms"] == {"g1t1": 4000, "g2t1": 2500}

    def test_restore_rebuilds_progress(self):
        restored = restore_state(to_snapshot(played_state(), "in_progress", 12000))
        assert restored.phase == PHASE_MAIN_GAME
        assert restored.completion_order == [C1, M1]
        assert restored.current_task == C2
        assert restored.bonus_prompts == 2
        assert [turn.content for turn in restored.chat_history] == ["q", "a"]
        assert restored.task_outcomes[C1].correct
        assert not restored.is_paused
