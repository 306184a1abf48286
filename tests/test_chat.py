from concurrent.futures import Future

from game.chat import GENERIC_ERROR_TEXT, ChatAssistant
from game.errors import ReplyServiceFailure


class ImmediateExecutor:
    def submit(self, fn, *args):
        future = Future()
        try:
            future.set_result(fn(*args))
        except ReplyServiceFailure as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True):
        pass


class FakeClient:
    def __init__(self, reply=None, fail=False):
        self.reply = reply
        self.fail = fail
        self.requests = []

    def request_reply(self, message, history):
        self.requests.append((message, [turn.content for turn in history]))
        if self.fail:
            raise ReplyServiceFailure("connection_error")
        return self.reply


class TestChatFlow:
    def test_reply_appended_to_history(self, make_machine, recorder):
        client = FakeClient(reply="partial\ncounting\nLook for 'the'.")
        chat = ChatAssistant(client, executor=ImmediateExecutor())
        machine = make_machine(chat=chat)

        assert machine.send_chat("  how many?  ") is not None
        assert client.requests == [("how many?", [])]
        machine.update(10)
        history = machine.state.chat_history
        assert [(turn.role, turn.content) for turn in history] == [
            ("user", "how many?"),
            ("assistant", "Look for 'the'."),
        ]
        assert recorder.of_type("ai_reply") == [{"level_tag": "partial", "type_tag": "counting"}]
        assert chat.transcript[-1] == ("AI", "Look for 'the'.")

    def test_failure_keeps_prompt_counted(self, make_machine, recorder):
        chat = ChatAssistant(FakeClient(fail=True), executor=ImmediateExecutor())
        machine = make_machine(chat=chat)
        machine.send_chat("help")
        machine.update(10)
        assert machine.state.num_prompts_used == 1
        assert len(machine.state.chat_history) == 1
        assert chat.transcript[-1] == ("AI", GENERIC_ERROR_TEXT)
        assert len(recorder.of_type("ai_reply_failed")) == 1

    def test_blank_prompt_ignored(self, make_machine):
        chat = ChatAssistant(FakeClient(reply="x"), executor=ImmediateExecutor())
        machine = make_machine(chat=chat)
        assert machine.send_chat("   ") is None
        assert machine.state.num_prompts_used == 0
