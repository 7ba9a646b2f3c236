"""Tests for History and SlidingWindowHistory."""

import pytest

from structiq.chat_models import ChatMessage, ToolCall
from structiq.memory import History, SlidingWindowHistory


def _fill(history, n):
    for i in range(n):
        history.add_user(f"m{i}")
    return history


class TestHistory:

    def test_append_order(self):
        history = History()
        history.add_system("sys")
        history.add_user("hi")
        history.add_assistant("hello")
        assert [m.role for m in history.get_messages()] == ["system", "user", "assistant"]
        assert len(history) == 3

    def test_get_messages_returns_copy(self):
        history = _fill(History(), 2)
        history.get_messages().clear()
        assert len(history) == 2

    def test_max_size_drops_oldest(self):
        history = _fill(History(max_size=3), 5)
        assert [m.content for m in history.get_messages()] == ["m2", "m3", "m4"]

    def test_truncate(self):
        history = _fill(History(), 5)
        history.truncate(2)
        assert [m.content for m in history.get_messages()] == ["m3", "m4"]
        history.truncate(0)
        assert history.is_empty()

    def test_get_last(self):
        history = _fill(History(), 4)
        assert [m.content for m in history.get_last(2)] == ["m2", "m3"]
        assert history.get_last(0) == []
        assert len(history.get_last(10)) == 4

    def test_clone_is_independent(self):
        history = _fill(History(session_id="s1"), 2)
        copy = history.clone()
        copy.add_user("extra")
        assert len(history) == 2
        assert len(copy) == 3
        assert copy.session_id == "s1"

    def test_empty_history_is_falsy_but_not_none(self):
        history = History()
        assert not history
        assert history is not None

    def test_export_import_round_trip(self):
        history = History()
        history.add_user("question")
        history.add_message(
            ChatMessage.assistant("", tool_calls=[ToolCall(id="c1", name="search", arguments={"q": "x"})])
        )
        history.add_message(ChatMessage.tool("result", tool_call_id="c1"))

        restored = History()
        restored.add_user("stale")
        restored.import_state(history.export_state())
        messages = restored.get_messages()
        assert [m.role for m in messages] == ["user", "assistant", "tool"]
        assert messages[1].tool_calls[0].arguments == {"q": "x"}
        assert messages[2].tool_call_id == "c1"

    def test_invalid_max_size(self):
        with pytest.raises(ValueError):
            History(max_size=0)

    def test_strategy_name(self):
        assert History().strategy_name == "full_history"


class TestSlidingWindowHistory:

    def test_keeps_last_window(self):
        history = _fill(SlidingWindowHistory(window_size=2), 5)
        assert [m.content for m in history.get_messages()] == ["m3", "m4"]
        assert history.strategy_name == "sliding_window"

    def test_clear(self):
        history = _fill(SlidingWindowHistory(), 3)
        history.clear()
        assert history.is_empty()


class TestAsyncVariants:

    @pytest.mark.asyncio
    async def test_async_delegates_to_sync(self):
        history = History()
        await history.aadd_message(ChatMessage.user("a"))
        await history.aextend([ChatMessage.assistant("b"), ChatMessage.user("c")])
        messages = await history.aget_messages()
        assert [m.content for m in messages] == ["a", "b", "c"]
        await history.aclear()
        assert len(history) == 0
