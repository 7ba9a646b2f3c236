"""Tests for MockLLM and the BaseLLM defaults."""

import pytest

from structiq.chat_models import ChatMessage
from structiq.llms import BaseLLM, GenerateOptions, GenerateResult, MockLLM
from structiq.streaming import StreamEventType
from structiq.tools import FunctionTool


class _OneShotLLM(BaseLLM):
    async def generate(self, messages, options=None):
        return GenerateResult(content="whole reply")


class TestScriptedResponses:

    @pytest.mark.asyncio
    async def test_string_reply(self):
        llm = MockLLM(["hello there"])
        result = await llm.generate([ChatMessage.user("hi")])
        assert result.content == "hello there"
        assert result.finish_reason == "stop"
        assert result.usage.completion_tokens == 2

    @pytest.mark.asyncio
    async def test_generate_result_and_tool_call(self):
        llm = MockLLM([MockLLM.tool_call("search", {"query": "x"}, call_id="c1")])
        result = await llm.generate([ChatMessage.user("hi")])
        assert result.finish_reason == "tool_calls"
        assert result.tool_calls[0].id == "c1"
        assert result.tool_calls[0].arguments == {"query": "x"}

    @pytest.mark.asyncio
    async def test_exception_raised(self):
        llm = MockLLM([RuntimeError("rate limited")])
        with pytest.raises(RuntimeError, match="rate limited"):
            await llm.generate([ChatMessage.user("hi")])
        assert llm.call_count == 1

    @pytest.mark.asyncio
    async def test_callable_sees_messages_and_options(self):
        def respond(messages, options):
            return MockLLM.reply(f"{len(messages)}:{options.response_format}")

        llm = MockLLM([respond])
        result = await llm.generate(
            [ChatMessage.system("s"), ChatMessage.user("u")],
            GenerateOptions(response_format="json"),
        )
        assert result.content == "2:json"

    @pytest.mark.asyncio
    async def test_echo_when_exhausted(self):
        llm = MockLLM()
        result = await llm.generate([ChatMessage.user("first"), ChatMessage.user("Capital?")])
        assert result.content == "Echo: Capital?"


class TestCallRecording:

    @pytest.mark.asyncio
    async def test_options_recorded_as_copy(self):
        llm = MockLLM(["a"])
        options = GenerateOptions(temperature=0.0)
        await llm.generate([ChatMessage.user("hi")], options)
        options.temperature = 1.0
        recorded_messages, recorded_options = llm.calls[0]
        assert recorded_options.temperature == 0.0
        assert recorded_messages[0].content == "hi"

    @pytest.mark.asyncio
    async def test_default_options_when_none(self):
        llm = MockLLM(["a"])
        await llm.generate([ChatMessage.user("hi")])
        assert llm.calls[0][1] == GenerateOptions()


class TestStreaming:

    @pytest.mark.asyncio
    async def test_chunks_then_complete(self):
        llm = MockLLM(["abcdefg"], stream_chunk_size=3)
        events = [e async for e in llm.stream([ChatMessage.user("hi")])]
        tokens = [e.token for e in events if e.type == StreamEventType.TOKEN]
        assert tokens == ["abc", "def", "g"]
        assert events[-1].type == StreamEventType.COMPLETE
        assert events[-1].content == "abcdefg"

    @pytest.mark.asyncio
    async def test_base_stream_falls_back_to_generate(self):
        events = [e async for e in _OneShotLLM().stream([ChatMessage.user("hi")])]
        assert [e.type for e in events] == [StreamEventType.TOKEN, StreamEventType.COMPLETE]
        assert events[0].token == "whole reply"


class TestToolSpecs:

    def test_convert_tool_specs(self):
        def lookup(key: str) -> str:
            """Look up a key."""
            return key

        tool = FunctionTool.from_function(lookup)
        specs = MockLLM().convert_tool_specs([tool, {"name": "raw"}])
        assert specs[0]["name"] == "lookup"
        assert specs[1] == {"name": "raw"}


class TestGenerateOptions:

    def test_copy_with_update(self):
        options = GenerateOptions()
        json_options = options.copy(update={"response_format": "json"})
        assert json_options.response_format == "json"
        assert options.response_format == "text"

    def test_unknown_option_rejected(self):
        with pytest.raises(ValueError):
            GenerateOptions(temprature=0.1)

    def test_to_call_kwargs_drops_none(self):
        kwargs = GenerateOptions().to_call_kwargs()
        assert "stop" not in kwargs
        assert kwargs["max_tokens"] == 2048
