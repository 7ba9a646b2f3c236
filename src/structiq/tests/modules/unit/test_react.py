"""Tests for the ReAct loop, the finish tool and the extraction step."""

import asyncio
import json

import pytest

from structiq.errors import ExecutionCancelled, ExtractionFailure, MissingRequiredField
from structiq.adapters import MarkerAdapter
from structiq.llms import MockLLM
from structiq.memory import History
from structiq.modules import ReAct, ReActConfig, ReActState
from structiq.modules.prompts import (
    CORRECTIVE_PROMPT,
    REACT_SYSTEM_PROMPT,
    STAGNATION_PROMPT,
    build_finish_tool,
    describe_output_fields,
)
from structiq.tools import BaseTool

QUESTION = {"question": "What is the capital of France?"}
ANSWER = "[[ ## answer ## ]]\nParis"
SENTIMENT_ANSWER = "[[ ## sentiment ## ]]\npositive\n\n[[ ## confidence ## ]]\n0.9"


def _contents(messages):
    return [m.content for m in messages]


class TestFinishTool:

    @pytest.mark.asyncio
    async def test_finish_ends_the_loop(self, qa_signature, search_tool, mock_llm_factory):
        llm = mock_llm_factory(MockLLM.tool_call("finish", {"answer": "Paris"}))
        react = ReAct(qa_signature, llm, tools=[search_tool])
        pred = await react.forward(QUESTION)

        assert pred.outputs == {"answer": "Paris"}
        assert pred.adapter_used == "finish"
        assert llm.call_count == 1
        assert react.state == ReActState.COMPLETED

    @pytest.mark.asyncio
    async def test_finish_name_is_case_insensitive(self, qa_signature, mock_llm_factory):
        llm = mock_llm_factory(MockLLM.tool_call("Finish", {"answer": "Paris"}))
        pred = await ReAct(qa_signature, llm).forward(QUESTION)
        assert pred["answer"] == "Paris"

    @pytest.mark.asyncio
    async def test_finish_arguments_normalized(self, sentiment_signature, mock_llm_factory):
        llm = mock_llm_factory(
            MockLLM.tool_call("finish", {"Sentiment": "pos", "confidence": "0.75"})
        )
        pred = await ReAct(sentiment_signature, llm).forward({"review": "Loved it"})
        assert pred.outputs == {"sentiment": "positive", "confidence": 0.75}

    @pytest.mark.asyncio
    async def test_invalid_finish_becomes_observation(self, sentiment_signature, mock_llm_factory):
        llm = mock_llm_factory(
            MockLLM.tool_call("finish", {"sentiment": "angry", "confidence": 0.5}, call_id="f1"),
            MockLLM.tool_call("finish", {"sentiment": "negative", "confidence": 0.5}, call_id="f2"),
        )
        react = ReAct(sentiment_signature, llm)
        pred = await react.forward({"review": "Awful"})

        assert pred.outputs == {"sentiment": "negative", "confidence": 0.5}
        observation = react.trajectory[0].observations[0]
        assert observation.startswith("Error: finish tool arguments don't match required outputs")
        tool_message = llm.calls[1][0][-1]
        assert tool_message.role == "tool"
        assert tool_message.tool_call_id == "f1"

    def test_finish_spec_mirrors_outputs(self, mixed_signature):
        spec = build_finish_tool(mixed_signature).get_spec()
        props = spec["parameters"]["properties"]
        assert props["year"]["type"] == "number"
        assert props["published"]["type"] == "boolean"
        assert props["meta"]["type"] == "string"
        assert "(one of: fiction, non-fiction)" in props["genre"]["description"]
        assert "notes" not in spec["parameters"]["required"]
        assert "title" in spec["parameters"]["required"]


class TestToolLoop:

    @pytest.mark.asyncio
    async def test_tool_then_marker_answer(self, qa_signature, search_tool, mock_llm_factory):
        llm = mock_llm_factory(
            MockLLM.tool_call("search", {"query": "capital of France"}, content="Let me search."),
            ANSWER,
        )
        react = ReAct(qa_signature, llm, tools=[search_tool])
        pred = await react.forward(QUESTION)

        assert pred.outputs == {"answer": "Paris"}
        assert pred.adapter_used == "marker"
        assert len(pred.trajectory) == 2
        first = pred.trajectory[0]
        assert first.thought == "Let me search."
        assert first.tool_calls[0].name == "search"
        assert first.observations == [
            "Results for capital of France: the capital of France is Paris."
        ]

        second_call = llm.calls[1][0]
        assert [m.role for m in second_call[-2:]] == ["assistant", "tool"]
        assert second_call[-2].tool_calls[0].name == "search"

    @pytest.mark.asyncio
    async def test_tools_and_finish_offered(self, qa_signature, search_tool, mock_llm_factory):
        llm = mock_llm_factory(ANSWER)
        await ReAct(qa_signature, llm, tools=[search_tool]).forward(QUESTION)
        messages, options = llm.calls[0]
        assert messages[0].role == "system"
        assert messages[0].content == REACT_SYSTEM_PROMPT
        assert [t["name"] for t in options.tools] == ["search", "finish"]
        assert options.tool_choice == "auto"

    @pytest.mark.asyncio
    async def test_no_system_prompt_without_tools(self, qa_signature, mock_llm_factory):
        llm = mock_llm_factory(ANSWER)
        await ReAct(qa_signature, llm).forward(QUESTION)
        assert llm.calls[0][0][0].role == "user"

    @pytest.mark.asyncio
    async def test_tools_withheld_from_model_without_tool_support(
        self, qa_signature, search_tool, mock_llm_factory
    ):
        llm = mock_llm_factory(ANSWER, supports_tools=False)
        await ReAct(qa_signature, llm, tools=[search_tool]).forward(QUESTION)
        assert llm.calls[0][1].tools is None

    @pytest.mark.asyncio
    async def test_failing_tool_is_an_observation(self, qa_signature, mock_llm_factory):
        def lookup(query: str) -> str:
            raise RuntimeError("backend down")

        llm = mock_llm_factory(MockLLM.tool_call("lookup", {"query": "x"}), ANSWER)
        react = ReAct(qa_signature, llm, tools=[BaseTool.from_function(lookup)])
        pred = await react.forward(QUESTION)
        assert pred["answer"] == "Paris"
        assert react.trajectory[0].observations == ["Error executing tool: backend down"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, qa_signature, search_tool, mock_llm_factory):
        llm = mock_llm_factory(MockLLM.tool_call("weather", {"city": "Paris"}), ANSWER)
        react = ReAct(qa_signature, llm, tools=[search_tool])
        await react.forward(QUESTION)
        assert react.trajectory[0].observations == ["Error: Tool 'weather' not found"]

    @pytest.mark.asyncio
    async def test_invalid_tool_arguments(self, qa_signature, search_tool, mock_llm_factory):
        llm = mock_llm_factory(MockLLM.tool_call("search", {}), ANSWER)
        react = ReAct(qa_signature, llm, tools=[search_tool])
        await react.forward(QUESTION)
        assert react.trajectory[0].observations == [
            "Error executing tool: missing required parameter: query"
        ]

    @pytest.mark.asyncio
    async def test_structured_tool_result_serialized(self, qa_signature, mock_llm_factory):
        def weather(city: str) -> dict:
            return {"city": city, "temp": 21}

        llm = mock_llm_factory(MockLLM.tool_call("weather", {"city": "Paris"}), ANSWER)
        react = ReAct(qa_signature, llm, tools=[BaseTool.from_function(weather)])
        await react.forward(QUESTION)
        assert json.loads(react.trajectory[0].observations[0]) == {"city": "Paris", "temp": 21}

    @pytest.mark.asyncio
    async def test_missing_input(self, qa_signature, mock_llm_factory):
        llm = mock_llm_factory()
        with pytest.raises(MissingRequiredField):
            await ReAct(qa_signature, llm).forward({})
        assert llm.call_count == 0


class TestFinalMode:

    @pytest.mark.asyncio
    async def test_stagnation_forces_final_answer(self, qa_signature, search_tool, mock_llm_factory):
        llm = mock_llm_factory(
            MockLLM.tool_call("search", {"query": "France"}),
            MockLLM.tool_call("search", {"query": "France"}),
            ANSWER,
        )
        react = ReAct(qa_signature, llm, tools=[search_tool], config=ReActConfig(max_iterations=5))
        pred = await react.forward(QUESTION)

        assert pred["answer"] == "Paris"
        assert llm.call_count == 3
        messages, options = llm.calls[2]
        assert options.tools is None
        assert options.tool_choice == "none"
        assert STAGNATION_PROMPT in _contents(messages)
        assert "provide your final answer now" in messages[-1].content

    @pytest.mark.asyncio
    async def test_different_observations_do_not_stagnate(
        self, qa_signature, search_tool, mock_llm_factory
    ):
        llm = mock_llm_factory(
            MockLLM.tool_call("search", {"query": "France"}),
            MockLLM.tool_call("search", {"query": "Paris"}),
            ANSWER,
        )
        react = ReAct(qa_signature, llm, tools=[search_tool], config=ReActConfig(max_iterations=5))
        await react.forward(QUESTION)
        assert llm.calls[2][1].tools is not None
        assert STAGNATION_PROMPT not in _contents(llm.calls[2][0])

    @pytest.mark.asyncio
    async def test_last_iteration_requests_json(self, qa_signature, mock_llm_factory):
        llm = mock_llm_factory('{"answer": "Paris"}', supports_json=True)
        pred = await ReAct(qa_signature, llm, config=ReActConfig(max_iterations=1)).forward(QUESTION)
        options = llm.calls[0][1]
        assert options.response_format == "json"
        assert options.response_schema["required"] == ["answer"]
        assert pred["answer"] == "Paris"

    @pytest.mark.asyncio
    async def test_corrective_prompt_after_unparseable_reply(
        self, sentiment_signature, mock_llm_factory
    ):
        replies = ["I think it's fine", SENTIMENT_ANSWER]
        llm = mock_llm_factory(*replies)
        react = ReAct(sentiment_signature, llm, config=ReActConfig(max_iterations=5))
        pred = await react.forward({"review": "Nice"})

        assert pred.outputs == {"sentiment": "positive", "confidence": 0.9}
        messages = llm.calls[1][0]
        assert messages[-1].content == CORRECTIVE_PROMPT
        assert messages[-2].role == "assistant"
        assert messages[-2].content == "I think it's fine"
        expected = sum(MockLLM.reply(r).usage.total_tokens for r in replies)
        assert pred.usage.total_tokens == expected

    @pytest.mark.asyncio
    async def test_corrective_turn_before_last_iteration(
        self, sentiment_signature, mock_llm_factory
    ):
        llm = mock_llm_factory("I think so", SENTIMENT_ANSWER)
        react = ReAct(sentiment_signature, llm, config=ReActConfig(max_iterations=2))
        pred = await react.forward({"review": "Nice"})

        assert llm.call_count == 2
        assert pred.outputs == {"sentiment": "positive", "confidence": 0.9}
        assert pred.diagnostics is None
        messages, options = llm.calls[1]
        assert messages[-2].content == CORRECTIVE_PROMPT
        assert "provide your final answer now" in messages[-1].content
        assert options.tools is None

    @pytest.mark.asyncio
    async def test_non_fallback_adapter_still_parses_json_answer(
        self, qa_signature, mock_llm_factory
    ):
        llm = mock_llm_factory('{"answer": "Paris"}')
        react = ReAct(qa_signature, llm, adapter=MarkerAdapter())
        pred = await react.forward(QUESTION)

        assert llm.call_count == 1
        assert pred["answer"] == "Paris"
        assert pred.adapter_used == "json"
        assert pred.fallback_used


class TestExtraction:

    @pytest.mark.asyncio
    async def test_max_iterations_runs_extraction_once(
        self, qa_signature, search_tool, mock_llm_factory
    ):
        llm = mock_llm_factory(
            MockLLM.tool_call("search", {"query": "a"}),
            MockLLM.tool_call("search", {"query": "b"}),
            MockLLM.tool_call("search", {"query": "c"}),
            ANSWER,
        )
        react = ReAct(qa_signature, llm, tools=[search_tool], config=ReActConfig(max_iterations=3))
        pred = await react.forward(QUESTION)

        assert llm.call_count == 4
        assert pred["answer"] == "Paris"
        assert pred.diagnostics is not None
        assert not pred.diagnostics.has_errors
        assert llm.calls[2][1].tools is None
        messages, options = llm.calls[3]
        assert options.tools is None
        assert options.tool_choice == "none"
        assert messages[-1].content.startswith("Based on the conversation above")
        assert describe_output_fields(qa_signature) in messages[-1].content

    @pytest.mark.asyncio
    async def test_invalid_answer_goes_to_extraction(self, sentiment_signature, mock_llm_factory):
        llm = mock_llm_factory(
            "[[ ## sentiment ## ]]\nangry\n\n[[ ## confidence ## ]]\n0.5",
            '{"sentiment": "neg", "confidence": 0.5}',
            supports_json=True,
        )
        react = ReAct(sentiment_signature, llm, config=ReActConfig(max_iterations=5))
        pred = await react.forward({"review": "Awful"})

        assert llm.call_count == 2
        assert pred.outputs == {"sentiment": "negative", "confidence": 0.5}
        assert pred.adapter_used == "json"
        assert llm.calls[1][1].response_format == "json"

    @pytest.mark.asyncio
    async def test_partial_extraction_reports_missing_fields(
        self, sentiment_signature, mock_llm_factory
    ):
        llm = mock_llm_factory("hmm", '{"sentiment": "positive"}')
        react = ReAct(sentiment_signature, llm, config=ReActConfig(max_iterations=1))
        pred = await react.forward({"review": "Nice"})

        assert pred.outputs == {"sentiment": "positive", "confidence": None}
        assert pred.diagnostics.missing_fields == ["confidence"]

    @pytest.mark.asyncio
    async def test_empty_extraction_uses_observations(
        self, qa_signature, search_tool, mock_llm_factory
    ):
        llm = mock_llm_factory(
            MockLLM.tool_call("search", {"query": "capital"}),
            "",
            "",
        )
        react = ReAct(qa_signature, llm, tools=[search_tool], config=ReActConfig(max_iterations=2))
        pred = await react.forward(QUESTION)

        assert llm.call_count == 3
        assert pred["answer"] == "Results for capital: the capital of France is Paris."

    @pytest.mark.asyncio
    async def test_short_extraction_reply_uses_observations(
        self, qa_signature, search_tool, mock_llm_factory
    ):
        llm = mock_llm_factory(MockLLM.tool_call("search", {"query": "capital"}), "...")
        react = ReAct(qa_signature, llm, tools=[search_tool], config=ReActConfig(max_iterations=1))
        pred = await react.forward(QUESTION)

        assert llm.call_count == 2
        assert pred["answer"] == "Results for capital: the capital of France is Paris."
        assert pred.adapter_used == "observations"

    @pytest.mark.asyncio
    async def test_wrongly_typed_extraction_fails(self, sentiment_signature, mock_llm_factory):
        history = History()
        reply = '{"sentiment": "positive", "confidence": "not sure"}'
        llm = mock_llm_factory("hmm", reply)
        react = ReAct(
            sentiment_signature, llm, history=history, config=ReActConfig(max_iterations=1)
        )
        with pytest.raises(ExtractionFailure) as exc_info:
            await react.forward({"review": "Nice"})

        assert "confidence" in exc_info.value.diagnostics.type_errors
        assert exc_info.value.raw_output == reply
        assert react.state == ReActState.ERROR
        assert len(history) == 0

    @pytest.mark.asyncio
    async def test_extraction_failure(self, sentiment_signature, mock_llm_factory):
        history = History()
        llm = mock_llm_factory("hmm", "nope")
        react = ReAct(
            sentiment_signature, llm, history=history, config=ReActConfig(max_iterations=1)
        )
        with pytest.raises(ExtractionFailure) as exc_info:
            await react.forward({"review": "?"})

        assert exc_info.value.raw_output == "nope"
        assert react.state == ReActState.ERROR
        assert len(history) == 0

    @pytest.mark.asyncio
    async def test_extraction_disabled(self, sentiment_signature, mock_llm_factory):
        llm = mock_llm_factory("hmm")
        config = ReActConfig(max_iterations=1, enable_extraction=False)
        with pytest.raises(ExtractionFailure):
            await ReAct(sentiment_signature, llm, config=config).forward({"review": "?"})
        assert llm.call_count == 1


class TestHistoryAndCancellation:

    @pytest.mark.asyncio
    async def test_history_records_final_answer_only(
        self, qa_signature, search_tool, mock_llm_factory
    ):
        history = History()
        llm = mock_llm_factory(
            MockLLM.tool_call("search", {"query": "France"}),
            MockLLM.tool_call("finish", {"answer": "Paris"}),
        )
        await ReAct(qa_signature, llm, tools=[search_tool], history=history).forward(QUESTION)

        messages = history.get_messages()
        assert [m.role for m in messages] == ["user", "assistant"]
        assert json.loads(messages[1].content) == {"answer": "Paris"}

    @pytest.mark.asyncio
    async def test_history_replayed_after_system_prompt(
        self, qa_signature, search_tool, mock_llm_factory
    ):
        history = History()
        history.add_user("earlier question")
        history.add_assistant("earlier answer")
        llm = mock_llm_factory(ANSWER)
        await ReAct(qa_signature, llm, tools=[search_tool], history=history).forward(QUESTION)
        roles = [m.role for m in llm.calls[0][0]]
        assert roles == ["system", "user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, qa_signature, mock_llm_factory):
        event = asyncio.Event()
        event.set()
        llm = mock_llm_factory(ANSWER)
        with pytest.raises(ExecutionCancelled):
            await ReAct(qa_signature, llm).forward(QUESTION, cancel_event=event)
        assert llm.call_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_between_iterations(self, qa_signature, mock_llm_factory):
        event = asyncio.Event()

        def stop(reason: str) -> str:
            event.set()
            return "stopping"

        history = History()
        llm = mock_llm_factory(MockLLM.tool_call("stop", {"reason": "user"}), ANSWER)
        react = ReAct(qa_signature, llm, tools=[BaseTool.from_function(stop)], history=history)
        with pytest.raises(ExecutionCancelled) as exc_info:
            await react.forward(QUESTION, cancel_event=event)

        assert exc_info.value.iteration == 2
        assert llm.call_count == 1
        assert len(history) == 0
