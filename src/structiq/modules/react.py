# src/structiq/modules/react.py
"""
ReAct (Reasoning + Acting) module.

The loop alternates between:
- Thought: the model reasons about what to do next
- Action: the model calls a tool, or the synthetic ``finish`` tool
- Observation: the tool result is fed back as a ``tool`` message

It stops on a clean final answer or a valid ``finish`` call. Repeating
the same observation twice in a row, or reaching the last iteration,
switches to final mode (tools off, JSON answer requested). When the loop
still ends without a valid answer, one extraction call salvages what it
can; extraction never loops.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from structiq.adapters.base import REASONING_FIELD, BaseAdapter
from structiq.adapters.fallback import FallbackAdapter
from structiq.chat_models import ChatMessage, ToolCall, Usage
from structiq.errors import (
    ExecutionCancelled,
    ExtractionFailure,
    OutputValidationError,
    ParseError,
    ToolError,
)
from structiq.llms.base_llm import BaseLLM
from structiq.llms.generate_options import GenerateOptions
from structiq.memory.base import BaseMemory
from structiq.modules.base import BaseModule
from structiq.modules.config import ReActConfig, ReActState
from structiq.modules.example import Example
from structiq.modules.prediction import Prediction, ReActStep
from structiq.modules.prompts import (
    CORRECTIVE_PROMPT,
    FINISH_TOOL_NAME,
    REACT_SYSTEM_PROMPT,
    STAGNATION_PROMPT,
    build_finish_tool,
    extraction_prompt,
    final_answer_prompt,
)
from structiq.repair.coercion import coerce_outputs, normalize_output_keys
from structiq.signatures.field import FieldType
from structiq.signatures.signature import Signature
from structiq.tools.base_tool import BaseTool
from structiq.tools.executor import Executor

logger = logging.getLogger(__name__)

# Extraction replies shorter than this are replaced by recent observations.
_MIN_EXTRACTION_CONTENT = 10
_MIN_OBSERVATION_LENGTH = 20
_MAX_SYNTHESIZED_OBSERVATIONS = 3


class ReAct(BaseModule):
    """
    ReAct module: a tool-using loop that returns a structured Prediction.

    Example:
        ```python
        sig = (
            Signature("Answer the question using the tools.")
            .add_input("question")
            .add_output("answer")
        )
        react = ReAct(sig, llm, tools=[search], config=ReActConfig(max_iterations=5))
        pred = await react.forward({"question": "Who wrote Dune?"})
        ```
    """

    def __init__(
        self,
        signature: Signature,
        llm: BaseLLM,
        tools: Sequence[BaseTool] = (),
        *,
        adapter: Optional[BaseAdapter] = None,
        history: Optional[BaseMemory] = None,
        demos: Optional[Sequence[Example]] = None,
        config: Optional[ReActConfig] = None,
    ):
        super().__init__(signature, llm, adapter=adapter, history=history, demos=demos)
        self.config = config or ReActConfig()
        self.executor = Executor(tools, timeout=self.config.tool_timeout)
        self.finish_tool = build_finish_tool(signature)
        self.state = ReActState.REASONING
        self.trajectory: List[ReActStep] = []
        if self.config.verbose:
            logger.setLevel(logging.DEBUG)

    @property
    def tools(self) -> List[BaseTool]:
        return list(self.executor.tools.values())

    # ------------------------------------------------------------------ #
    # Loop                                                                #
    # ------------------------------------------------------------------ #

    async def forward(
        self,
        inputs: Mapping[str, Any],
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Prediction:
        """
        Run the loop until a final answer, a valid ``finish`` call or extraction.

        Raises:
            InputValidationError: a required input is missing
            FormatError: the adapter could not render the prompt
            GenerationError: a model call failed or timed out
            ExtractionFailure: extraction could not produce any output
            ExecutionCancelled: *cancel_event* was set
        """
        self.signature.validate_inputs(inputs)
        self.state = ReActState.REASONING
        self.trajectory = []

        new_messages = self.adapter.format(self.signature, inputs, self.demos)
        messages: List[ChatMessage] = []
        if self.executor.tools:
            messages.append(ChatMessage.system(REACT_SYSTEM_PROMPT))
        messages.extend(self._history_messages())
        messages.extend(new_messages)

        tool_specs = self.llm.convert_tool_specs(self.tools + [self.finish_tool])
        max_iterations = self.config.max_iterations
        usage = Usage()
        final_mode = False
        last_observation: Optional[str] = None
        answer_adapter = self._answer_adapter()

        for i in range(max_iterations):
            iteration = i + 1
            self._check_cancelled(cancel_event, iteration)
            logger.info("ReAct iteration %d/%d", iteration, max_iterations)

            if i == max_iterations - 1 and not final_mode:
                logger.warning("Final iteration, forcing final answer mode")
                final_mode = True

            options = self.config.options.copy()
            if final_mode:
                options.tools = None
                options.tool_choice = "none"
                messages.append(ChatMessage.user(final_answer_prompt(self.signature)))
                if self.llm.supports_json:
                    options.response_format = "json"
                    if options.response_schema is None:
                        options.response_schema = self.signature.to_json_schema()
            elif self.llm.supports_tools:
                options.tools = tool_specs
                options.tool_choice = "auto"
            if not options.tools:
                options = self._apply_json_mode(options)

            self.state = ReActState.REASONING
            result = await self._generate(
                messages, options, timeout=self.config.llm_call_timeout, iteration=iteration
            )
            usage = usage + result.usage
            step = ReActStep(iteration=iteration, thought=result.content, tool_calls=result.tool_calls)
            self.trajectory.append(step)
            logger.debug("Thought: %s", result.content)

            if not result.tool_calls:
                self.state = ReActState.FINAL_ANSWER
                try:
                    values, adapter_name, attempts, fallback_used = self._parse(
                        result.content, answer_adapter
                    )
                except ParseError as exc:
                    if not final_mode:
                        logger.warning("Could not parse reply (%s), requesting tool use", exc.message)
                        messages.append(ChatMessage.assistant(result.content))
                        messages.append(ChatMessage.user(CORRECTIVE_PROMPT))
                        continue
                    logger.warning("Final answer could not be parsed, running extraction")
                    return await self._run_extract(messages, new_messages, inputs, usage)

                try:
                    outputs = self.signature.validate_outputs(values)
                except OutputValidationError as exc:
                    logger.warning("Output validation failed (%s), running extraction", exc.message)
                    return await self._run_extract(messages, new_messages, inputs, usage)

                rationale = self._pop_rationale(outputs)
                self._record_turn(new_messages, result.content)
                self.state = ReActState.COMPLETED
                return Prediction(
                    outputs=outputs,
                    rationale=rationale,
                    usage=usage,
                    adapter_used=adapter_name,
                    parse_attempts=attempts,
                    fallback_used=fallback_used,
                    module_name=self.name,
                    inputs=dict(inputs),
                    trajectory=list(self.trajectory),
                )

            self.state = ReActState.TOOL_CALL
            messages.append(ChatMessage.assistant(result.content, tool_calls=result.tool_calls))

            current_observation: Optional[str] = None
            for call in result.tool_calls:
                self._check_cancelled(cancel_event, iteration)
                logger.debug("Action: %s(%s)", call.name, call.arguments)

                if call.name.lower() == FINISH_TOOL_NAME:
                    outputs, observation = self._handle_finish(call)
                    if outputs is not None:
                        self._record_turn(
                            new_messages, json.dumps(outputs, ensure_ascii=False, default=str)
                        )
                        self.state = ReActState.COMPLETED
                        return Prediction(
                            outputs=outputs,
                            usage=usage,
                            adapter_used=FINISH_TOOL_NAME,
                            module_name=self.name,
                            inputs=dict(inputs),
                            trajectory=list(self.trajectory),
                        )
                else:
                    observation = await self._observe(call)

                messages.append(ChatMessage.tool(observation, call.id))
                step.observations.append(observation)
                logger.debug("Observation: %s", observation)
                current_observation = observation

            if current_observation is not None and current_observation == last_observation:
                logger.warning("Same observation twice in a row, forcing final answer mode")
                final_mode = True
                messages.append(ChatMessage.user(STAGNATION_PROMPT))
            last_observation = current_observation

        logger.warning("Exceeded maximum iterations (%d), running extraction", max_iterations)
        return await self._run_extract(messages, new_messages, inputs, usage)

    # ------------------------------------------------------------------ #
    # Actions                                                             #
    # ------------------------------------------------------------------ #

    def _handle_finish(self, call: ToolCall):
        """Validate ``finish`` arguments. Returns ``(outputs, None)`` or ``(None, observation)``."""
        values = coerce_outputs(
            self.signature, normalize_output_keys(self.signature, call.arguments)
        )
        try:
            return self.signature.validate_outputs(values), None
        except OutputValidationError as exc:
            return None, f"Error: finish tool arguments don't match required outputs: {exc.message}"

    async def _observe(self, call: ToolCall) -> str:
        """Execute one tool call; every failure becomes an ``Error:`` observation."""
        if self.executor.get(call.name) is None:
            return f"Error: Tool '{call.name}' not found"
        try:
            result = await self.executor.execute(call)
        except ToolError as exc:
            return f"Error executing tool: {exc.message}"
        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False, default=str)

    def _answer_adapter(self) -> FallbackAdapter:
        """Final answers always go through the whole fallback chain."""
        if isinstance(self.adapter, FallbackAdapter):
            return self.adapter
        return FallbackAdapter(include_reasoning=self.adapter.include_reasoning)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event], iteration: int) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ExecutionCancelled("ReAct execution cancelled", iteration=iteration)

    # ------------------------------------------------------------------ #
    # Extraction                                                          #
    # ------------------------------------------------------------------ #

    async def _run_extract(
        self,
        messages: List[ChatMessage],
        new_messages: List[ChatMessage],
        inputs: Mapping[str, Any],
        usage: Usage,
    ) -> Prediction:
        """One tool-free call asking the model to synthesize an answer from the transcript."""
        if not self.config.enable_extraction:
            raise ExtractionFailure("loop ended without a valid answer and extraction is disabled")

        self.state = ReActState.EXTRACTION
        extract_messages = list(messages)
        extract_messages.append(ChatMessage.user(extraction_prompt(self.signature)))

        options: GenerateOptions = self.config.options.copy(
            update={"tools": None, "tool_choice": "none"}
        )
        if self.llm.supports_json:
            options.response_format = "json"
            if options.response_schema is None:
                options.response_schema = self.signature.to_json_schema()

        result = await self._generate(
            extract_messages, options, timeout=self.config.llm_call_timeout
        )
        usage = usage + result.usage
        content = result.content
        logger.debug("Extraction response: %s", content)

        adapter_name, attempts, fallback_used = "", 0, False
        parse_error: Optional[ParseError] = None
        if len(content.strip()) < _MIN_EXTRACTION_CONTENT:
            logger.warning("Extraction reply too short, synthesizing from observations")
            values = self._extract_text_outputs(
                self._synthesize_answer_from_history(extract_messages)
            )
            adapter_name = "observations"
        else:
            try:
                values, adapter_name, attempts, fallback_used = self._parse(
                    content, FallbackAdapter(include_reasoning=True)
                )
            except ParseError as exc:
                parse_error = exc
                values = self._loads_object(content) or self._extract_text_outputs(content)

        if not values:
            self.state = ReActState.ERROR
            if parse_error is not None:
                raise ExtractionFailure(
                    f"extraction failed to parse output: {parse_error.message}",
                    cause=parse_error,
                    raw_output=content,
                ) from parse_error
            raise ExtractionFailure(
                "extraction reply was empty and no tool observation could replace it",
                raw_output=content,
            )

        rationale = self._pop_rationale(values)
        values = coerce_outputs(self.signature, normalize_output_keys(self.signature, values))
        diagnostics = self.signature.validate_outputs_partial(values)
        if diagnostics.type_errors:
            self.state = ReActState.ERROR
            problems = "; ".join(f"{k}: {v}" for k, v in diagnostics.type_errors.items())
            raise ExtractionFailure(
                f"extraction produced values of the wrong type: {problems}",
                raw_output=content,
                diagnostics=diagnostics,
            )
        if diagnostics.has_errors:
            logger.warning("Extraction diagnostics: %s", "; ".join(diagnostics.problems()))

        self._record_turn(new_messages, content)
        self.state = ReActState.COMPLETED
        return Prediction(
            outputs=diagnostics.values,
            rationale=rationale,
            usage=usage,
            adapter_used=adapter_name,
            parse_attempts=attempts,
            fallback_used=fallback_used,
            diagnostics=diagnostics,
            module_name=self.name,
            inputs=dict(inputs),
            trajectory=list(self.trajectory),
        )

    @staticmethod
    def _loads_object(content: str) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(content)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    def _extract_text_outputs(self, content: str) -> Dict[str, Any]:
        """Put *content* into the primary string output field.

        The primary field is ``answer`` when declared, else the first string
        output.
        """
        content = content.strip()
        if not content:
            return {}

        string_fields = [f for f in self.signature.output_fields if f.type == FieldType.STRING]
        if not string_fields:
            return {}
        answer = self.signature.get_output_field("answer")
        primary = answer.name if answer is not None and answer.type == FieldType.STRING else string_fields[0].name
        return {primary: content}

    @staticmethod
    def _synthesize_answer_from_history(messages: List[ChatMessage]) -> str:
        """The last few distinct, non-error tool observations, oldest first."""
        observations = [
            m.content
            for m in messages
            if m.role == "tool" and m.content and not m.content.startswith("Error:")
        ]
        if not observations:
            return ""

        seen = set()
        recent: List[str] = []
        for obs in reversed(observations):
            if len(recent) >= _MAX_SYNTHESIZED_OBSERVATIONS:
                break
            if obs not in seen and len(obs) > _MIN_OBSERVATION_LENGTH:
                recent.insert(0, obs)
                seen.add(obs)
        if recent:
            return " ".join(recent)
        return observations[-1]

    def _pop_rationale(self, outputs: Dict[str, Any]) -> str:
        """Move ``rationale``/``reasoning`` out of *outputs* unless declared as outputs."""
        rationale = ""
        for key in ("rationale", REASONING_FIELD):
            if key not in outputs or self.signature.get_output_field(key) is not None:
                continue
            value = outputs.pop(key)
            if not rationale and value:
                rationale = str(value)
        return rationale
