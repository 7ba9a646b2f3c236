"""
Prompt text used by the ReAct loop, plus the synthetic ``finish`` tool.
"""

from __future__ import annotations

from structiq.signatures.field import FieldType
from structiq.signatures.signature import Signature
from structiq.tools.base_tool import FunctionTool

FINISH_TOOL_NAME = "finish"

REACT_SYSTEM_PROMPT = """You are a helpful AI assistant that uses tools to answer questions.

Follow these steps:
1. Use the available tools to gather the information you need
2. Once you have enough information, call the 'finish' tool with your complete answer
3. If you already have the answer, call 'finish' immediately

IMPORTANT:
- Use the native tool calling mechanism
- Do NOT write textual representations like 'Action: search(...)' or 'Thought:'
- When calling 'finish', provide ALL required fields in the tool arguments
- Do not include explanations or meta-commentary"""

CORRECTIVE_PROMPT = (
    "Please use the available tools to gather the information needed, then provide "
    "a complete answer in the requested format. Do not include any meta-commentary "
    "or explanations - just the answer."
)

STAGNATION_PROMPT = (
    "You've received the same observation twice. Please provide your final answer now "
    "as a JSON object with all required fields. Do not call any more tools."
)


def describe_output_fields(signature: Signature) -> str:
    """One ``- name (type) (optional) [one of: ...]: description`` line per output."""
    lines = []
    for field in signature.output_fields:
        optional = " (optional)" if field.optional else ""
        class_info = ""
        if field.type == FieldType.CLASS and field.classes:
            class_info = f" [one of: {', '.join(field.classes)}]"
        line = f"- {field.name} ({field.type.value}){optional}{class_info}"
        if field.description:
            line += f": {field.description}"
        lines.append(line)
    return "\n".join(lines)


def final_answer_prompt(signature: Signature) -> str:
    return (
        "Based on all the information gathered above, please provide your final answer now.\n\n"
        "Respond with a valid JSON object containing these fields:\n"
        f"{describe_output_fields(signature)}\n\n"
        "CRITICAL REQUIREMENTS:\n"
        "- Return ONLY a valid JSON object (no code fences, no explanations)\n"
        "- Include all required fields with appropriate values\n"
        "- Use the exact field names specified above\n"
        "- Provide a complete answer based on all observations you've gathered"
    )


def extraction_prompt(signature: Signature) -> str:
    return (
        "Based on the conversation above, including all tool observations and reasoning, "
        "please synthesize a final answer now.\n\n"
        "Respond with a JSON object containing:\n"
        f"{describe_output_fields(signature)}\n\n"
        "IMPORTANT:\n"
        "- Use all information from the tool observations above\n"
        "- Provide your best answer even if some information is missing\n"
        "- Return ONLY valid JSON with the required fields\n"
        "- Do not include any explanations or commentary"
    )


async def _finish_placeholder(**kwargs):
    # Intercepted by the loop; never dispatched.
    return "Final answer provided"


def build_finish_tool(signature: Signature) -> FunctionTool:
    """Synthetic tool whose arguments are the signature's output fields.

    Calling it ends the loop with those arguments as the answer.
    """
    tool = FunctionTool(
        _finish_placeholder,
        name=FINISH_TOOL_NAME,
        description=(
            "Call this tool when you have gathered enough information and are ready to "
            "provide the final answer. Use the tool arguments to provide your complete answer."
        ),
    )
    for field in signature.output_fields:
        description = field.description or f"The {field.name} field of the final answer"
        if field.type in (FieldType.INT, FieldType.FLOAT):
            param_type = "number"
        elif field.type == FieldType.BOOL:
            param_type = "boolean"
        else:
            param_type = "string"
        if field.type == FieldType.CLASS and field.classes:
            description = f"{description} (one of: {', '.join(field.classes)})"
        tool.add_parameter(field.name, param_type, description, required=not field.optional)
    return tool
