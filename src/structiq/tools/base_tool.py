# File: src/structiq/tools/base_tool.py
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, get_origin

from pydantic import BaseModel, Field

from structiq.errors import ToolError

_TYPE_SYNONYMS = {
    "string": "string",
    "str": "string",
    "int": "integer",
    "integer": "integer",
    "float": "number",
    "number": "number",
    "double": "number",
    "bool": "boolean",
    "boolean": "boolean",
    "json": "object",
    "object": "object",
    "dict": "object",
    "array": "array",
    "list": "array",
}


def _parse_annotation(annotation: Any) -> str:
    """JSON Schema type for a parameter annotation; unknown annotations are strings."""
    origin = get_origin(annotation) or annotation
    mapping = {
        int: "integer",
        float: "number",
        bool: "boolean",
        str: "string",
        dict: "object",
        list: "array",
    }
    return mapping.get(origin, "string")


def _matches_type(json_type: str, value: Any) -> bool:
    if json_type == "string":
        return isinstance(value, str)
    if json_type == "integer":
        return (isinstance(value, int) and not isinstance(value, bool)) or (
            isinstance(value, float) and value.is_integer()
        )
    if json_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if json_type == "boolean":
        return isinstance(value, bool)
    if json_type == "object":
        return isinstance(value, (dict, list))
    if json_type == "array":
        return isinstance(value, (list, tuple))
    return True


class ToolParameter(BaseModel):
    """One named argument of a tool."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = True
    enum: List[str] = Field(default_factory=list)

    @property
    def json_type(self) -> str:
        return _TYPE_SYNONYMS.get(self.type.lower(), self.type)

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.json_type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


class BaseTool(ABC):
    """
    A named, described operation the ReAct loop can offer to a model.

    ``parameters`` drive both the spec sent to the model and the argument
    check run before ``execute``.
    """

    name: str
    description: str
    parameters: List[ToolParameter]

    def __init__(
        self,
        *,
        name: str,
        description: str,
        parameters: Optional[Sequence[ToolParameter]] = None,
    ):
        self.name = name
        self.description = description
        self.parameters = list(parameters or [])

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any:
        """Run the tool with already-validated keyword arguments."""

    def validate(self, args: Dict[str, Any]) -> None:
        """
        Check required parameters, value types and enum membership.

        Raises:
            ToolError: describing the first problem found.
        """
        for param in self.parameters:
            if param.required and param.name not in args:
                raise ToolError(f"missing required parameter: {param.name}", tool_name=self.name)

        for param in self.parameters:
            if param.name not in args:
                continue
            value = args[param.name]
            if not _matches_type(param.json_type, value):
                raise ToolError(
                    f"parameter {param.name} has invalid type: expected "
                    f"{param.json_type}, got {type(value).__name__}",
                    tool_name=self.name,
                )
            if param.enum and value not in param.enum:
                raise ToolError(
                    f"parameter {param.name} has invalid value: {value!r} "
                    f"(must be one of {param.enum})",
                    tool_name=self.name,
                )

    def get_spec(self) -> Dict[str, Any]:
        """Function-calling spec: name, description and a JSON Schema for the arguments."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {p.name: p.to_schema() for p in self.parameters},
                "required": [p.name for p in self.parameters if p.required],
            },
        }

    @classmethod
    def from_function(
        cls,
        fn: Callable[..., Any],
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        enums: Optional[Dict[str, List[str]]] = None,
    ) -> "FunctionTool":
        """
        Build a tool from a plain or async function.

        Parameter names, annotations and defaults become the tool's
        parameters; the docstring becomes its description.
        """
        params: List[ToolParameter] = []
        for pname, param in inspect.signature(fn).parameters.items():
            ann = param.annotation if param.annotation is not inspect.Parameter.empty else str
            params.append(
                ToolParameter(
                    name=pname,
                    type=_parse_annotation(ann),
                    required=param.default is inspect.Parameter.empty,
                    enum=list((enums or {}).get(pname, [])),
                )
            )
        return FunctionTool(
            fn,
            name=name or fn.__name__,
            description=description or (fn.__doc__ or "").strip(),
            parameters=params,
        )


class FunctionTool(BaseTool):
    """A tool backed by a plain (sync or async) callable."""

    def __init__(
        self,
        fn: Callable[..., Any],
        *,
        name: str,
        description: str = "",
        parameters: Optional[Sequence[ToolParameter]] = None,
    ):
        super().__init__(name=name, description=description, parameters=parameters)
        self.fn = fn

    def add_parameter(
        self, name: str, type: str = "string", description: str = "", required: bool = True
    ) -> "FunctionTool":
        self.parameters.append(
            ToolParameter(name=name, type=type, description=description, required=required)
        )
        return self

    def add_enum_parameter(
        self, name: str, enum: Sequence[str], description: str = "", required: bool = True
    ) -> "FunctionTool":
        self.parameters.append(
            ToolParameter(name=name, description=description, required=required, enum=list(enum))
        )
        return self

    async def execute(self, **kwargs: Any) -> Any:
        result = self.fn(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
