from structiq.tools.base_tool import BaseTool, FunctionTool, ToolParameter
from structiq.tools.executor import Executor

__all__ = ["BaseTool", "Executor", "FunctionTool", "ToolParameter"]
