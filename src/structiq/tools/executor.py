"""
Executor - runs tool calls requested by the model.

The Executor is responsible for:
- Tool lookup
- Argument validation
- Tool execution (with an optional timeout)

Every failure is raised as ``ToolError`` so the agent loop can turn it
into an observation instead of aborting.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from structiq.chat_models import ToolCall
from structiq.errors import ToolError
from structiq.tools.base_tool import BaseTool

logger = logging.getLogger(__name__)


class Executor:
    """
    Tool registry plus dispatch.

    Names are matched exactly; the first tool registered under a name wins.
    """

    def __init__(self, tools: Sequence[BaseTool] = (), *, timeout: Optional[float] = None):
        """
        Args:
            tools: Available tools
            timeout: Seconds a single execution may take, or ``None``
        """
        self.tools: Dict[str, BaseTool] = {}
        for tool in tools:
            self.tools.setdefault(tool.name, tool)
        self.timeout = timeout
        logger.debug("Executor initialized with %d tools: %s", len(self.tools), list(self.tools))

    def get(self, name: str) -> Optional[BaseTool]:
        return self.tools.get(name)

    async def execute(self, call: ToolCall) -> Any:
        """
        Execute a single tool call.

        Raises:
            ToolError: If the tool is unknown, the arguments are invalid,
                the call times out or the tool raises.
        """
        tool = self.tools.get(call.name)
        if tool is None:
            raise ToolError(f"Tool '{call.name}' not found", tool_name=call.name)

        tool.validate(call.arguments)
        logger.debug("Executing tool '%s' with args: %s", call.name, call.arguments)

        try:
            if self.timeout is not None:
                result = await asyncio.wait_for(tool.execute(**call.arguments), self.timeout)
            else:
                result = await tool.execute(**call.arguments)
        except asyncio.TimeoutError as exc:
            raise ToolError(
                f"tool '{call.name}' timed out after {self.timeout}s",
                tool_name=call.name,
                cause=exc,
            ) from exc
        except Exception as exc:
            logger.error("Error executing tool '%s': %s", call.name, exc)
            raise ToolError(str(exc), tool_name=call.name, cause=exc) from exc

        logger.debug("Tool '%s' executed successfully", call.name)
        return result
