"""Tool registry and tool-call bridge for live sessions.

The ToolManager is the tool-execution collaborator: a registry mapping a
function name to its google.genai FunctionDeclaration (advertised in the
setup envelope) and a handler (sync or async, called with the call args).

The ToolCallBridge sits between the SessionClient and the ToolManager. It
forwards only the first function call of a toolCall message, waits for the
result and sends a toolResponse tagged with that call's id. A failing tool
produces an error-bearing toolResponse; the session is never closed because
of a tool failure.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from google.genai.types import FunctionDeclaration, FunctionResponse, Tool

from app.services.live_relay.exceptions import ToolExecutionError

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Any]


def function_response(call_id: str | None, name: str | None, response: dict[str, Any]) -> dict[str, Any]:
    """Serialise one function response in wire (camelCase) form."""
    return FunctionResponse(id=call_id, name=name, response=response).model_dump(
        mode="json", by_alias=True, exclude_none=True
    )


class ToolExecutor(Protocol):
    async def handle_tool_call(self, function_call: dict[str, Any]) -> dict[str, Any]: ...


class ToolManager:
    """Registry of callable tools.

    Usage::

        tools = ToolManager()
        tools.register(
            FunctionDeclaration(name="get_weather", description="...", parameters={...}),
            get_weather,
        )
        response = await tools.handle_tool_call({"id": "fc-1", "name": "get_weather", "args": {"city": "Pokhara"}})
    """

    def __init__(self) -> None:
        self._tools: dict[str, tuple[FunctionDeclaration, ToolHandler]] = {}

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def register(self, declaration: FunctionDeclaration, handler: ToolHandler) -> None:
        """Add a tool.

        Raises:
            ValueError: If the declaration has no name or the name is taken.
        """
        if not declaration.name:
            raise ValueError("Tool declaration must have a name")
        if declaration.name in self._tools:
            raise ValueError(f"Tool '{declaration.name}' is already registered")
        self._tools[declaration.name] = (declaration, handler)
        logger.debug("Registered tool %s", declaration.name)

    def declarations(self) -> list[FunctionDeclaration]:
        return [declaration for declaration, _ in self._tools.values()]

    def build_tools(self) -> list[dict[str, Any]]:
        """Tool entries for the setup envelope (empty when nothing is registered)."""
        declarations = self.declarations()
        if not declarations:
            return []
        tool = Tool(function_declarations=declarations)
        return [tool.model_dump(mode="json", by_alias=True, exclude_none=True)]

    async def handle_tool_call(self, function_call: dict[str, Any]) -> dict[str, Any]:
        """Execute one function call and build its tool-response payload.

        Returns:
            {"functionResponses": [{"id", "name", "response": {"output": result}}]}

        Raises:
            ToolExecutionError: If the tool is unknown or its handler fails.
        """
        name = function_call.get("name") or ""
        call_id = function_call.get("id")
        args = function_call.get("args") or {}

        entry = self._tools.get(name)
        if entry is None:
            available = ", ".join(self._tools) or "none"
            raise ToolExecutionError(name, call_id, f"Unknown tool. Available tools: {available}")

        _, handler = entry
        logger.info("Executing tool: %s(call_id=%s)", name, call_id)
        try:
            result = handler(**args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise ToolExecutionError(name, call_id, f"Tool execution failed: {exc}") from exc

        return {"functionResponses": [function_response(call_id, name, {"output": result})]}


class ToolCallBridge:
    """Forwards toolCall messages to a ToolExecutor and replies on the same session."""

    def __init__(
        self,
        tool_executor: ToolExecutor,
        send_tool_response: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> None:
        self._tool_executor = tool_executor
        self._send_tool_response = send_tool_response

    async def handle_tool_call(self, tool_call: dict[str, Any]) -> None:
        function_calls = tool_call.get("functionCalls") or []
        if not function_calls:
            logger.warning("toolCall message without functionCalls, ignoring")
            return

        if len(function_calls) > 1:
            # One call per message; the rest of the batch is not forwarded.
            logger.warning("toolCall carries %d function calls, handling only the first", len(function_calls))

        call = function_calls[0]
        try:
            response = await self._tool_executor.handle_tool_call(call)
        except Exception as exc:
            logger.error("Tool call failed: %s", exc)
            response = {
                "functionResponses": [function_response(call.get("id"), call.get("name"), {"error": str(exc)})]
            }

        await self._send_tool_response(response)
