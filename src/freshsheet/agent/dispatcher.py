"""
Tool dispatcher: looks a tool up by name and runs its handler.

Failures never raise out of ``dispatch``. An unknown name, a caller without
the tool's capability, input that does not bind to the handler, or an
exception inside the handler all come back as a ``ToolError`` so the model
can recover conversationally. Every dispatch is audited in ToolCallLog.
"""
import inspect
import json
import time
from typing import Any, Mapping, Optional, Union

from sqlmodel import Session

from freshsheet.agent.registry import RegisteredTool, ToolScope, get_tool
from freshsheet.agent.types import ToolCallContext, ToolError, ToolErrorKind
from freshsheet.logging import get_request_id, logger
from freshsheet.models.agent_log import ToolCallLog


def _log_tool_call(
    session: Session,
    conversation_id: Optional[str],
    tool_name: str,
    arguments: Any,
    result: Any,
    success: bool,
    duration_ms: int,
) -> None:
    """Persist a tool call to the database."""
    log = ToolCallLog(
        conversation_id=conversation_id,
        request_id=get_request_id(),
        tool_name=tool_name,
        arguments_json=json.dumps(arguments, default=str),
        result_json=json.dumps(result, default=str)[:4000],
        success=success,
        duration_ms=duration_ms,
    )
    session.add(log)
    session.commit()


class ToolDispatcher:
    """Runs tool handlers against one database session on behalf of one loop."""

    def __init__(
        self,
        session: Session,
        registry: Optional[Mapping[str, RegisteredTool]] = None,
        conversation_id: Optional[str] = None,
    ):
        self.session = session
        self.registry = registry
        self.conversation_id = conversation_id

    def dispatch(self, name: str, tool_input: Any, context: ToolCallContext) -> Union[Any, ToolError]:
        t0 = time.monotonic()
        outcome = self._run(name, tool_input, context)
        duration_ms = int((time.monotonic() - t0) * 1000)

        if isinstance(outcome, ToolError):
            payload = outcome.to_payload()
            success = False
        else:
            payload = outcome
            success = not (isinstance(outcome, dict) and "error" in outcome)

        _log_tool_call(self.session, self.conversation_id, name, tool_input, payload, success, duration_ms)
        return outcome

    def _run(self, name: str, tool_input: Any, context: ToolCallContext) -> Union[Any, ToolError]:
        entry = get_tool(name, self.registry)
        if entry is None:
            logger.warning(f"Model requested unknown tool {name!r}")
            return ToolError(ToolErrorKind.UNKNOWN_TOOL, f"Unknown tool: {name}")

        if not entry.visible_to(context):
            return ToolError(
                ToolErrorKind.FORBIDDEN,
                f"{name} is only available to organization admins"
                if entry.scope == ToolScope.ORGANIZATION else f"{name} is not available",
            )

        if not isinstance(tool_input, dict):
            return ToolError(ToolErrorKind.INVALID_INPUT, f"Input for {name} must be a JSON object")

        try:
            inspect.signature(entry.handler).bind(self.session, context, **tool_input)
        except TypeError as e:
            return ToolError(ToolErrorKind.INVALID_INPUT, f"Invalid input for {name}: {e}")

        try:
            return entry.handler(self.session, context, **tool_input)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            self.session.rollback()
            return ToolError(ToolErrorKind.HANDLER_FAILED, str(e))


def result_payload(outcome: Union[Any, ToolError]) -> Any:
    """Render a dispatch outcome as the JSON value handed back to the model."""
    if isinstance(outcome, ToolError):
        return outcome.to_payload()
    return outcome
