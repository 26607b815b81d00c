"""
Generation client backed by OpenAI chat completions with function tools.

Model turns are rendered as chat messages. A tool call is only sent together
with the tool result that answers it; unpaired calls or results are dropped
because the chat API rejects them.
"""
import json
from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI, OpenAIError

from freshsheet.agent.types import (
    AssistantToolCall,
    GenerationRequest,
    GenerationResponse,
    GenerationUsage,
    ModelTurn,
    ToolInvocation,
    ToolResult,
)
from freshsheet.config import settings
from freshsheet.errors import GenerationError
from freshsheet.logging import logger


def to_openai_tools(manifest: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return the tool manifest in OpenAI function-calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool["input_schema"],
            },
        }
        for tool in manifest
    ]


def _is_pair(call: ModelTurn, result: Optional[ModelTurn]) -> bool:
    return (
        result is not None
        and isinstance(call.payload, AssistantToolCall)
        and isinstance(result.payload, ToolResult)
        and result.payload.tool_call_id == call.payload.tool_call_id
    )


def render_messages(system: str, turns: Sequence[ModelTurn]) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = [{"role": "system", "content": system}]
    for index, turn in enumerate(turns):
        following = turns[index + 1] if index + 1 < len(turns) else None
        preceding = turns[index - 1] if index > 0 else None

        if isinstance(turn.payload, AssistantToolCall):
            call = turn.payload
            if not _is_pair(turn, following):
                logger.warning(f"Dropping tool call {call.tool_call_id} ({call.tool_name}) with no result")
                continue
            messages.append({
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": call.tool_call_id,
                        "type": "function",
                        "function": {"name": call.tool_name, "arguments": json.dumps(call.input, default=str)},
                    }
                ],
            })
        elif isinstance(turn.payload, ToolResult):
            result = turn.payload
            if preceding is None or not _is_pair(preceding, turn):
                logger.warning(f"Dropping tool result {result.tool_call_id} with no matching call")
                continue
            messages.append({
                "role": "tool",
                "tool_call_id": result.tool_call_id,
                "content": json.dumps(result.output, default=str),
            })
        else:
            messages.append({"role": turn.role.value, "content": turn.text or ""})
    return messages


class OpenAIGenerationClient:
    def __init__(self, client: OpenAI, model: Optional[str] = None, max_output_tokens: Optional[int] = None):
        self.client = client
        self.model = model or settings.OPENAI_MODEL_AGENT
        self.max_output_tokens = max_output_tokens or settings.OPENAI_MAX_OUTPUT_TOKENS

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": render_messages(request.system, request.turns),
            "max_completion_tokens": self.max_output_tokens,
        }
        if request.tools:
            kwargs["tools"] = to_openai_tools(request.tools)

        try:
            response = self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            logger.error(f"OpenAI API call failed: {e}")
            raise GenerationError(f"Generation service error: {e}") from e

        if not response.choices:
            raise GenerationError("Generation service returned no choices")

        choice = response.choices[0]
        message = choice.message
        usage = GenerationUsage()
        if response.usage:
            usage = GenerationUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        if message.tool_calls:
            invocations = []
            for tc in message.tool_calls:
                try:
                    arguments = json.loads(tc.function.arguments or "{}")
                except json.JSONDecodeError as e:
                    raise GenerationError(f"Malformed arguments for tool {tc.function.name}") from e
                if not isinstance(arguments, dict):
                    raise GenerationError(f"Arguments for tool {tc.function.name} are not an object")
                invocations.append(ToolInvocation(id=tc.id, name=tc.function.name, input=arguments))
            return GenerationResponse.needs_tool(
                *invocations, model=self.model, finish_reason=choice.finish_reason, usage=usage,
            )

        return GenerationResponse.final(
            message.content or "", model=self.model, finish_reason=choice.finish_reason, usage=usage,
        )


def get_generation_client() -> Optional[OpenAIGenerationClient]:
    """Build the configured client, or None when no API key is set."""
    if not settings.OPENAI_API_KEY or not settings.OPENAI_API_KEY.get_secret_value():
        return None
    client = OpenAI(
        api_key=settings.OPENAI_API_KEY.get_secret_value(),
        timeout=settings.GENERATION_TIMEOUT_SECONDS,
    )
    return OpenAIGenerationClient(client)
