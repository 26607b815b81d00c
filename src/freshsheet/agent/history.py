"""
History normalization.

Turns a stored transcript plus the newly submitted user message into the
two-role turn sequence the generation service accepts:

1. Project each stored Turn onto a model turn (tool results speak as ``user``).
2. Append the new user message.
3. Coalesce adjacent turns that share a role. Two plain texts are joined with
   a blank line; when either side is structured the later turn replaces the
   earlier one. The new message coalesces with a trailing stored user turn,
   which is how a previously saved but unanswered message is folded in.
4. Drop leading turns until the sequence opens with a ``user`` turn, which
   discards an orphaned assistant tool call left by a failed run.

``normalize_model_turns`` is idempotent.
"""
from typing import Iterable, List, Sequence, Tuple

from freshsheet.agent.types import (
    AssistantText,
    AssistantToolCall,
    ModelTurn,
    Role,
    ToolResult,
    Turn,
    UserText,
)

TEXT_SEPARATOR = "\n\n"


def to_model_turn(turn: Turn) -> ModelTurn:
    """Project one stored turn onto its model-facing role."""
    if isinstance(turn, UserText):
        return ModelTurn(role=Role.USER, text=turn.text)
    if isinstance(turn, AssistantText):
        return ModelTurn(role=Role.ASSISTANT, text=turn.text)
    if isinstance(turn, AssistantToolCall):
        return ModelTurn(role=Role.ASSISTANT, payload=turn)
    if isinstance(turn, ToolResult):
        return ModelTurn(role=Role.USER, payload=turn)
    raise TypeError(f"Unsupported turn type: {type(turn).__name__}")


def _merge(earlier: ModelTurn, later: ModelTurn) -> ModelTurn:
    if earlier.is_structured or later.is_structured:
        return later
    if not earlier.text:
        return later
    if not later.text:
        return earlier
    return ModelTurn(role=later.role, text=f"{earlier.text}{TEXT_SEPARATOR}{later.text}")


def coalesce_same_role(turns: Iterable[ModelTurn]) -> List[ModelTurn]:
    """Merge runs of adjacent same-role turns into one turn each."""
    merged: List[ModelTurn] = []
    for turn in turns:
        if merged and merged[-1].role == turn.role:
            merged[-1] = _merge(merged[-1], turn)
        else:
            merged.append(turn)
    return merged


def trim_to_user_start(turns: Sequence[ModelTurn]) -> List[ModelTurn]:
    """Drop leading turns until the first ``user`` turn."""
    for index, turn in enumerate(turns):
        if turn.role == Role.USER:
            return list(turns[index:])
    return []


def normalize_model_turns(turns: Iterable[ModelTurn]) -> Tuple[ModelTurn, ...]:
    return tuple(trim_to_user_start(coalesce_same_role(turns)))


def build_model_turns(stored: Sequence[Turn], new_message: str) -> Tuple[ModelTurn, ...]:
    """Normalize stored history plus the new user message for submission."""
    projected = [to_model_turn(turn) for turn in stored]
    projected.append(ModelTurn(role=Role.USER, text=new_message))
    return normalize_model_turns(projected)
