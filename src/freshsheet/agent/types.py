"""
Value types shared by the conversation loop and its collaborators.

Turns are the stored, append-only unit of history. Model turns are their
two-role projection submitted to the generation service. Stream events are
what the caller sees while a loop runs.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from freshsheet.errors import GenerationError
from freshsheet.models.core import UserRole


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class UserText:
    text: str


@dataclass(frozen=True)
class AssistantText:
    text: str


@dataclass(frozen=True)
class AssistantToolCall:
    tool_name: str
    tool_call_id: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    tool_name: str
    output: Any = None


Turn = Union[UserText, AssistantText, AssistantToolCall, ToolResult]


# ---------------------------------------------------------------------------
# Model turns
# ---------------------------------------------------------------------------
class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ModelTurn:
    """One user/assistant turn as submitted to the generation service.

    Exactly one of ``text`` and ``payload`` is set. ``payload`` is the
    structured tool call (assistant) or tool result (user).
    """
    role: Role
    text: Optional[str] = None
    payload: Optional[Union[AssistantToolCall, ToolResult]] = None

    @property
    def is_structured(self) -> bool:
        return self.payload is not None


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ToolInvocation:
    """A tool call requested by the model."""
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerationRequest:
    system: str
    tools: List[Dict[str, Any]]
    turns: Tuple[ModelTurn, ...]


class StopKind(str, Enum):
    FINAL = "final"
    NEEDS_TOOL = "needs-tool"


@dataclass
class GenerationUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class GenerationResponse:
    """Result of one generation call: final text or tool requests, never both."""
    stop: StopKind
    text_segments: List[str] = field(default_factory=list)
    tool_calls: List[ToolInvocation] = field(default_factory=list)
    model: str = ""
    finish_reason: Optional[str] = None
    usage: GenerationUsage = field(default_factory=GenerationUsage)

    def __post_init__(self):
        if self.stop == StopKind.NEEDS_TOOL and not self.tool_calls:
            raise GenerationError("Model requested tools but supplied no tool calls")

    @classmethod
    def final(cls, *segments: str, **kwargs) -> "GenerationResponse":
        return cls(stop=StopKind.FINAL, text_segments=list(segments), **kwargs)

    @classmethod
    def needs_tool(cls, *calls: ToolInvocation, **kwargs) -> "GenerationResponse":
        return cls(stop=StopKind.NEEDS_TOOL, tool_calls=list(calls), **kwargs)

    @property
    def text(self) -> str:
        return "".join(self.text_segments)


class GenerationClient(Protocol):
    """Anything that turns a GenerationRequest into a GenerationResponse."""
    model: str

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        ...


# ---------------------------------------------------------------------------
# Tool dispatch
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ToolCallContext:
    """Caller identity handed to every tool handler. Handlers must not mutate it."""
    user_id: int
    restaurant_id: int
    organization_id: Optional[int] = None
    role: UserRole = UserRole.STAFF

    @property
    def is_org_admin(self) -> bool:
        return self.role == UserRole.ORG_ADMIN and self.organization_id is not None


class ToolErrorKind(str, Enum):
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    INVALID_INPUT = "INVALID_INPUT"
    HANDLER_FAILED = "HANDLER_FAILED"
    FORBIDDEN = "FORBIDDEN"


@dataclass(frozen=True)
class ToolError:
    kind: ToolErrorKind
    message: str

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "kind": self.kind.value}


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------
class EventType(str, Enum):
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    TEXT = "text"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.DONE, EventType.ERROR})


@dataclass(frozen=True)
class StreamEvent:
    type: EventType
    data: Dict[str, Any]

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    @classmethod
    def tool_call(cls, invocation: ToolInvocation) -> "StreamEvent":
        return cls(EventType.TOOL_CALL, {"id": invocation.id, "name": invocation.name, "input": invocation.input})

    @classmethod
    def tool_result(cls, invocation: ToolInvocation, result: Any) -> "StreamEvent":
        return cls(EventType.TOOL_RESULT, {"id": invocation.id, "name": invocation.name, "result": result})

    @classmethod
    def text(cls, text: str) -> "StreamEvent":
        return cls(EventType.TEXT, {"text": text})

    @classmethod
    def done(cls, conversation_id: str) -> "StreamEvent":
        return cls(EventType.DONE, {"conversationId": conversation_id})

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(EventType.ERROR, {"message": message})
