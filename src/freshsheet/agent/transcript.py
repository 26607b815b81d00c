"""
Transcript persistence.

Maps Turns to Message rows and back, and enforces the append-only
invariants: a tool result must follow the tool call it answers, and each
tool call is answered at most once. One writer per conversation at a time;
the conversation service guarantees that.
"""
import json
from typing import Any, Dict, List, Optional

from sqlmodel import Session, col, func, select

from freshsheet.agent.types import AssistantText, AssistantToolCall, ToolResult, Turn, UserText
from freshsheet.errors import TranscriptError
from freshsheet.logging import logger
from freshsheet.models.base import utcnow
from freshsheet.models.conversation import Conversation, Message, MessageRole

TITLE_MAX_CHARS = 100


def message_to_turn(message: Message) -> Turn:
    """Rebuild the Turn a stored row represents."""
    if message.role == MessageRole.USER:
        return UserText(text=message.content)
    if message.role == MessageRole.TOOL:
        output = json.loads(message.tool_result_json) if message.tool_result_json is not None else message.content
        return ToolResult(
            tool_call_id=message.tool_call_id or "unknown",
            tool_name=message.tool_name or "",
            output=output,
        )
    if message.tool_name:
        return AssistantToolCall(
            tool_name=message.tool_name,
            tool_call_id=message.tool_call_id or "unknown",
            input=json.loads(message.tool_input_json) if message.tool_input_json else {},
        )
    return AssistantText(text=message.content)


def turn_to_message(turn: Turn, conversation_id: str) -> Message:
    if isinstance(turn, UserText):
        return Message(conversation_id=conversation_id, role=MessageRole.USER, content=turn.text)
    if isinstance(turn, AssistantText):
        return Message(conversation_id=conversation_id, role=MessageRole.ASSISTANT, content=turn.text)
    if isinstance(turn, AssistantToolCall):
        return Message(
            conversation_id=conversation_id,
            role=MessageRole.ASSISTANT,
            tool_name=turn.tool_name,
            tool_call_id=turn.tool_call_id,
            tool_input_json=json.dumps(turn.input, default=str),
        )
    if isinstance(turn, ToolResult):
        result_json = json.dumps(turn.output, default=str)
        return Message(
            conversation_id=conversation_id,
            role=MessageRole.TOOL,
            content=result_json,
            tool_name=turn.tool_name,
            tool_call_id=turn.tool_call_id,
            tool_result_json=result_json,
        )
    raise TypeError(f"Unsupported turn type: {type(turn).__name__}")


def message_record(message: Message) -> Dict[str, Any]:
    """Client-facing view of one stored turn; tool fields only when present."""
    record: Dict[str, Any] = {
        "id": message.id,
        "role": message.role.value.lower(),
        "content": message.content,
        "conversationId": message.conversation_id,
        "createdAt": message.created_at.isoformat(),
    }
    if message.tool_name:
        record["toolName"] = message.tool_name
    if message.tool_call_id:
        record["toolCallId"] = message.tool_call_id
    if message.tool_input_json:
        record["toolInput"] = json.loads(message.tool_input_json)
    if message.tool_result_json is not None:
        record["toolResult"] = json.loads(message.tool_result_json)
    return record


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------
def get_or_create_conversation(
    session: Session,
    user_id: int,
    first_message: str,
    conversation_id: Optional[str] = None,
) -> Conversation:
    """Load the user's conversation, or start a new one titled after the first message."""
    if conversation_id:
        conversation = session.exec(
            select(Conversation).where(
                Conversation.id == conversation_id,
                Conversation.user_id == user_id,
            )
        ).first()
        if conversation:
            return conversation
        logger.info(f"Conversation {conversation_id} not found for user {user_id}; starting a new one")

    conversation = Conversation(user_id=user_id, title=first_message[:TITLE_MAX_CHARS])
    session.add(conversation)
    session.commit()
    session.refresh(conversation)
    return conversation


def list_conversations(session: Session, user_id: int, limit: int = 50) -> List[Dict[str, Any]]:
    rows = session.exec(
        select(Conversation, func.count(Message.id))
        .join(Message, Message.conversation_id == Conversation.id, isouter=True)
        .where(Conversation.user_id == user_id)
        .group_by(Conversation.id)
        .order_by(col(Conversation.updated_at).desc())
        .limit(limit)
    ).all()
    return [
        {
            "id": conversation.id,
            "title": conversation.title,
            "messageCount": count,
            "createdAt": conversation.created_at.isoformat(),
            "updatedAt": conversation.updated_at.isoformat(),
        }
        for conversation, count in rows
    ]


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------
class TranscriptWriter:
    """Append-only access to one conversation's turns."""

    def __init__(self, session: Session, conversation_id: str):
        self.session = session
        self.conversation_id = conversation_id
        self._open_calls: Dict[str, str] = {}
        self._answered: set = set()
        for message in self._select_messages():
            self._track(message_to_turn(message))

    def _select_messages(self, limit: Optional[int] = None) -> List[Message]:
        stmt = (
            select(Message)
            .where(Message.conversation_id == self.conversation_id)
            .order_by(col(Message.created_at).desc(), col(Message.id).desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(reversed(self.session.exec(stmt).all()))

    def messages(self) -> List[Message]:
        return self._select_messages()

    def load_turns(self, limit: Optional[int] = None) -> List[Turn]:
        """Stored turns in causal order; with ``limit``, only the most recent ones."""
        return [message_to_turn(m) for m in self._select_messages(limit)]

    def has_call(self, tool_call_id: str) -> bool:
        """Whether a tool call with this id was already recorded."""
        return tool_call_id in self._open_calls or tool_call_id in self._answered

    def _check(self, turn: Turn) -> None:
        if isinstance(turn, AssistantToolCall):
            if self.has_call(turn.tool_call_id):
                raise TranscriptError(f"Duplicate tool call id {turn.tool_call_id}")
        elif isinstance(turn, ToolResult):
            if turn.tool_call_id in self._answered:
                raise TranscriptError(f"Tool call {turn.tool_call_id} already has a result")
            if turn.tool_call_id not in self._open_calls:
                raise TranscriptError(f"Tool result {turn.tool_call_id} has no preceding tool call")

    def _track(self, turn: Turn) -> None:
        if isinstance(turn, AssistantToolCall):
            self._open_calls[turn.tool_call_id] = turn.tool_name
        elif isinstance(turn, ToolResult):
            self._open_calls.pop(turn.tool_call_id, None)
            self._answered.add(turn.tool_call_id)

    def append(self, turn: Turn) -> Message:
        self._check(turn)
        message = turn_to_message(turn, self.conversation_id)
        self.session.add(message)

        conversation = self.session.get(Conversation, self.conversation_id)
        if conversation:
            conversation.updated_at = utcnow()
            self.session.add(conversation)

        self.session.commit()
        self.session.refresh(message)
        self._track(turn)
        return message
