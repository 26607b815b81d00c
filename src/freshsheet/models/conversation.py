"""
Conversation transcript storage.

A Conversation is an append-only log of Message rows. Each row is one Turn;
rows are never updated or deleted once written. Order is (created_at, id).
"""
import uuid
from enum import Enum
from typing import Optional
from sqlmodel import Field
from freshsheet.models.base import TimestampMixin


class MessageRole(str, Enum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    TOOL = "TOOL"


class Conversation(TimestampMixin, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str = Field(default="")


class Message(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: str = Field(foreign_key="conversation.id", index=True)

    role: MessageRole
    content: str = Field(default="")
    tool_name: Optional[str] = None
    tool_call_id: Optional[str] = Field(default=None, index=True)
    tool_input_json: Optional[str] = None  # JSON object the model supplied
    tool_result_json: Optional[str] = None  # JSON value the handler returned
