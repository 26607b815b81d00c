from typing import Optional
from sqlmodel import Field
from freshsheet.models.base import TimestampMixin


class ToolCallLog(TimestampMixin, table=True):
    __table_args__ = {"extend_existing": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: Optional[str] = Field(default=None, index=True)
    request_id: Optional[str] = Field(default=None, index=True, description="UUID grouping calls from one inbound message")

    tool_name: str
    arguments_json: str  # JSON string of tool arguments
    result_json: str  # JSON string of tool result
    success: bool
    duration_ms: int  # Execution time in milliseconds


class LLMCallLog(TimestampMixin, table=True):
    __table_args__ = {"extend_existing": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: Optional[str] = Field(default=None, index=True)
    request_id: Optional[str] = Field(default=None, index=True, description="UUID grouping calls from one inbound message")

    model: str
    message_count: int  # Number of model turns submitted
    tool_calls_count: int = Field(default=0)

    prompt_tokens: int = Field(default=0)
    completion_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)

    finish_reason: Optional[str] = None
