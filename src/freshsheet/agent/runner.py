"""
Conversation loop: the tool-calling state machine behind one user message.

    INVOKING_MODEL -> (EXECUTING_TOOLS -> INVOKING_MODEL)* -> STREAMING_FINAL -> TERMINATED
                 \\______________________ ERRORED ______________________/

Each state is a method returning the next state. A loop instance lives for
one inbound message. It is the only component that emits stream events or
appends turns, so event order always matches transcript order. Tool failures
are ordinary results handed back to the model; any exception raised by the
generation client, the dispatcher or the transcript ends the loop in ERRORED.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import Session

from freshsheet.agent.dispatcher import ToolDispatcher, result_payload
from freshsheet.agent.events import EventEmitter
from freshsheet.agent.transcript import TranscriptWriter
from freshsheet.agent.types import (
    AssistantText,
    AssistantToolCall,
    GenerationClient,
    GenerationRequest,
    GenerationResponse,
    ModelTurn,
    Role,
    StopKind,
    StreamEvent,
    ToolCallContext,
    ToolInvocation,
    ToolResult,
)
from freshsheet.config import settings
from freshsheet.errors import GenerationError
from freshsheet.logging import get_request_id, logger
from freshsheet.models.agent_log import LLMCallLog


class LoopState(str, Enum):
    INVOKING_MODEL = "INVOKING_MODEL"
    EXECUTING_TOOLS = "EXECUTING_TOOLS"
    STREAMING_FINAL = "STREAMING_FINAL"
    ERRORED = "ERRORED"
    TERMINATED = "TERMINATED"


@dataclass
class LoopResult:
    """How a loop ended."""
    stopped_reason: str = ""  # "complete", "error", "cancelled"
    final_answer: str = ""
    tool_rounds: int = 0
    model_calls: int = 0
    error: Optional[str] = None
    states: List[LoopState] = field(default_factory=list)


def _log_llm_call(
    session: Session,
    conversation_id: str,
    model: str,
    request: GenerationRequest,
    response: GenerationResponse,
) -> None:
    """Persist a generation call summary to the database."""
    log = LLMCallLog(
        conversation_id=conversation_id,
        request_id=get_request_id(),
        model=response.model or model,
        message_count=len(request.turns),
        tool_calls_count=len(response.tool_calls),
        prompt_tokens=response.usage.prompt_tokens,
        completion_tokens=response.usage.completion_tokens,
        total_tokens=response.usage.total_tokens,
        finish_reason=response.finish_reason,
    )
    session.add(log)
    session.commit()


class ConversationLoop:
    def __init__(
        self,
        *,
        conversation_id: str,
        turns: Sequence[ModelTurn],
        client: GenerationClient,
        dispatcher: ToolDispatcher,
        transcript: TranscriptWriter,
        emitter: EventEmitter,
        context: ToolCallContext,
        system_prompt: str,
        tools: List[Dict[str, Any]],
        max_tool_rounds: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.conversation_id = conversation_id
        self.turns: List[ModelTurn] = list(turns)
        self.client = client
        self.dispatcher = dispatcher
        self.transcript = transcript
        self.emitter = emitter
        self.context = context
        self.system_prompt = system_prompt
        self.tools = tools
        self.max_tool_rounds = max_tool_rounds if max_tool_rounds is not None else settings.MAX_TOOL_ROUNDS
        self.cancel_event = cancel_event or threading.Event()

        self.state = LoopState.INVOKING_MODEL
        self.response: Optional[GenerationResponse] = None
        self.result = LoopResult()

        self._handlers = {
            LoopState.INVOKING_MODEL: self._invoke_model,
            LoopState.EXECUTING_TOOLS: self._execute_tools,
            LoopState.STREAMING_FINAL: self._stream_final,
            LoopState.ERRORED: self._fail,
        }

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def run(self) -> LoopResult:
        """Drive the state machine to TERMINATED."""
        while self.state != LoopState.TERMINATED:
            self.result.states.append(self.state)
            if self.cancelled and self.state != LoopState.ERRORED:
                logger.info(f"Loop for conversation {self.conversation_id} cancelled in {self.state.value}")
                self.result.stopped_reason = "cancelled"
                self.emitter.close()
                self.state = LoopState.TERMINATED
                break
            try:
                self.state = self._handlers[self.state]()
            except Exception as e:
                if self.state == LoopState.ERRORED:
                    # Reporting the error failed; nothing left to tell the caller
                    logger.error(f"Could not emit error event: {e}")
                    self.emitter.close()
                    self.state = LoopState.TERMINATED
                    break
                logger.exception(f"Loop failed in {self.state.value}: {e}")
                self.result.error = str(e) or "An error occurred"
                self.state = LoopState.ERRORED
        self.result.states.append(LoopState.TERMINATED)
        return self.result

    # -- states -------------------------------------------------------------

    def _invoke_model(self) -> LoopState:
        logger.info(f"Model call {self.result.model_calls + 1} (tool rounds so far: {self.result.tool_rounds})")
        request = GenerationRequest(system=self.system_prompt, tools=self.tools, turns=tuple(self.turns))
        try:
            response = self.client.generate(request)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Generation service error: {e}") from e
        self.result.model_calls += 1
        _log_llm_call(self.transcript.session, self.conversation_id, self.client.model, request, response)

        if response.stop == StopKind.FINAL:
            self.response = response
            return LoopState.STREAMING_FINAL

        if self.result.tool_rounds >= self.max_tool_rounds:
            raise GenerationError(f"Exceeded maximum of {self.max_tool_rounds} tool rounds")
        self._check_call_ids(response.tool_calls)
        self.response = response
        return LoopState.EXECUTING_TOOLS

    def _check_call_ids(self, invocations: Sequence[ToolInvocation]) -> None:
        # Checked before any tool in the round runs
        seen = set()
        for invocation in invocations:
            if invocation.id in seen or self.transcript.has_call(invocation.id):
                raise GenerationError(f"Duplicate tool call id {invocation.id}")
            seen.add(invocation.id)

    def _execute_tools(self) -> LoopState:
        self.result.tool_rounds += 1
        for invocation in self.response.tool_calls:
            if self.cancelled:
                return LoopState.INVOKING_MODEL
            self._execute_one(invocation)
        return LoopState.INVOKING_MODEL

    def _execute_one(self, invocation: ToolInvocation) -> None:
        self.emitter.emit(StreamEvent.tool_call(invocation))
        outcome = self.dispatcher.dispatch(invocation.name, invocation.input, self.context)
        payload = result_payload(outcome)
        self.emitter.emit(StreamEvent.tool_result(invocation, payload))

        call = AssistantToolCall(tool_name=invocation.name, tool_call_id=invocation.id, input=invocation.input)
        result = ToolResult(tool_call_id=invocation.id, tool_name=invocation.name, output=payload)
        self.transcript.append(call)
        self.transcript.append(result)
        self.turns.append(ModelTurn(role=Role.ASSISTANT, payload=call))
        self.turns.append(ModelTurn(role=Role.USER, payload=result))

    def _stream_final(self) -> LoopState:
        for segment in self.response.text_segments:
            if segment:
                self.emitter.emit(StreamEvent.text(segment))
        final_text = self.response.text
        self.transcript.append(AssistantText(text=final_text))
        self.result.final_answer = final_text
        self.result.stopped_reason = "complete"
        self.emitter.emit(StreamEvent.done(self.conversation_id))
        return LoopState.TERMINATED

    def _fail(self) -> LoopState:
        self.result.stopped_reason = "error"
        if not self.emitter.closed:
            self.emitter.emit(StreamEvent.error(self.result.error or "An error occurred"))
        return LoopState.TERMINATED
