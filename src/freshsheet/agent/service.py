"""
Conversation service: everything between an inbound chat message and a
running conversation loop.

``start_chat`` validates the request, resolves the caller, loads or creates
the conversation and persists the new user turn. It returns a ``ChatStream``
whose iteration runs the loop on a worker thread and yields SSE blocks as
they are produced. Errors raised here happen before any event is sent.
"""
import contextvars
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from sqlmodel import Session, select

from freshsheet.agent.dispatcher import ToolDispatcher
from freshsheet.agent.events import EventEmitter, QueueChannel, encode_sse
from freshsheet.agent.history import build_model_turns
from freshsheet.agent.prompts import build_system_prompt
from freshsheet.agent.registry import get_tool_manifest
from freshsheet.agent.runner import ConversationLoop, LoopResult
from freshsheet.agent.transcript import (
    TranscriptWriter,
    get_or_create_conversation,
    list_conversations,
    message_record,
)
from freshsheet.agent.types import GenerationClient, ModelTurn, StreamEvent, ToolCallContext, UserText
from freshsheet.config import settings
from freshsheet.db import new_session
from freshsheet.errors import (
    AuthenticationError,
    ConfigurationError,
    ConversationBusyError,
    InputError,
    NotFoundError,
)
from freshsheet.logging import logger, new_request_id
from freshsheet.models.conversation import Conversation
from freshsheet.models.core import Restaurant, User


__all__ = [
    "ChatStream",
    "ConversationLocks",
    "CONVERSATION_LOCKS",
    "get_conversation",
    "list_conversations",
    "resolve_context",
    "start_chat",
]


class ConversationLocks:
    """Process-wide set of conversations with a loop in flight."""

    def __init__(self):
        self._guard = threading.Lock()
        self._active: set = set()

    def acquire(self, conversation_id: str) -> bool:
        with self._guard:
            if conversation_id in self._active:
                return False
            self._active.add(conversation_id)
            return True

    def release(self, conversation_id: str) -> None:
        with self._guard:
            self._active.discard(conversation_id)

    def is_locked(self, conversation_id: str) -> bool:
        with self._guard:
            return conversation_id in self._active


CONVERSATION_LOCKS = ConversationLocks()


def resolve_context(session: Session, user_id: Optional[int]) -> Tuple[ToolCallContext, User, Restaurant]:
    """Map the caller onto the identity tool handlers act for."""
    if user_id is None:
        raise AuthenticationError("Unauthorized")
    user = session.get(User, user_id)
    if user is None:
        raise AuthenticationError("Unauthorized")
    restaurant = session.get(Restaurant, user.restaurant_id) if user.restaurant_id else None
    if restaurant is None:
        raise NotFoundError("No restaurant found")

    context = ToolCallContext(
        user_id=user.id,
        restaurant_id=restaurant.id,
        organization_id=restaurant.organization_id,
        role=user.role,
    )
    return context, user, restaurant


class ChatStream:
    """One loop run, consumed as a stream of SSE blocks.

    The loop starts on a worker thread when iteration begins. Abandoning the
    iterator cancels the loop. The conversation lock is held until the event
    channel closes.
    """

    def __init__(
        self,
        *,
        conversation_id: str,
        turns: Tuple[ModelTurn, ...],
        client: GenerationClient,
        context: ToolCallContext,
        system_prompt: str,
        session_factory: Callable[[], Session] = new_session,
        locks: ConversationLocks = CONVERSATION_LOCKS,
        max_tool_rounds: Optional[int] = None,
    ):
        self.conversation_id = conversation_id
        self.turns = turns
        self.client = client
        self.context = context
        self.system_prompt = system_prompt
        self.session_factory = session_factory
        self.locks = locks
        self.max_tool_rounds = max_tool_rounds

        self.result: Optional[LoopResult] = None
        self._channel = QueueChannel()
        self._cancel = threading.Event()
        self._started = False
        self._thread: Optional[threading.Thread] = None
        # Carries the request_id onto the worker thread
        self._ctx = contextvars.copy_context()

    def _close_channel(self) -> None:
        # The conversation is free again before the consumer sees the end of the stream
        self.locks.release(self.conversation_id)
        self._channel.close()

    def _work(self) -> None:
        emitter = EventEmitter(self._channel.push, on_close=self._close_channel)
        session = None
        try:
            session = self.session_factory()
            loop = ConversationLoop(
                conversation_id=self.conversation_id,
                turns=self.turns,
                client=self.client,
                dispatcher=ToolDispatcher(session, conversation_id=self.conversation_id),
                transcript=TranscriptWriter(session, self.conversation_id),
                emitter=emitter,
                context=self.context,
                system_prompt=self.system_prompt,
                tools=get_tool_manifest(self.context),
                max_tool_rounds=self.max_tool_rounds,
                cancel_event=self._cancel,
            )
            self.result = loop.run()
            logger.info(
                f"Loop for conversation {self.conversation_id} stopped: {self.result.stopped_reason} "
                f"after {self.result.tool_rounds} tool rounds"
            )
        except Exception as e:
            logger.exception(f"Could not run loop for conversation {self.conversation_id}: {e}")
            if not emitter.closed:
                emitter.emit(StreamEvent.error(str(e) or "An error occurred"))
        finally:
            emitter.close()
            if session is not None:
                session.close()
            self.locks.release(self.conversation_id)

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._thread = threading.Thread(
            target=self._ctx.run,
            args=(self._work,),
            name=f"loop-{self.conversation_id[:8]}",
            daemon=True,
        )
        self._thread.start()

    def events(self) -> Iterator[StreamEvent]:
        """Yield events in emission order until the channel closes."""
        self.start()
        try:
            yield from self._channel
        finally:
            self._cancel.set()

    def __iter__(self) -> Iterator[str]:
        events = self.events()
        try:
            for event in events:
                yield encode_sse(event)
        finally:
            events.close()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def close(self) -> None:
        """Cancel the loop, or release the lock if it never started."""
        self._cancel.set()
        if not self._started:
            self.locks.release(self.conversation_id)


def start_chat(
    message: Any,
    user_id: Optional[int],
    conversation_id: Optional[str] = None,
    *,
    client: Optional[GenerationClient],
    session_factory: Callable[[], Session] = new_session,
    locks: ConversationLocks = CONVERSATION_LOCKS,
) -> ChatStream:
    """Validate a chat request and prepare its loop.

    Raises ConfigurationError, AuthenticationError, NotFoundError, InputError
    or ConversationBusyError, in that order of checking.
    """
    new_request_id()
    if client is None:
        raise ConfigurationError("AI service not configured")

    with session_factory() as session:
        context, user, restaurant = resolve_context(session, user_id)

        if not isinstance(message, str) or not message.strip():
            raise InputError("Message is required")

        conversation = get_or_create_conversation(session, user.id, message, conversation_id)
        if not locks.acquire(conversation.id):
            raise ConversationBusyError("A response is already being generated for this conversation")

        try:
            transcript = TranscriptWriter(session, conversation.id)
            stored = transcript.load_turns(limit=settings.HISTORY_MAX_TURNS)
            turns = build_model_turns(stored, message)
            transcript.append(UserText(text=message))
        except Exception:
            locks.release(conversation.id)
            raise

        logger.info(
            f"Starting loop for conversation {conversation.id} "
            f"(user {user.id}, {len(stored)} stored turns, {len(turns)} model turns)"
        )
        return ChatStream(
            conversation_id=conversation.id,
            turns=turns,
            client=client,
            context=context,
            system_prompt=build_system_prompt(restaurant.name, user.first_name, org_admin=context.is_org_admin),
            session_factory=session_factory,
            locks=locks,
        )


def get_conversation(session: Session, user_id: int, conversation_id: str) -> Dict[str, Any]:
    conversation = session.exec(
        select(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.user_id == user_id,
        )
    ).first()
    if conversation is None:
        raise NotFoundError("Conversation not found")

    messages: List[Dict[str, Any]] = [
        message_record(m) for m in TranscriptWriter(session, conversation.id).messages()
    ]
    return {
        "id": conversation.id,
        "title": conversation.title,
        "createdAt": conversation.created_at.isoformat(),
        "updatedAt": conversation.updated_at.isoformat(),
        "messages": messages,
    }
