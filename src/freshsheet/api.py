from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from sqlmodel import Session
from starlette.background import BackgroundTask

from freshsheet.agent.service import get_conversation, list_conversations, start_chat
from freshsheet.db import get_session, new_session
from freshsheet.errors import (
    AuthenticationError,
    ConfigurationError,
    ConversationBusyError,
    FreshSheetError,
    InputError,
    NotFoundError,
)
from freshsheet.llm.openai_client import get_generation_client
from freshsheet.logging import logger

app = FastAPI(title="FreshSheet AI")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATUS_BY_ERROR = [
    (ConfigurationError, 503),
    (AuthenticationError, 401),
    (InputError, 400),
    (NotFoundError, 404),
    (ConversationBusyError, 409),
]


class ChatRequest(BaseModel):
    message: Any = None
    conversationId: Optional[str] = None


@app.exception_handler(FreshSheetError)
async def handle_app_error(request: Request, exc: FreshSheetError):
    status = next((code for cls, code in STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    if status == 500:
        logger.error(f"Unhandled application error: {exc}")
    return JSONResponse(status_code=status, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


def get_client():
    return get_generation_client()


def get_session_factory() -> Callable[[], Session]:
    return new_session


def get_caller_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """Identify the caller from the X-User-Id header."""
    if not x_user_id:
        raise AuthenticationError("Unauthorized")
    try:
        return int(x_user_id)
    except ValueError:
        raise AuthenticationError("Unauthorized")


@app.post("/api/ai/chat")
def chat(
    body: ChatRequest,
    x_user_id: Optional[str] = Header(default=None),
    client=Depends(get_client),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    # Configuration is checked before identity
    if client is None:
        raise ConfigurationError("AI service not configured")
    user_id = get_caller_id(x_user_id)

    stream = start_chat(
        body.message,
        user_id,
        body.conversationId,
        client=client,
        session_factory=session_factory,
    )
    return StreamingResponse(
        iter(stream),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        background=BackgroundTask(stream.close),
    )


@app.get("/api/ai/conversations")
def conversations(user_id: int = Depends(get_caller_id), session: Session = Depends(get_session)):
    return {"conversations": list_conversations(session, user_id)}


@app.get("/api/ai/conversations/{conversation_id}")
def conversation_detail(
    conversation_id: str,
    user_id: int = Depends(get_caller_id),
    session: Session = Depends(get_session),
):
    return get_conversation(session, user_id, conversation_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
