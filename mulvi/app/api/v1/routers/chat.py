import logging
from typing import Any, List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ....models.conversation import ConversationTurn, MessageRole, UserContext
from ....orchestration.llm import ConfigurationError, GatewayError
from ....orchestration.welcome import personalized_welcome
from ....services.chat import get_chat_gateway
from ....services.profile import get_profile_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


# Models


class ChatRequest(BaseModel):
    messages: Any = None
    user_context: Any = Field(default=None, alias="userContext")
    # Older clients send a single message instead of the history
    message: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ChatResponse(BaseModel):
    response: str


class WelcomeResponse(BaseModel):
    message: str


def _valid_turns(raw: List[Any]) -> List[ConversationTurn]:
    """Keep entries with a non-empty role and text content, in order.

    Unrecognised roles are coerced rather than dropped; content is kept as sent.
    """
    turns: List[ConversationTurn] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        role, content = item.get("role"), item.get("content")
        if isinstance(role, str) and role.strip() and isinstance(content, str) and content:
            turns.append(ConversationTurn(role=MessageRole.coerce(role), content=content))
    return turns


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("", response_model=ChatResponse)
async def chat(chat_request: ChatRequest):
    """
    Generate Mulvi's reply to the supplied conversation.
    """
    raw = chat_request.messages
    if raw is None and chat_request.message:
        raw = [{"role": "user", "content": chat_request.message}]
    if not isinstance(raw, list):
        return _error("Invalid messages format. Expected array of message objects.", 400)

    history = _valid_turns(raw)
    if not history:
        return _error("No valid messages provided", 400)

    try:
        if chat_request.user_context is None and chat_request.user_id:
            context = get_profile_store().user_context(chat_request.user_id)
        else:
            context = UserContext.from_untrusted(chat_request.user_context)

        gateway = get_chat_gateway()
        reply = await gateway.respond(history, context)
        return {"response": reply}
    except ConfigurationError as e:
        logger.error("Chat gateway misconfigured: %s", e)
        return _error("Failed to generate response", 500)
    except GatewayError as e:
        logger.error("Chat gateway failed: %s (upstream=%r)", e, e.upstream)
        return _error("Failed to generate response", 500)


@router.get("/welcome/{user_id}", response_model=WelcomeResponse)
async def welcome(user_id: str):
    context = get_profile_store().user_context(user_id)
    return {"message": personalized_welcome(context)}
