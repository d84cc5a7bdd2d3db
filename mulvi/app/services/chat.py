import logging
from typing import List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from ..config import get_settings
from ..models.conversation import ConversationTurn, MessageRole, UserContext
from ..orchestration.llm import GatewayError, OpenAICompletionProvider
from ..orchestration.prompt import compile_prompt

# Configure logging
logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "I'm here to help with your prayer journey. How can I assist you today?"

# Fixed completion parameters
MAX_TOKENS = 500
TEMPERATURE = 0.7


def window_history(history: Sequence[ConversationTurn], max_turns: int) -> List[ConversationTurn]:
    """Last `max_turns` user/assistant exchanges (2*max_turns messages), order kept.

    Caller-supplied system turns are dropped; the compiled prompt is the only
    system entry the provider sees.
    """
    ua = [t for t in history if t.role in (MessageRole.USER, MessageRole.ASSISTANT)]
    if max_turns <= 0:
        return ua
    return ua[-(max_turns * 2):]


class ChatGateway:
    """Stateless bridge between a compiled prompt and the completion provider."""

    def __init__(self, provider=None):
        settings = get_settings()
        self.model = settings.MODEL_NAME or "gpt-4o-mini"
        self.temperature = TEMPERATURE
        self.max_tokens = MAX_TOKENS
        self.history_max_turns = int(settings.HISTORY_MAX_TURNS)
        # Raises ConfigurationError when no API key is configured
        self.provider = provider if provider is not None else OpenAICompletionProvider()

        logger.info(
            "ChatGateway config: model=%s temperature=%s max_tokens=%s history_max_turns=%s",
            self.model, self.temperature, self.max_tokens, self.history_max_turns,
        )

    async def respond(self, history: Sequence[ConversationTurn], context: UserContext) -> str:
        """Generate the assistant reply for `history` personalized by `context`.

        Raises GatewayError on any provider failure; no retry is attempted.
        """
        windowed = window_history(history, self.history_max_turns)
        compiled = compile_prompt(context, windowed)
        payload = compiled.to_payload()
        logger.info(
            "Sending %d messages to %s (history=%d, windowed=%d, system_prompt_len=%d)",
            len(payload), self.model, len(history), len(windowed), len(compiled.system_prompt),
        )

        try:
            content: Optional[str] = await run_in_threadpool(
                self.provider.complete,
                self.model,
                payload,
                self.max_tokens,
                self.temperature,
            )
        except GatewayError:
            raise
        except Exception as e:
            logger.error("Completion provider failed: %s", e)
            raise GatewayError("Completion provider failed", upstream=e) from e

        if not content or not content.strip():
            logger.warning("Completion provider returned no content; using fallback reply")
            return FALLBACK_RESPONSE
        return content


def get_chat_gateway() -> ChatGateway:
    """Dependency for getting the chat gateway."""
    return ChatGateway()
