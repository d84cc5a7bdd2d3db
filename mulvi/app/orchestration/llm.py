import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional

from ..config import get_settings

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """Completion provider failure (transport, quota, malformed response)."""

    def __init__(self, message: str, upstream: Optional[BaseException] = None):
        super().__init__(message)
        self.upstream = upstream


class ConfigurationError(RuntimeError):
    """Provider credentials are missing; raised when the gateway is built."""


def _extract_content(data: Any) -> Optional[str]:
    """Pull choices[0].message.content out of a chat completion body."""
    if not isinstance(data, dict):
        raise GatewayError("Completion response was not a JSON object")
    choices = data.get("choices")
    if not isinstance(choices, list):
        raise GatewayError("Completion response has no choices")
    if not choices:
        return None
    choice0 = choices[0] if isinstance(choices[0], dict) else {}
    msg_obj = choice0.get("message") or {}
    content = msg_obj.get("content") if isinstance(msg_obj, dict) else None
    return content if isinstance(content, str) else None


class OpenAICompletionProvider:
    """Chat completions over the OpenAI REST API."""

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.api_key = (api_key if api_key is not None else settings.OPENAI_API_KEY or "").strip()
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        self.url = url or settings.OPENAI_API_URL
        self.timeout = timeout

    def complete(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> Optional[str]:
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        req = urllib.request.Request(
            self.url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )

        try:
            kwargs = {"timeout": self.timeout} if self.timeout else {}
            with urllib.request.urlopen(req, **kwargs) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as he:
            body = None
            try:
                body = he.read().decode("utf-8", errors="ignore")
            except Exception:
                body = None
            logger.error("Completion provider HTTPError: %s body=%s", he, (body or "")[:300])
            raise GatewayError(f"Completion provider returned HTTP {he.code}", upstream=he) from he
        except (urllib.error.URLError, socket.timeout, TimeoutError) as e:
            logger.error("Completion provider unreachable: %s", e)
            raise GatewayError("Completion provider unreachable", upstream=e) from e
        except ValueError as e:
            logger.error("Completion provider returned invalid JSON: %s", e)
            raise GatewayError("Completion provider returned invalid JSON", upstream=e) from e

        return _extract_content(data)
