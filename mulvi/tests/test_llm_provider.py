import io
import json
import urllib.error

import pytest

from mulvi.app.orchestration import llm
from mulvi.app.orchestration.llm import GatewayError, OpenAICompletionProvider


class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _provider() -> OpenAICompletionProvider:
    return OpenAICompletionProvider(api_key="sk-test", url="https://example.invalid/v1/chat/completions")


MESSAGES = [{"role": "system", "content": "You are Mulvi"}, {"role": "user", "content": "salaam"}]


def test_posts_payload_and_extracts_content(monkeypatch):
    seen = {}

    def fake_urlopen(req, **kwargs):
        seen["url"] = req.full_url
        seen["auth"] = req.get_header("Authorization")
        seen["body"] = json.loads(req.data.decode("utf-8"))
        body = {"choices": [{"message": {"role": "assistant", "content": "Wa alaikum salaam"}}]}
        return FakeResponse(json.dumps(body).encode("utf-8"))

    monkeypatch.setattr(llm.urllib.request, "urlopen", fake_urlopen)
    out = _provider().complete("gpt-4o-mini", MESSAGES, 500, 0.7)

    assert out == "Wa alaikum salaam"
    assert seen["url"].endswith("/chat/completions")
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "gpt-4o-mini",
        "messages": MESSAGES,
        "max_tokens": 500,
        "temperature": 0.7,
    }


def test_missing_content_is_none(monkeypatch):
    body = {"choices": [{"message": {"role": "assistant", "content": None}}]}
    monkeypatch.setattr(
        llm.urllib.request, "urlopen", lambda req, **kw: FakeResponse(json.dumps(body).encode("utf-8"))
    )
    assert _provider().complete("gpt-4o-mini", MESSAGES, 500, 0.7) is None


def test_http_error_becomes_gateway_error(monkeypatch):
    def fake_urlopen(req, **kwargs):
        raise urllib.error.HTTPError(req.full_url, 429, "Too Many Requests", {}, io.BytesIO(b'{"error":"quota"}'))

    monkeypatch.setattr(llm.urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(GatewayError) as exc:
        _provider().complete("gpt-4o-mini", MESSAGES, 500, 0.7)
    assert isinstance(exc.value.upstream, urllib.error.HTTPError)
    assert "429" in str(exc.value)


def test_network_error_becomes_gateway_error(monkeypatch):
    def fake_urlopen(req, **kwargs):
        raise urllib.error.URLError("Name or service not known")

    monkeypatch.setattr(llm.urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(GatewayError):
        _provider().complete("gpt-4o-mini", MESSAGES, 500, 0.7)


@pytest.mark.parametrize("raw", [b"not json", b"[]", b'{"object": "error"}'])
def test_malformed_body_becomes_gateway_error(monkeypatch, raw):
    monkeypatch.setattr(llm.urllib.request, "urlopen", lambda req, **kw: FakeResponse(raw))
    with pytest.raises(GatewayError):
        _provider().complete("gpt-4o-mini", MESSAGES, 500, 0.7)
