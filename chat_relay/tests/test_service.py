import pytest

from chat_relay.api.service import RelayService
from chat_relay.domain.exceptions import NetworkError
from chat_relay.domain.models import ChatStreamChunk
from chat_relay.providers.gemini_client import GeminiClient


class SettingsStub:
    default_model = "chat"
    gemini_api_key = "g"
    http_timeout = 1.0
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"


class ScriptedProvider:
    name = "gemini"

    def __init__(self, script):
        self.script = script
        self.opened = 0

    def provider_model(self, logical_name):
        return "gemini-1.5-flash"

    def chat_stream(self, req):
        self.opened += 1
        for item in self.script:
            if isinstance(item, Exception):
                raise item
            yield ChatStreamChunk(provider="gemini", model=req.model, text=item)


def test_default_provider_is_gemini():
    service = RelayService(SettingsStub())
    assert isinstance(service.provider, GeminiClient)


def test_build_request_uses_fixed_generation_config():
    service = RelayService(SettingsStub(), ScriptedProvider([]))
    req = service.build_request("hello")
    assert req.model == "chat"
    assert req.generation.top_k == 64
    assert [(m.role, m.content) for m in req.messages] == [("user", "hello")]


def test_open_stream_primes_first_fragment():
    provider = ScriptedProvider(["", "4", ".", ""])
    service = RelayService(SettingsStub(), provider)
    fragments = service.open_stream("2+2")
    assert provider.opened == 1
    assert list(fragments) == ["4", "."]


def test_open_stream_raises_before_first_fragment():
    provider = ScriptedProvider([NetworkError(code="NETWORK_ERROR", message="down")])
    with pytest.raises(NetworkError):
        RelayService(SettingsStub(), provider).open_stream("hi")


def test_open_stream_error_after_first_fragment_is_deferred():
    provider = ScriptedProvider(["4", NetworkError(code="NETWORK_ERROR", message="reset")])
    fragments = iter(RelayService(SettingsStub(), provider).open_stream("hi"))
    assert next(fragments) == "4"
    with pytest.raises(NetworkError):
        next(fragments)


def test_open_stream_empty():
    assert list(RelayService(SettingsStub(), ScriptedProvider([])).open_stream("hi")) == []
