import pytest
from fastapi.testclient import TestClient

from chat_relay.api import server
from chat_relay.api.server import STREAM_ERROR, CHAT_ERROR, _relay_frames, create_app
from chat_relay.api.service import RelayService
from chat_relay.domain.exceptions import ApiError, ConfigurationError, NetworkError
from chat_relay.domain.models import ChatResult, ChatStreamChunk
from chat_relay.providers.gemini_client import GeminiClient


class SettingsStub:
    default_model = "chat"
    cors_origins = ["*"]
    sse_split_newlines = True


class FakeProvider:
    name = "gemini"

    def __init__(self, fragments=(), error=None):
        self.fragments = list(fragments)
        self.error = error
        self.requests = []

    def provider_model(self, logical_name):
        return "gemini-1.5-flash"

    def chat(self, req):
        self.requests.append(req)
        if self.error:
            raise self.error
        return ChatResult(provider="gemini", model=req.model, text="".join(self.fragments), finish_reason="STOP")

    def chat_stream(self, req):
        self.requests.append(req)
        for fragment in self.fragments:
            yield ChatStreamChunk(provider="gemini", model=req.model, text=fragment)
        if self.error:
            raise self.error


def _client(provider, settings=None):
    return TestClient(create_app(RelayService(settings or SettingsStub(), provider)))


def test_stream_frames_each_fragment():
    provider = FakeProvider(["4", "."])
    resp = _client(provider).post("/chat/stream", json={"message": "2+2"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"
    assert resp.text == "data: 4\n\ndata: .\n\n"


def test_stream_splits_embedded_newlines():
    resp = _client(FakeProvider(["a\nb"])).post("/chat/stream", json={"message": "x"})
    assert resp.text == "data: a\ndata: b\n\n"


def test_stream_unsplit_newlines_when_disabled():
    class Raw(SettingsStub):
        sse_split_newlines = False

    resp = _client(FakeProvider(["a\nb"]), Raw()).post("/chat/stream", json={"message": "x"})
    assert resp.text == "data: a\nb\n\n"


def test_stream_error_before_first_fragment():
    provider = FakeProvider(error=NetworkError(code="NETWORK_ERROR", message="boom"))
    resp = _client(provider).post("/chat/stream", json={"message": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": STREAM_ERROR}


def test_stream_with_zero_fragments():
    resp = _client(FakeProvider([])).post("/chat/stream", json={"message": "hi"})
    assert resp.status_code == 200
    assert resp.text == ""


def test_empty_message_is_forwarded():
    provider = FakeProvider(["?"])
    resp = _client(provider).post("/chat/stream", json={"message": ""})
    assert resp.status_code == 200
    assert provider.requests[0].messages[0].content == ""


def test_missing_message_is_rejected():
    client = _client(FakeProvider(["x"]))
    resp = client.post("/chat/stream", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "message is required"}
    resp = client.post("/chat", json={"message": 3})
    assert resp.status_code == 400


def test_each_request_has_empty_history():
    provider = FakeProvider(["ok"])
    client = _client(provider)
    client.post("/chat/stream", json={"message": "same"})
    client.post("/chat/stream", json={"message": "same"})
    assert len(provider.requests) == 2
    for req in provider.requests:
        assert [(m.role, m.content) for m in req.messages] == [("user", "same")]
    assert provider.requests[0] is not provider.requests[1]


def test_chat_non_streaming():
    resp = _client(FakeProvider(["4", "."])).post("/chat", json={"message": "2+2"})
    assert resp.status_code == 200
    assert resp.json() == {"response": "4."}


def test_chat_non_streaming_error():
    provider = FakeProvider(error=ApiError(code="API_ERROR", message="bad", http_status=400))
    resp = _client(provider).post("/chat", json={"message": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": CHAT_ERROR}


def test_health():
    resp = _client(FakeProvider()).get("/health")
    assert resp.json() == {"status": "ok", "model": "gemini-1.5-flash"}


def test_relay_frames_aborts_after_partial_stream():
    def fragments():
        yield "4"
        raise ApiError(code="API_ERROR", message="overloaded", http_status=503)

    frames = _relay_frames(fragments(), True)
    assert next(frames) == "data: 4\n\n"
    with pytest.raises(ApiError):
        next(frames)


def test_main_refuses_to_start_without_key(monkeypatch):
    class NoKey:
        gemini_api_key = None

        def require_api_key(self):
            raise ConfigurationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")

    started = []
    monkeypatch.setattr(server, "load_settings", lambda: NoKey())
    monkeypatch.setattr(server, "setup_logger", lambda settings: None)
    monkeypatch.setattr(server.uvicorn, "run", lambda *a, **kw: started.append(a))
    with pytest.raises(SystemExit) as exc:
        server.main()
    assert exc.value.code == 1
    assert started == []


class GatewaySettings(SettingsStub):
    gemini_api_key = "g"
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    http_timeout = 1.0


def _gateway_client(html="<html>gateway</html>"):
    """上游返回 200 但 body 是网关 HTML 页面的 httpx.Client。"""

    class Resp:
        status_code = 200
        text = html

        def json(self):
            raise ValueError("Expecting value")

        def read(self):
            return html.encode()

        def iter_lines(self):
            yield html

    class Stream:
        def __enter__(self):
            return Resp()

        def __exit__(self, *a):
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, **kw):
            return Resp()

        def stream(self, method, url, **kw):
            return Stream()

    return Client


def test_chat_gateway_html_body_returns_json_error(monkeypatch):
    settings = GatewaySettings()
    client = _client(GeminiClient(settings), settings)
    monkeypatch.setattr("httpx.Client", _gateway_client())
    resp = client.post("/chat", json={"message": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": CHAT_ERROR}


def test_chat_malformed_provider_payload_returns_json_error():
    provider = FakeProvider(error=ApiError(code="BAD_RESPONSE", message="not an object", http_status=502))
    client = _client(provider)
    resp = client.post("/chat", json={"message": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": CHAT_ERROR}
    resp = client.post("/chat/stream", json={"message": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": STREAM_ERROR}
