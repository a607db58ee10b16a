"""relay 的流式客户端。

StreamingClient 负责一次提交的完整流程：

1. 立即把用户消息追加到 ConversationState，并进入 loading 状态。
2. POST /chat/stream，状态码非 2xx 时直接按传输错误处理，不读取响应体。
3. 逐块读取响应体、增量解码 UTF-8、去掉帧格式。
4. 每收到一块正文就通过 ReplyAccumulator 更新会话，再把这块正文交给调用方。
5. 出错时追加一条固定的错误回复；无论成功与否都清除 loading。
"""

import codecs
from typing import Callable, Iterator, Optional

import httpx

from chat_relay.domain.conversation import ConversationState, ReplyAccumulator
from chat_relay.domain.exceptions import ApiError, BusinessError, NetworkError
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.streaming.frames import Framing, make_decoder

DEFAULT_BACKEND_URL = "http://localhost:5000"


def can_submit(text: Optional[str]) -> bool:
    """空白输入不能提交（对应界面上禁用的发送按钮）。"""
    return bool(text and text.strip())


class StreamingClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BACKEND_URL,
        *,
        framing: Framing = "sse",
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.framing = framing
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "StreamingClient":
        return cls(getattr(settings, "backend_url", None) or DEFAULT_BACKEND_URL, **kwargs)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
            trust_env=False,
        )

    def complete(self, message: str) -> str:
        """调用非流式的 POST /chat，返回完整回复。"""
        try:
            with self._client() as client:
                resp = client.post("/chat", json={"message": message})
        except httpx.HTTPError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code >= 400:
            raise ApiError(code="HTTP_STATUS", message="Network response was not ok", http_status=resp.status_code)
        try:
            return resp.json()["response"]
        except (ValueError, KeyError, TypeError):
            raise ApiError(code="BAD_RESPONSE", message="relay response has no 'response' field", http_status=502)

    def send_and_stream(self, message: str, conversation: ConversationState) -> Iterator[str]:
        """提交一条消息，返回本轮回复的正文块序列。

        用户条目在调用时立即写入；返回的迭代器只能消费一次，
        消费结束（包括提前关闭）时 loading 会被清除。
        """
        conversation.add_user(message)
        conversation.loading = True
        return self._stream_reply(message, conversation)

    def _stream_reply(self, message: str, conversation: ConversationState) -> Iterator[str]:
        reply = ReplyAccumulator(conversation)
        decoder = make_decoder(self.framing)
        utf8 = codecs.getincrementaldecoder("utf-8")()
        try:
            with self._client() as client:
                with client.stream("POST", "/chat/stream", json={"message": message}) as resp:
                    if resp.status_code >= 400:
                        raise ApiError(
                            code="HTTP_STATUS",
                            message="Network response was not ok",
                            http_status=resp.status_code,
                        )
                    for raw in resp.iter_bytes():
                        cleaned = decoder.feed(utf8.decode(raw))
                        if cleaned:
                            reply.feed(cleaned)
                            yield cleaned
                    tail = decoder.feed(utf8.decode(b"", final=True)) + decoder.flush()
                    if tail:
                        reply.feed(tail)
                        yield tail
        except (httpx.HTTPError, UnicodeDecodeError, BusinessError) as e:
            logger.error(f"Error: {e}", extra={"extra": {
                "backend": self.base_url,
                "received_chars": len(reply.text),
            }})
            conversation.add_error_reply()
        finally:
            conversation.loading = False


class ChatSession:
    """一次客户端会话：一个 StreamingClient 加一份只在内存中的 ConversationState。"""

    def __init__(self, client: StreamingClient, conversation: Optional[ConversationState] = None):
        self.client = client
        self.conversation = conversation or ConversationState()

    @property
    def loading(self) -> bool:
        return self.conversation.loading

    def ask(
        self,
        text: str,
        on_update: Optional[Callable[[ConversationState], None]] = None,
    ) -> Optional[str]:
        """提交并消费完整个流，返回最终的 bot 回复；空白输入不提交，返回 None。"""
        if not can_submit(text) or self.conversation.loading:
            return None
        received = []
        for piece in self.client.send_and_stream(text, self.conversation):
            received.append(piece)
            if on_update is not None:
                on_update(self.conversation)
        if on_update is not None:
            on_update(self.conversation)
        return "".join(received)
