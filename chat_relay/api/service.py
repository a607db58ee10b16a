"""relay 服务层。

RelayService 在进程启动时构造一次，持有配置与 Provider 客户端，
由 HTTP 层显式传入，不依赖模块级全局变量。

每次调用都新建 ProviderRequest，messages 中只有本轮用户消息，
服务端不保留任何跨请求的对话历史。
"""

import itertools
from typing import Iterable, Iterator, Optional

from chat_relay.domain.models import ChatMessage, ProviderRequest
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.providers import create_provider
from chat_relay.providers.base import ProviderClient
from chat_relay.providers.registry import GEMINI_CONFIG


class RelayService:
    def __init__(self, settings, provider: Optional[ProviderClient] = None):
        self.settings = settings
        self.provider = provider or create_provider(settings)
        self.model = getattr(settings, "default_model", "chat")
        self.generation = GEMINI_CONFIG.model(self.model).generation

    def build_request(self, message: str) -> ProviderRequest:
        return ProviderRequest(
            provider=self.provider.name,
            model=self.model,
            messages=[ChatMessage(role="user", content=message)],
            generation=self.generation,
        )

    def complete(self, message: str) -> str:
        """非流式调用，返回完整回复文本。"""
        result = self.provider.chat(self.build_request(message))
        logger.info("Chat completed", extra={"extra": {
            "provider": result.provider,
            "finish_reason": result.finish_reason,
            "chars": len(result.text),
        }})
        return result.text

    def stream(self, message: str) -> Iterator[str]:
        """按到达顺序产出非空片段；在第一次 next() 之前不发出请求。"""
        for chunk in self.provider.chat_stream(self.build_request(message)):
            if chunk.text:
                yield chunk.text

    def open_stream(self, message: str) -> Iterable[str]:
        """打开流并预取第一个片段。

        首个片段之前的 Provider 错误在这里直接抛出，HTTP 层此时还没有写响应头，
        可以返回结构化的错误。流为空时返回空序列。
        """
        fragments = self.stream(message)
        try:
            first = next(fragments)
        except StopIteration:
            logger.info("Provider stream ended without fragments")
            return ()
        return itertools.chain([first], fragments)
