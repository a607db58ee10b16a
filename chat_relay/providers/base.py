"""Provider 抽象接口。

RelayService 不直接依赖具体厂商的 HTTP 接口，而是依赖此协议：

- 厂商适配器（GeminiClient）负责把 ProviderRequest 转成具体 API 请求，
  并把响应 JSON 解析为 ChatResult / ChatStreamChunk。
- 测试中可以用任意实现了 chat / chat_stream 的对象替换真实 Provider。
"""

from typing import Protocol, Iterable
from chat_relay.domain.models import ProviderRequest, ChatResult, ChatStreamChunk


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - provider_model(logical): 逻辑模型名对应的厂商模型 ID。
    - chat(req): 执行一次非流式调用，返回统一的 ChatResult。
    - chat_stream(req): 执行一次流式调用，按到达顺序产出增量。
    """

    name: str

    def provider_model(self, logical_name: str) -> str:
        ...

    def chat(self, req: ProviderRequest) -> ChatResult:
        ...

    def chat_stream(self, req: ProviderRequest) -> Iterable[ChatStreamChunk]:
        ...
