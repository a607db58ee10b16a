"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护模型与生成参数配置 (registry)。
- 提供 Gemini 的具体实现 (gemini_client)。
"""

from chat_relay.providers.base import ProviderClient
from chat_relay.providers.gemini_client import GeminiClient


def create_provider(settings) -> ProviderClient:
    """根据配置创建 Provider 实例。"""

    return GeminiClient(settings)


__all__ = ["ProviderClient", "GeminiClient", "create_provider"]
