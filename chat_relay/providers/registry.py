"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gemini-1.5-flash"。

生成参数也集中在这里，relay 对每个请求都使用同一组固定参数。"""

from dataclasses import dataclass
from typing import Dict

from chat_relay.domain.models import GenerationConfig


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    generation: GenerationConfig


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]

    def model(self, logical_name: str) -> ModelConfig:
        try:
            return self.models[logical_name]
        except KeyError:
            raise KeyError(f"Unknown model for {self.name}: {logical_name!r}") from None


GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models={
        "chat": ModelConfig(
            logical_name="chat",
            provider_model="gemini-1.5-flash",
            generation=GenerationConfig(
                temperature=1.0,
                top_p=0.95,
                top_k=64,
                max_output_tokens=8192,
                response_mime_type="text/plain",
            ),
        )
    },
)
