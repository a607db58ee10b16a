"""统一的对话与结果数据模型。

本模块定义了 relay 内部与 Provider 之间共享的标准数据结构：

- ChatMessage: 一条发给 Provider 的对话消息（user/model）。
- GenerationConfig: 固定的生成参数（temperature/top_p/top_k 等）。
- ProviderRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult / ChatStreamChunk: 从 Provider 解析后的统一响应结果。

Provider 适配器（如 GeminiClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List


# Provider 侧消息角色（Gemini 使用 user/model）
Role = Literal["user", "model"]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。"""

    role: Role
    content: str


@dataclass(frozen=True)
class GenerationConfig:
    """每次生成会话使用的固定参数。"""

    temperature: float = 1.0
    top_p: float = 0.95
    top_k: int = 64
    max_output_tokens: int = 8192
    response_mime_type: str = "text/plain"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topP": self.top_p,
            "topK": self.top_k,
            "maxOutputTokens": self.max_output_tokens,
            "responseMimeType": self.response_mime_type,
        }


@dataclass
class ProviderRequest:
    """一次完整的生成请求。

    relay 每次都新建 ProviderRequest，messages 中只有本轮用户消息，
    不携带任何历史。
    """

    provider: str  # 逻辑 Provider 名，如 "gemini"
    model: str  # 逻辑模型名，如 "chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    generation: GenerationConfig = field(default_factory=GenerationConfig)


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次非流式调用的最终结果。

    - provider / model: 逻辑名。
    - text: 拼接后的完整回复。
    - finish_reason: Provider 给出的结束原因，例如 "STOP"。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    text: str
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None


@dataclass
class ChatStreamChunk:
    """流式对话的增量结果，text 为本次生成步骤产出的片段。"""

    provider: str
    model: str
    text: str
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
