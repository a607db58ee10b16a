"""Gemini Provider 适配器。

使用 Google Generative Language REST 接口：
- 非流式: POST {base_url}/models/{model}:generateContent
- 流式:   POST {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证:   x-goog-api-key: <api_key>

流式响应是标准的事件流，每个 ``data:`` 行是一段 GenerateContentResponse JSON。
本实现只依赖公共字段：candidates/content/parts/text、finishReason、usageMetadata。
"""

import json
from typing import Any, Dict, Iterable, Optional

import httpx

from chat_relay.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_relay.domain.models import (
    ChatMessage,
    ChatResult,
    ChatStreamChunk,
    ChatUsage,
    ProviderRequest,
)
from chat_relay.providers.registry import GEMINI_CONFIG


class GeminiClient:
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def __init__(self, settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings

    def provider_model(self, logical_name: str) -> str:
        return GEMINI_CONFIG.model(logical_name).provider_model

    # ---- 非流式 ----

    def chat(self, req: ProviderRequest) -> ChatResult:
        """执行一次非流式调用，返回完整文本。"""

        api_key = self._api_key()
        payload = self._build_payload(req)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    self._endpoint(req, "generateContent"),
                    json=payload,
                    headers=self._headers(api_key),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        self._raise_for_status(resp.status_code, lambda: resp.text)
        try:
            data = resp.json()
        except ValueError:
            # 网关/代理有时返回 200 的 HTML 页面
            raise ApiError(code="BAD_RESPONSE", message="Gemini response is not valid JSON", http_status=502)
        return self._parse_response(data, req)

    # ---- 流式 ----

    def chat_stream(self, req: ProviderRequest) -> Iterable[ChatStreamChunk]:
        """执行一次流式调用，按到达顺序逐个 yield ChatStreamChunk。

        这是一个生成器：在第一次 next() 之前不会发出任何网络请求。
        """

        api_key = self._api_key()
        payload = self._build_payload(req)
        # 连接阶段受 http_timeout 约束；生成过程中两个片段之间可能间隔很久，不设读超时
        timeout = httpx.Timeout(self._settings.http_timeout, read=None)
        try:
            with httpx.Client(timeout=timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    self._endpoint(req, "streamGenerateContent"),
                    params={"alt": "sse"},
                    json=payload,
                    headers=self._headers(api_key),
                ) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                    self._raise_for_status(resp.status_code, lambda: resp.text)
                    for line in resp.iter_lines():
                        if not line:
                            continue
                        data_str = line
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        else:
                            data_str = data_str.strip()
                        if not data_str or data_str == "[DONE]":
                            continue
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        yield self._parse_stream_chunk(payload_chunk, req)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    # ---- 辅助方法 ----

    def _api_key(self) -> str:
        api_key = getattr(self._settings, "gemini_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set", http_status=500)
        return api_key

    def _endpoint(self, req: ProviderRequest, method: str) -> str:
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        return f"{base.rstrip('/')}/models/{self.provider_model(req.model)}:{method}"

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _raise_for_status(status_code: int, body) -> None:
        if status_code == 429:
            # 不做退避，直接交给上层
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if status_code >= 400:
            raise ApiError(code="API_ERROR", message=body(), http_status=status_code)

    def _build_payload(self, req: ProviderRequest) -> dict:
        """将 ProviderRequest 转成 Gemini 所需的请求 JSON。"""

        return {
            "contents": [self._message_to_payload(m) for m in req.messages],
            "generationConfig": req.generation.to_payload(),
        }

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {"role": message.role, "parts": [{"text": message.content}]}

    def _parse_response(self, data: dict, req: ProviderRequest) -> ChatResult:
        text, finish_reason = self._extract_candidate(data)
        return ChatResult(
            provider=self.name,
            model=req.model,
            text=text,
            finish_reason=finish_reason,
            usage=self._parse_usage(data),
            raw=data,
        )

    def _parse_stream_chunk(self, data: dict, req: ProviderRequest) -> ChatStreamChunk:
        text, finish_reason = self._extract_candidate(data)
        return ChatStreamChunk(
            provider=self.name,
            model=req.model,
            text=text,
            finish_reason=finish_reason,
            usage=self._parse_usage(data),
            raw=data,
        )

    @staticmethod
    def _extract_candidate(data: Any) -> tuple[str, Optional[str]]:
        """取第一个候选的文本与结束原因；错误对象、被拦截的提示词与结构异常的响应转为 ApiError。"""

        if not isinstance(data, dict):
            raise ApiError(code="BAD_RESPONSE", message="Gemini response is not a JSON object", http_status=502)
        error = data.get("error")
        if error:
            if not isinstance(error, dict):
                raise ApiError(code="API_ERROR", message=str(error), http_status=500)
            raise ApiError(
                code="API_ERROR",
                message=error.get("message") or json.dumps(error, ensure_ascii=False),
                http_status=error.get("code") or 500,
            )
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ApiError(code="PROMPT_BLOCKED", message=f"Prompt blocked: {block_reason}", http_status=400)
            return "", None
        first = candidates[0] if isinstance(candidates, list) else None
        if not isinstance(first, dict):
            raise ApiError(code="BAD_RESPONSE", message="Gemini candidate is malformed", http_status=502)
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        return text, first.get("finishReason")

    @staticmethod
    def _parse_usage(data: dict) -> Optional[ChatUsage]:
        usage_raw = data.get("usageMetadata") or {}
        if not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("promptTokenCount", 0),
            completion_tokens=usage_raw.get("candidatesTokenCount", 0),
            total_tokens=usage_raw.get("totalTokenCount", 0),
        )
