"""Chat Relay 顶层包。

该包提供一个把用户消息转发给 Gemini 并把流式回复逐帧转发给客户端的 relay，
包括配置加载、领域模型、Provider 适配、帧编解码、HTTP 服务、
流式客户端与桌面会话窗口。
"""

from chat_relay.client.stream_client import ChatSession, StreamingClient

__all__ = ["ChatSession", "StreamingClient"]
