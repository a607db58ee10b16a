"""HTTP 请求与响应体。"""

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """一次用户提交：只有一条消息，没有会话 ID，也没有历史。"""

    message: str = Field(description="用户消息，允许为空字符串，原样转发给 Provider")


class ChatResponse(BaseModel):
    response: str


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
    model: str
