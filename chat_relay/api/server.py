"""relay 的 HTTP 入口（FastAPI）。

- POST /chat          非流式，返回 {"response": ...}
- POST /chat/stream   流式，逐帧写出 ``data: <fragment>\\n\\n``
- GET  /health        健康检查

首个片段之前的 Provider 错误返回 500 + {"error": ...}；
响应头写出之后的错误只能记录日志并中断连接，客户端据此判断流异常结束。
"""

from typing import Iterable, Iterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from chat_relay.api.schemas import ChatRequest, ChatResponse, ErrorResponse, HealthResponse
from chat_relay.api.service import RelayService
from chat_relay.config.settings import load_settings
from chat_relay.domain.exceptions import BusinessError, ConfigurationError
from chat_relay.infrastructure.logging.logger import logger, setup_logger
from chat_relay.streaming.frames import encode_frame

CHAT_ERROR = "Error generating response from Gemini API"
STREAM_ERROR = "Error streaming response from Gemini API"

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _relay_frames(fragments: Iterable[str], split_newlines: bool) -> Iterator[str]:
    sent = 0
    try:
        for fragment in fragments:
            yield encode_frame(fragment, split_newlines)
            sent += 1
    except BusinessError as e:
        # 响应头已经发出，无法再改成 JSON 错误；重新抛出让服务器中断连接
        logger.error(f"Stream aborted: {e.message}", extra={"extra": {
            "code": e.code,
            "fragments_sent": sent,
        }})
        raise
    logger.info("Stream completed", extra={"extra": {"fragments_sent": sent}})


def create_app(service: RelayService) -> FastAPI:
    app = FastAPI(title="Chat Relay")
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(getattr(service.settings, "cors_origins", ["*"])),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Rejected request body", extra={"extra": {"path": request.url.path}})
        return _error(400, "message is required")

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(model=service.provider.provider_model(service.model))

    @app.post("/chat", response_model=ChatResponse, responses={500: {"model": ErrorResponse}})
    def chat(payload: ChatRequest):
        try:
            text = service.complete(payload.message)
        except BusinessError as e:
            logger.error(f"Error generating response from Gemini API: {e.message}", extra={"extra": {
                "code": e.code,
            }})
            return _error(500, CHAT_ERROR)
        return ChatResponse(response=text)

    @app.post("/chat/stream", responses={500: {"model": ErrorResponse}})
    def chat_stream(payload: ChatRequest):
        try:
            fragments = service.open_stream(payload.message)
        except BusinessError as e:
            logger.error(f"Error streaming response from Gemini API: {e.message}", extra={"extra": {
                "code": e.code,
            }})
            return _error(500, STREAM_ERROR)
        split = getattr(service.settings, "sse_split_newlines", True)
        return StreamingResponse(
            _relay_frames(fragments, split),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    return app


def main() -> None:
    settings = load_settings()
    setup_logger(settings)
    try:
        settings.require_api_key()
    except ConfigurationError as e:
        logger.critical(f"Refusing to start: {e.message}")
        raise SystemExit(1)
    app = create_app(RelayService(settings))
    logger.info(f"Server running on port {settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
