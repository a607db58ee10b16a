"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在 API 层（FastAPI 异常处理器）或客户端做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """启动配置缺失或非法，例如未设置 GEMINI_API_KEY。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、连接被对端中断等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误，或流中携带 error 对象时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误。本项目不做重试，直接向上抛出。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class StreamInterruptedError(BusinessError):
    """流在帧中途结束，说明连接被异常关闭。"""
