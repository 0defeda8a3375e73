"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或机器人前端做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 conversation_id、endpoint 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """机器人配置无法读取且默认配置也无法写回，属于致命错误。"""


class StorageError(BusinessError):
    """会话记录读写失败。

    读失败会在存储层内部被恢复（重建默认会话），只有写失败才会向上抛出。
    """


class ValidationError(BusinessError):
    """参数或配置校验失败（非法角色、缺失 API Key 等）。"""


class RemoteError(BusinessError):
    """远端 API 调用失败的基类，不做自动重试。"""


class NetworkError(RemoteError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(RemoteError):
    """远端 API 返回非 2xx 状态码时抛出。"""


class ResponseFormatError(RemoteError):
    """响应体无法解析，或缺少期望的候选结果。"""
