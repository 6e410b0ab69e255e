"""
错误类型
所有错误都只影响触发它的那一次请求，由 main.py 中的异常处理器转换为统一响应
"""

from typing import Optional


class ServiceError(Exception):
    """服务错误基类，携带对应的 HTTP 状态码"""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def error_type(self) -> str:
        return type(self).__name__


class NotFound(ServiceError):
    """合约 / 品种 / 交易所无法解析"""

    status_code = 404


class InvalidRequest(ServiceError):
    """请求参数不合法（日期格式、批量大小等）"""

    status_code = 400


class UpstreamTimeout(ServiceError):
    """建连或总耗时超过上限"""

    status_code = 504


class UpstreamUnavailable(ServiceError):
    """网络 / 传输错误，或上游返回非成功状态码"""

    status_code = 502


class RegistryUnavailable(ServiceError):
    """品种映射尚未发布过任何一代"""

    status_code = 503


class ParseError(ServiceError):
    """
    上游返回内容与预期格式不符

    no_data=True 表示上游明确返回了空数据（非交易日、合约不存在等），
    其余情况表示返回内容的结构无法识别。
    """

    status_code = 502

    def __init__(self, message: str, *, no_data: bool = False, source: Optional[str] = None):
        super().__init__(message)
        self.no_data = no_data
        self.source = source
        if no_data:
            self.status_code = 404

    @classmethod
    def empty(cls, message: str, source: Optional[str] = None) -> "ParseError":
        return cls(message, no_data=True, source=source)

    @classmethod
    def shape(cls, message: str, source: Optional[str] = None) -> "ParseError":
        return cls(message, no_data=False, source=source)
