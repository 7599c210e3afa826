"""业务异常

服务层只抛出这些异常，由 main.py 中注册的处理器统一转换为 HTTP 响应。
"""
from typing import Any, Dict, Optional


class MagpieError(Exception):
    """业务异常基类"""
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(MagpieError):
    """资源不存在"""
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(MagpieError):
    """参数校验失败"""
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidStateError(MagpieError):
    """当前状态不允许该操作"""
    status_code = 409
    code = "INVALID_STATUS"


class ConflictError(MagpieError):
    """唯一性冲突"""
    status_code = 409
    code = "DUPLICATE_ERROR"


class AuthenticationError(MagpieError):
    """未认证或凭证无效"""
    status_code = 401
    code = "AUTH_INVALID"


class PermissionDeniedError(MagpieError):
    """权限不足"""
    status_code = 403
    code = "FORBIDDEN"


class RateLimitError(MagpieError):
    """请求过于频繁"""
    status_code = 429
    code = "RATE_LIMITED"
