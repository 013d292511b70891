"""领域层异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class RelayException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "RelayError",
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        super().__init__(self.message)


class WeatherFetchError(RelayException):
    """Fetching one city's current conditions failed.

    Raised by data sources for network errors, non-2xx upstream status,
    upstream-reported errors and undecodable bodies alike.
    """

    def __init__(self, city: str, reason: str):
        self.city = city
        self.reason = reason
        super().__init__(
            code=BusinessCode.UPSTREAM_ERROR,
            message=f"Failed to fetch weather for {city}: {reason}",
            error_type="WeatherFetchError",
            details={"city": city, "reason": reason},
        )


class MessageDecodeError(RelayException):
    """An inbound WebSocket frame could not be decoded into a known message."""

    def __init__(self, reason: str, raw: Optional[str] = None):
        self.reason = reason
        details = {"reason": reason}
        if raw is not None:
            # keep log lines bounded
            details["raw"] = raw[:200]
        super().__init__(
            code=BusinessCode.MESSAGE_INVALID,
            message=f"Invalid message: {reason}",
            error_type="MessageDecodeError",
            details=details,
        )
