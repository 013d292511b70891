"""
Shared business codes used across layers (Domain/Core/API).

Single source of truth for the `code` field of the unified response
envelope and for RelayException subclasses.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """业务状态码定义（单一来源）"""

    # 成功
    SUCCESS = 0

    # 参数错误 (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003
    MESSAGE_INVALID = 10004

    # 业务错误 (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006

    # 系统错误 (4xxxx)
    SYSTEM_ERROR = 40000
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003
    UPSTREAM_ERROR = 40004


__all__ = ["BusinessCode"]
