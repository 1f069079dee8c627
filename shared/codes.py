"""
Shared business codes used across layers (Domain/Core/API).

Codes follow the ntfy error numbering so existing clients can match on them:
the first three digits repeat the HTTP status, the last two number the error.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """业务状态码定义（单一来源）"""

    # 成功
    SUCCESS = 0

    # 参数错误 (400xx)
    BAD_REQUEST = 40000
    INVALID_PRIORITY = 40007

    # 系统错误 (500xx)
    INTERNAL_ERROR = 50001

    @property
    def http_status(self) -> int:
        """ntfy 约定：错误码前三位即 HTTP 状态码"""
        if self == BusinessCode.SUCCESS:
            return 200
        return int(self) // 100


# Documentation links returned in error payloads.
PRIORITY_DOCS_LINK = "https://ntfy.sh/docs/publish/#message-priority"


__all__ = ["BusinessCode", "PRIORITY_DOCS_LINK"]
