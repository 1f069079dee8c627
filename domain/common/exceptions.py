"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode, PRIORITY_DOCS_LINK


class BusinessException(Exception):
    """业务异常基类

    `code` 为 ntfy 风格的五位错误码，`http_status` 默认由错误码推导。
    """

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        link: str = "",
        http_status: Optional[int] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.link = link
        self.http_status = http_status or BusinessCode(code).http_status
        super().__init__(self.message)


class InvalidPriorityException(BusinessException):
    def __init__(self, value: Optional[str] = None):
        details = {"priority": value} if value is not None else None
        super().__init__(
            code=BusinessCode.INVALID_PRIORITY,
            message="invalid priority parameter",
            error_type="InvalidPriority",
            details=details,
            link=PRIORITY_DOCS_LINK,
        )


class InvalidTopicException(BusinessException):
    def __init__(self, topic: Optional[str] = None):
        details = {"topic": topic} if topic is not None else None
        super().__init__(
            code=BusinessCode.BAD_REQUEST,
            message="invalid topic",
            error_type="InvalidTopic",
            details=details,
        )


class MessageConflictException(BusinessException):
    """(id, topic) 主键冲突：单次发布失败，不重试"""

    def __init__(self, message_id: str, topic: str):
        super().__init__(
            code=BusinessCode.INTERNAL_ERROR,
            message="internal server error",
            error_type="MessageConflict",
            details={"id": message_id, "topic": topic},
        )
