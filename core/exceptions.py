"""
自定义异常映射与全局异常处理器
"""
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
import uuid

from .response import error_response, usage_response
from shared.codes import BusinessCode
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, InvalidTopicException


def _request_id(request: Request) -> str:
    return getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())


def register_exception_handlers(app: FastAPI):
    """
    注册全局异常处理器

    Args:
        app: FastAPI应用实例
    """

    logger = get_logger(__name__)

    @app.exception_handler(InvalidTopicException)
    async def invalid_topic_handler(request: Request, exc: InvalidTopicException):
        """非法 topic：返回使用说明"""
        logger.info("invalid_topic", request_id=_request_id(request), details=exc.details)
        return usage_response(settings.BASE_URL)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        """处理业务异常"""
        request_id = _request_id(request)
        if exc.http_status >= 500:
            logger.error(
                "business_exception",
                request_id=request_id,
                error_type=exc.error_type,
                code=exc.code,
                details=exc.details,
            )
        else:
            logger.info(
                "request_rejected",
                request_id=request_id,
                error_type=exc.error_type,
                code=exc.code,
                details=exc.details,
            )
        return error_response(
            code=exc.code,
            message=exc.message,
            link=exc.link,
            http_status=exc.http_status,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """参数校验失败：与 ntfy 一致返回使用说明"""
        logger.info("request_validation_failed", request_id=_request_id(request), errors=exc.errors())
        return usage_response(settings.BASE_URL)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """未匹配的路由/方法：返回使用说明"""
        if exc.status_code in (404, 405):
            return usage_response(settings.BASE_URL)
        code = BusinessCode.INTERNAL_ERROR if exc.status_code >= 500 else BusinessCode.BAD_REQUEST
        return error_response(code=code, message=str(exc.detail), http_status=exc.status_code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """处理所有未捕获的异常"""
        logger.error(
            "unhandled_exception",
            request_id=_request_id(request),
            error=str(exc),
            exc_info=True,
        )
        return error_response(
            code=BusinessCode.INTERNAL_ERROR,
            message="internal server error",
        )
