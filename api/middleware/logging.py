"""
请求日志中间件
记录每个 HTTP 请求的状态码与耗时，以及 WebSocket 连接的存活时长
"""
import time
from typing import Optional

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware:
    """
    日志记录中间件（纯 ASGI）

    - HTTP：`request_finished` / `request_client_error` / `request_server_error`，
      并在响应头中附带 `X-Process-Time`
    - WebSocket：连接结束时输出 `ws_connection_closed`
    - 未处理异常：`request_failed` 后继续抛出，由异常处理器处理

    消息正文不写入日志。
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket":
            await self._log_websocket(scope, receive, send)
            return
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        status_code: Optional[int] = None

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message)["X-Process-Time"] = f"{time.time() - start_time:.3f}"
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.time() - start_time,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        self._log_response(scope, status_code or 500, time.time() - start_time)

    async def _log_websocket(self, scope: Scope, receive: Receive, send: Send) -> None:
        start_time = time.time()
        try:
            await self.app(scope, receive, send)
        finally:
            logger.info("ws_connection_closed", path=scope["path"], duration=time.time() - start_time)

    def _log_response(self, scope: Scope, status_code: int, duration: float) -> None:
        log_data = {"status_code": status_code, "duration": duration}
        query = scope.get("query_string") or b""
        if query:
            log_data["query"] = query.decode("latin-1")

        if status_code < 400:
            logger.info("request_finished", **log_data)
        elif status_code < 500:
            # 客户端错误（含使用说明）
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
