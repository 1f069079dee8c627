"""
Request ID 中间件
为 HTTP 请求和 WebSocket 连接生成或透传追踪ID，并绑定到 structlog 上下文
"""
import uuid

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


def resolve_client_ip(headers: Headers, client) -> str:
    # 反向代理场景优先取 X-Forwarded-For 的第一个地址
    forwarded = headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return client[0] if client else "unknown"


class RequestIDMiddleware:
    """
    Request ID 追踪中间件（纯 ASGI，同时覆盖 websocket 连接）

    request_id 写入 `request.state` 与日志上下文；
    HTTP 响应头中回传 `X-Request-ID`。
    """

    HEADER_NAME = "X-Request-ID"

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request_id = headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        client_ip = resolve_client_ip(headers, scope.get("client"))

        state = scope.setdefault("state", {})
        state["request_id"] = request_id
        state["client_ip"] = client_ip

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=scope.get("method", "WEBSOCKET"),
            path=scope["path"],
        )

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[self.HEADER_NAME] = request_id
            await send(message)

        await self.app(scope, receive, send_with_request_id)
