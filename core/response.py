"""
统一响应格式定义

ntfy 客户端期望的响应：单行 JSON（以换行结尾）、NDJSON 流、纯文本使用说明。
"""
from typing import Iterable, Optional

from pydantic import BaseModel
from starlette.responses import PlainTextResponse, Response

from shared.codes import BusinessCode
from shared.serializers import json_serializer


JSON_MEDIA_TYPE = "application/json"
NDJSON_MEDIA_TYPE = "application/x-ndjson; charset=utf-8"

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


class ErrorResponse(BaseModel):
    """错误响应体（ntfy 格式）"""
    code: int
    http: int
    error: str
    link: str = ""


def json_line_response(
    payload: dict,
    status_code: int = 200,
    headers: Optional[dict] = None,
) -> Response:
    """
    创建单行 JSON 响应

    Args:
        payload: 已整理好字段的字典
        status_code: HTTP 状态码
        headers: 额外响应头

    Returns:
        Response: body 为 JSON + 换行
    """
    return Response(
        content=json_serializer.dumps_line(payload),
        status_code=status_code,
        media_type=JSON_MEDIA_TYPE,
        headers=headers,
    )


def ndjson_response(records: Iterable[dict]) -> Response:
    """
    创建 NDJSON 响应：每条记录一行，末尾换行；空结果仅返回一个换行
    """
    body = "\n".join(json_serializer.dumps(r) for r in records) + "\n"
    return Response(
        content=body,
        status_code=200,
        media_type=NDJSON_MEDIA_TYPE,
        headers={**CORS_HEADERS, "Cache-Control": "no-cache"},
    )


def error_response(
    code: int,
    message: str,
    link: str = "",
    http_status: Optional[int] = None,
    cors: bool = True,
) -> Response:
    """
    创建错误响应

    Args:
        code: ntfy 错误码（如 40007）
        message: 错误消息
        link: 文档链接
        http_status: HTTP 状态码，缺省由错误码推导
        cors: 是否附带 CORS 头

    Returns:
        Response: 单行 JSON 错误体
    """
    status_code = http_status or BusinessCode(code).http_status
    body = ErrorResponse(code=int(code), http=status_code, error=message, link=link)
    return json_line_response(
        body.model_dump(),
        status_code=status_code,
        headers=dict(CORS_HEADERS) if cors else None,
    )


def build_usage_text(base_url: str) -> str:
    return f"""Bad Request
Follow the tutorial below:

Publish:
    curl -d {{content}} "http://{base_url}/{{topic}}"
Subscription:
    websocat wss://{base_url}/{{topic}}/ws
Pull messages:
    curl "http://{base_url}/{{topic}}/json"                     # default all
    curl "http://{base_url}/{{topic}}/json?since=1763217840"    # since timestamp
    curl "http://{base_url}/{{topic}}/json?since=uP4ID5x0fkQh"  # since message id
Auth: # only for ntfy app
    curl "http://{base_url}/auth" -> `{{ "success": true }}`
Message Priority:
    Visit http://docs.ntfy.sh/publish/#message-priority
\tSupport HTTP Header `X-Priority` with value `1-5` only
Cache and Expires:
    cache messages for 12h and remove every 1h

Docs: https://docs.ntfy.sh/subscribe/api/
Only support partial features.
"""


def usage_response(base_url: str) -> PlainTextResponse:
    """使用说明（400 text/plain），用于非法 topic 或不支持的请求"""
    return PlainTextResponse(build_usage_text(base_url), status_code=400)
