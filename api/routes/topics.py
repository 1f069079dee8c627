"""Topic routes: publish, replay, live subscribe and the app auth probe.

Every request is resolved once into a :class:`TopicOperation`; anything that
does not resolve (or carries an invalid topic) gets the usage document.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from starlette.responses import Response

from application.dto import AuthProbeDTO
from application.services.publish_service import PublishService
from application.services.realtime_service import RealtimeService
from application.services.replay_service import ReplayService
from api.dependencies import get_publish_service, get_realtime_service, get_replay_service
from core.config import settings
from core.logging_config import get_logger
from core.response import JSON_MEDIA_TYPE, json_line_response, ndjson_response, usage_response
from domain.common.exceptions import InvalidTopicException
from domain.message import is_valid_topic
from shared.serializers import json_serializer


logger = get_logger(__name__)

router = APIRouter(tags=["Topics"])

HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH"]
PRIORITY_HEADER = "X-Priority"


class TopicOperation(str, Enum):
    PUBLISH = "publish"
    QUERY = "query"
    SUBSCRIBE = "subscribe"
    AUTH_PROBE = "auth_probe"


def resolve_operation(method: str, action: Optional[str] = None) -> Optional[TopicOperation]:
    """Map request method and the path segment after the topics to an operation.

    ``method`` is an HTTP verb or ``"WEBSOCKET"``.
    """
    method = method.upper()
    if method == "WEBSOCKET":
        return TopicOperation.SUBSCRIBE if action == "ws" else None
    if not action:
        return TopicOperation.PUBLISH if method in ("POST", "PUT") else None
    if method == "GET" and action == "json":
        return TopicOperation.QUERY
    if method == "GET" and action == "auth":
        return TopicOperation.AUTH_PROBE
    return None


def parse_topics(raw: Optional[str]) -> List[str]:
    """Split a comma separated topic list; every entry must be a valid topic name."""
    topics = (raw or "").split(",")
    for topic in topics:
        if not is_valid_topic(topic):
            raise InvalidTopicException(topic)
    return topics


async def _publish(request: Request, topic: str, service: PublishService) -> Response:
    raw = await request.body()
    body = raw.decode("utf-8", errors="replace")
    event = await service.publish(topic, body, request.headers.get(PRIORITY_HEADER))
    return json_line_response(event.model_dump())


async def _query(request: Request, topic: str, service: ReplayService) -> Response:
    records = await service.query(topic, request.query_params.get("since"))
    return ndjson_response(r.model_dump() for r in records)


def _auth_probe() -> Response:
    return Response(content=json_serializer.dumps(AuthProbeDTO().model_dump()), media_type=JSON_MEDIA_TYPE)


async def _dispatch(
    request: Request,
    topics: str,
    action: Optional[str],
    publisher: PublishService,
    replayer: ReplayService,
) -> Response:
    parsed = parse_topics(topics)
    operation = resolve_operation(request.method, action)
    if operation is None:
        logger.info("unsupported_request", method=request.method, action=action)
        return usage_response(settings.BASE_URL)
    structlog.contextvars.bind_contextvars(operation=operation.value)

    # 发布与查询只作用于第一个 topic
    if operation is TopicOperation.PUBLISH:
        return await _publish(request, parsed[0], publisher)
    if operation is TopicOperation.QUERY:
        return await _query(request, parsed[0], replayer)
    return _auth_probe()


@router.api_route("/{topics}", methods=HTTP_METHODS, include_in_schema=False)
async def topic_root(
    request: Request,
    topics: str,
    publisher: PublishService = Depends(get_publish_service),
    replayer: ReplayService = Depends(get_replay_service),
) -> Response:
    return await _dispatch(request, topics, None, publisher, replayer)


@router.api_route("/{topics}/{action:path}", methods=HTTP_METHODS, include_in_schema=False)
async def topic_action(
    request: Request,
    topics: str,
    action: str,
    publisher: PublishService = Depends(get_publish_service),
    replayer: ReplayService = Depends(get_replay_service),
) -> Response:
    # 只看第二段路径，其余段忽略（/t/json/extra 等同 /t/json）
    return await _dispatch(request, topics, action.split("/", 1)[0], publisher, replayer)


@router.websocket("/{topics}/ws")
async def subscribe_ws(
    ws: WebSocket,
    topics: str,
    rt: RealtimeService = Depends(get_realtime_service),
) -> None:
    await ws.accept()
    try:
        parsed = parse_topics(topics)
    except InvalidTopicException:
        logger.info("ws_rejected", topics=topics)
        await ws.close(code=1008)
        return

    try:
        await rt.subscribe(parsed, ws)
        # 客户端发来的帧一律忽略，只等待断开
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.error("ws_error", topics=parsed, error=str(exc), exc_info=True)
    finally:
        await rt.unsubscribe(ws)
        logger.info("ws_disconnected", topics=parsed)
