"""
API依赖项 - 从应用状态获取服务实例
"""
from starlette.requests import HTTPConnection

from application.services.publish_service import PublishService
from application.services.realtime_service import RealtimeService
from application.services.replay_service import ReplayService


def _app_state_service(conn: HTTPConnection, name: str):
    svc = getattr(conn.app.state, name, None)
    if svc is None:
        raise RuntimeError(f"{name} not initialized. Ensure lifespan sets app.state.{name}.")
    return svc


async def get_realtime_service(conn: HTTPConnection) -> RealtimeService:
    return _app_state_service(conn, "realtime_service")


async def get_publish_service(conn: HTTPConnection) -> PublishService:
    return _app_state_service(conn, "publish_service")


async def get_replay_service(conn: HTTPConnection) -> ReplayService:
    return _app_state_service(conn, "replay_service")


__all__ = [
    "get_realtime_service",
    "get_publish_service",
    "get_replay_service",
]
