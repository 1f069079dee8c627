"""
FastAPI应用主入口

    python main.py [--port/-p 8080] [--sqlite/-s ./ntfy.sqlite]
"""
import argparse
import asyncio
import sys
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import topics as topic_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.services.expiry_service import ExpirySweeper
from application.services.publish_service import PublishService
from application.services.realtime_service import RealtimeService
from application.services.replay_service import ReplayService
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger, configure_logging
from infrastructure.database import build_engine, build_session_factory, create_tables, sqlite_url_for
from infrastructure.realtime.brokers import InMemoryRealtimeBroker
from infrastructure.realtime.connection_manager import ConnectionManager
from infrastructure.unit_of_work import uow_factory_for


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


def sweeps_in_process(database_url: Optional[str] = None) -> bool:
    """Celery beat 只清理 `settings.database.url`；未配置 broker 或 CLI 指定了其他库时由本进程定时清理"""
    if not settings.redis.url:
        return True
    return bool(database_url) and database_url != settings.database.url


def create_app(database_url: Optional[str] = None) -> FastAPI:
    """
    创建应用实例

    Args:
        database_url: 覆盖配置中的数据库连接串（CLI `--sqlite`、测试）
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        engine = build_engine(database_url)
        await create_tables(engine)
        uow_factory = uow_factory_for(build_session_factory(engine))
        logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))

        # 启动时先清理一次过期消息
        sweeper = ExpirySweeper(uow_factory)
        await sweeper.sweep()

        broker = InMemoryRealtimeBroker()
        conn_mgr = ConnectionManager()
        realtime = RealtimeService(broker=broker, connections=conn_mgr)
        await broker.subscribe(realtime.on_broker_event)

        app.state.realtime_broker = broker
        app.state.realtime_connections = conn_mgr
        app.state.realtime_service = realtime
        app.state.publish_service = PublishService(uow_factory, realtime)
        app.state.replay_service = ReplayService(uow_factory)
        app.state.expiry_sweeper = sweeper
        logger.info("realtime_initialized")

        sweep_task = None
        if sweeps_in_process(database_url):
            sweep_task = asyncio.create_task(sweeper.run_hourly(settings.SWEEP_CRON_MINUTE))
            logger.info("sweep_scheduled_in_process", minute=settings.SWEEP_CRON_MINUTE)

        yield

        if sweep_task is not None:
            sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweep_task
        await conn_mgr.aclose()
        await broker.aclose()
        await engine.dispose()
        logger.info("application_shutdown", message="Application shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="ntfy 兼容的消息发布/订阅服务",
        # `/docs` 等路径会与 topic 名冲突
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # 添加中间件（注意顺序：从下往上执行）
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(topic_routes.router)
    return app


app = create_app()


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="ntfy-relay", description="ntfy compatible publish/subscribe relay")
    ap.add_argument("--port", "-p", type=int, default=settings.server.port, help="Port to listen on (default: 8080)")
    ap.add_argument("--sqlite", "-s", default=None, help="SQLite database file (default: ./ntfy.sqlite)")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.port <= 1024:
        print("port must be greater than 1024", file=sys.stderr)
        return 1

    import uvicorn

    database_url = sqlite_url_for(args.sqlite) if args.sqlite else None
    uvicorn.run(
        create_app(database_url),
        host=settings.server.host,
        port=args.port,
        log_level="debug" if settings.DEBUG else "info",
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
