"""
数据库配置和连接管理
"""
import weakref
from typing import Optional

from sqlalchemy.engine import Engine, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import settings
from infrastructure.models import Base


def _build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"不支持的数据库驱动: {drivername}. 请使用 async 驱动或更新DATABASE__URL")

    return url.set(drivername=driver_map[drivername]).render_as_string(hide_password=False)


def sqlite_url_for(path: str) -> str:
    """把 SQLite 文件路径转换为异步连接串"""
    return f"sqlite+aiosqlite:///{path}"


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """创建异步引擎（Celery 任务/测试可独立创建并自行 dispose）"""
    return create_async_engine(
        _build_async_url(database_url or settings.database.url),
        echo=False,
        future=True,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False)


engine = build_engine()

AsyncSessionLocal = build_session_factory(engine)


# 已建表的同步引擎集合：建表只做一次，且幂等（CREATE TABLE IF NOT EXISTS）
_schema_ready: "weakref.WeakSet[Engine]" = weakref.WeakSet()


async def ensure_schema(session: AsyncSession) -> None:
    """首次使用某个引擎时惰性建表；不是迁移系统，没有版本管理。

    建表走独立连接并立即提交，不受调用方事务（只读/回滚）影响。
    """
    bind = session.bind
    if bind is None or bind.sync_engine in _schema_ready:
        return
    await create_tables(bind)


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """
    创建所有表

    根据models中定义的所有模型创建对应的数据库表（已存在则跳过）
    """
    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    _schema_ready.add(target.sync_engine)
