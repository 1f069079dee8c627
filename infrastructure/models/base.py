"""
数据库模型基类（SQLAlchemy 2.0 风格）
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """所有 ORM 模型的声明式基类；启动时据其元数据幂等建表（无迁移）"""
