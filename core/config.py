"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080

    @field_validator("port")
    @classmethod
    def _validate_port(cls, v: int) -> int:
        if v <= 1024:
            raise ValueError("port must be greater than 1024")
        return v


class RedisSettings(BaseModel):
    # Celery broker / result backend; unset means tasks run eagerly in-process
    url: Optional[str] = None


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./ntfy.sqlite"


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="ntfy-relay")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")
    LOG_LEVEL: Optional[str] = Field(default=None)

    # 分组配置：嵌套模型，环境变量使用 `__` 分隔，如 DATABASE__URL
    server: ServerSettings = Field(default_factory=ServerSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    # 使用说明文档中展示的域名
    BASE_URL: str = Field(default="example.com")

    # 过期消息清理：每小时第 N 分钟执行
    SWEEP_CRON_MINUTE: int = Field(default=58, ge=0, le=59)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["*"])

    # Realtime/WebSocket 配置
    REALTIME_WS_SEND_QUEUE_MAX: int = Field(default=100)
    REALTIME_WS_SEND_OVERFLOW_POLICY: str = Field(
        default="drop_oldest",
        description="队列溢出策略: drop_oldest | drop_new | disconnect"
    )

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except Exception:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
