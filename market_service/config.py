"""
行情服务配置模块
支持从环境变量与 .env 文件读取配置
"""

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _is_docker() -> bool:
    """检测当前是否运行在 Docker 容器内"""
    return (
        os.path.exists("/.dockerenv")
        or os.environ.get("DOCKER_CONTAINER", "").lower() in ("1", "true", "yes")
    )


def _default_host() -> str:
    """容器内监听所有网卡，本地开发只监听回环地址"""
    return "0.0.0.0" if _is_docker() else "127.0.0.1"


class MarketServiceSettings(BaseSettings):
    """行情服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default_factory=_default_host)
    PORT: int = Field(default=8080)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )
    API_PREFIX: str = Field(default="")

    # ── 认证配置（为空则不启用 Bearer 认证） ─────────────────
    API_KEY: str = Field(default="")

    # ── 上游请求配置 ───────────────────────────────────────
    UPSTREAM_TIMEOUT: float = Field(default=30.0, gt=0)          # 总超时（秒）
    UPSTREAM_CONNECT_TIMEOUT: float = Field(default=10.0, gt=0)  # 建连超时（秒）
    UPSTREAM_VERIFY_SSL: bool = Field(default=True)
    UPSTREAM_USER_AGENT: str = Field(default=_DEFAULT_USER_AGENT)

    # ── 批量请求配置 ───────────────────────────────────────
    BATCH_MAX_SIZE: int = Field(default=50, gt=0)
    BATCH_CONCURRENCY: int = Field(default=8, gt=0)

    # ── 符号注册表刷新 ─────────────────────────────────────
    REGISTRY_REFRESH_INTERVAL: float = Field(default=3600.0, gt=0)
    REGISTRY_STALE_AFTER: float = Field(default=600.0, ge=0)
    REGISTRY_REFRESH_ON_STARTUP: bool = Field(default=True)

    # ── 数据配置 ──────────────────────────────────────────
    DEFAULT_HISTORY_LIMIT: int = Field(default=30, gt=0)
    STOCK_DATA_SOURCE: str = Field(default="sina")  # sina / simulated

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")
    TZ: str = Field(default="Asia/Shanghai")


@lru_cache
def get_settings() -> MarketServiceSettings:
    """获取全局配置（单例）"""
    return MarketServiceSettings()


settings = get_settings()
