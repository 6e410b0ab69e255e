"""
品种注册表刷新调度
按固定间隔重新拉取映射脚本并发布新一代；查询未命中且当前一代过旧时也会按需刷新。
刷新失败只记录日志，保留上一代继续服务。
"""

import asyncio
import logging
from typing import Optional

from market_service.adapters.symbols import SymbolScriptAdapter
from market_service.config import settings
from market_service.layers.registry import SymbolRegistry

logger = logging.getLogger(__name__)


class RegistryRefresher:
    """注册表的唯一写入者"""

    def __init__(
        self,
        registry: SymbolRegistry,
        adapter: SymbolScriptAdapter,
        interval: Optional[float] = None,
        stale_after: Optional[float] = None,
    ):
        self.registry = registry
        self.adapter = adapter
        self.interval = interval or settings.REGISTRY_REFRESH_INTERVAL
        self.stale_after = settings.REGISTRY_STALE_AFTER if stale_after is None else stale_after
        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self.last_error: Optional[str] = None

    async def refresh(self) -> bool:
        """拉取 + 解析 + 发布，成功返回 True；失败保留上一代"""
        try:
            mappings = await self.adapter.run({})
        except Exception as exc:
            self.last_error = f"{type(exc).__name__}: {exc}"
            logger.warning(f"⚠️ 品种注册表刷新失败，继续使用上一代: {self.last_error}")
            return False
        self.registry.publish(mappings)
        self.last_error = None
        return True

    def trigger(self) -> asyncio.Task:
        """
        在后台启动一次刷新并立即返回；已有刷新在进行时复用同一个任务
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self.refresh())
        return self._inflight

    def is_stale(self) -> bool:
        age = self.registry.age
        return age is None or age >= self.stale_after

    async def refresh_if_stale(self) -> bool:
        """当前一代过旧（或从未发布）时刷新一次，返回是否发布了新一代"""
        if not self.is_stale():
            return False
        return await asyncio.shield(self.trigger())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await asyncio.shield(self.trigger())

    def start(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._run())
            logger.info(f"🔄 品种注册表定时刷新已启动（间隔 {self.interval:.0f}s）")

    async def stop(self) -> None:
        for task in (self._loop_task, self._inflight):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._inflight = None
