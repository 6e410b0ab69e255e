"""
Layer 2 – 调度层
单次调用：适配器 fetch → parse
批量调用：按输入顺序并发执行，单个符号失败不会中断整批，失败原因写在对应位置上
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

from market_service.adapters.base import SourceAdapter
from market_service.config import settings
from market_service.errors import InvalidRequest, ServiceError
from market_service.models import BatchItem

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchOrchestrator:
    """并发调度器，限制同时在途的上游请求数"""

    def __init__(self, max_concurrency: Optional[int] = None, batch_max_size: Optional[int] = None):
        self.max_concurrency = max_concurrency or settings.BATCH_CONCURRENCY
        self.batch_max_size = batch_max_size or settings.BATCH_MAX_SIZE

    async def fetch_one(self, adapter: SourceAdapter, request: dict) -> List[Any]:
        """单次调用：任何 ServiceError 原样抛出给调用方"""
        return await adapter.run(request)

    def check_batch(self, symbols: Sequence[str]) -> List[str]:
        """校验批量输入：非空、不超过上限、每项为非空字符串"""
        if not symbols:
            raise InvalidRequest("批量请求的符号列表不能为空")
        if len(symbols) > self.batch_max_size:
            raise InvalidRequest(
                f"批量请求最多 {self.batch_max_size} 个符号，实际 {len(symbols)} 个"
            )
        cleaned = [str(s).strip() for s in symbols]
        if not all(cleaned):
            raise InvalidRequest("批量请求中存在空符号")
        return cleaned

    async def fetch_batch(
        self,
        symbols: Sequence[str],
        worker: Callable[[str], Awaitable[Any]],
    ) -> List[BatchItem]:
        """
        批量调用

        Args:
            symbols: 有序符号列表
            worker: 处理单个符号的协程函数，返回该符号的记录

        Returns:
            与输入等长、顺序一致的 BatchItem 列表
        """
        symbols = self.check_batch(symbols)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _slot(symbol: str) -> BatchItem:
            async with semaphore:
                try:
                    data = await worker(symbol)
                except ServiceError as exc:
                    logger.warning(f"批量请求中 {symbol} 失败: {exc.error_type}: {exc.message}")
                    return BatchItem(
                        symbol=symbol,
                        success=False,
                        error=exc.message,
                        error_type=exc.error_type,
                    )
            return BatchItem(symbol=symbol, success=True, data=data)

        return list(await asyncio.gather(*(_slot(s) for s in symbols)))

    async def gather_tolerant(
        self,
        jobs: Iterable[Callable[[], Awaitable[T]]],
        label: str = "",
    ) -> List[Optional[T]]:
        """
        并发执行一组任务，失败的位置为 None（只记录日志）

        用于列表类聚合接口：某个品种 / 某一天失败不影响其余结果
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run(job: Callable[[], Awaitable[T]]) -> Optional[T]:
            async with semaphore:
                try:
                    return await job()
                except ServiceError as exc:
                    logger.warning(f"{label} 子任务失败，已跳过: {exc.error_type}: {exc.message}")
                    return None

        return list(await asyncio.gather(*(_run(job) for job in jobs)))
