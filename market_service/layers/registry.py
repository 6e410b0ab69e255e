"""
品种注册表
保存 交易所 → 品种 → 新浪 node 参数 的映射，查询时只读当前已发布的一代，不做任何网络 I/O。

每次刷新构建一个完整的新 RegistryGeneration，再一次性替换引用；
读者要么看到旧的一代，要么看到新的一代，不会看到半成品。
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from market_service.config import settings
from market_service.errors import NotFound, RegistryUnavailable
from market_service.models import SymbolMapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryGeneration:
    """一次完整、不可变的映射快照"""
    number: int
    mappings: Tuple[SymbolMapping, ...]
    published_at: float
    published_at_text: str


class SymbolRegistry:
    """品种注册表，写入只发生在 publish()"""

    def __init__(self):
        self._generation: Optional[RegistryGeneration] = None

    # ── 发布 ──────────────────────────────────────────────

    def publish(self, mappings: Iterable[SymbolMapping]) -> RegistryGeneration:
        """用一组映射构建新的一代并原子替换"""
        previous = self._generation
        generation = RegistryGeneration(
            number=(previous.number + 1) if previous else 1,
            mappings=tuple(mappings),
            published_at=time.monotonic(),
            published_at_text=datetime.now(ZoneInfo(settings.TZ)).strftime("%Y-%m-%d %H:%M:%S"),
        )
        self._generation = generation
        logger.info(
            f"✅ 品种注册表已发布第 {generation.number} 代，共 {len(generation.mappings)} 个品种"
        )
        return generation

    @property
    def generation(self) -> Optional[RegistryGeneration]:
        return self._generation

    @property
    def age(self) -> Optional[float]:
        """当前一代已发布的秒数，从未发布返回 None"""
        generation = self._generation
        if generation is None:
            return None
        return time.monotonic() - generation.published_at

    def _current(self) -> RegistryGeneration:
        generation = self._generation
        if generation is None:
            raise RegistryUnavailable("品种映射尚未加载，请稍后重试")
        return generation

    # ── 查询 ──────────────────────────────────────────────

    def list(self, exchange_code: Optional[str] = None) -> List[SymbolMapping]:
        """列出某交易所（或全部）的品种映射，交易所代码区分大小写"""
        mappings = self._current().mappings
        if exchange_code is None:
            return list(mappings)
        return [m for m in mappings if m.exchange_code == exchange_code]

    def resolve(self, exchange_code: str, name_or_mark: str) -> SymbolMapping:
        """
        按交易所 + 品种名称（或 node 参数）解析映射

        Args:
            exchange_code: 交易所代码，区分大小写（SHFE）
            name_or_mark: 品种中文名（铜）或 node 参数（tong_qh），不区分大小写
        """
        generation = self._current()
        key = name_or_mark.strip().casefold()
        for mapping in generation.mappings:
            if mapping.exchange_code != exchange_code:
                continue
            if key in (mapping.product_display_name.casefold(), mapping.upstream_mark.casefold()):
                return mapping
        raise NotFound(f"交易所 {exchange_code} 下未找到品种: {name_or_mark}")

    def find(self, name_or_mark: str) -> SymbolMapping:
        """
        跨交易所查找品种：名称精确匹配 → node 参数匹配 → 名称包含匹配
        """
        mappings = self._current().mappings
        key = name_or_mark.strip().casefold()
        if not key:
            raise NotFound("品种名称不能为空")
        for mapping in mappings:
            if mapping.product_display_name.casefold() == key:
                return mapping
        for mapping in mappings:
            if mapping.upstream_mark.casefold() == key:
                return mapping
        for mapping in mappings:
            if key in mapping.product_display_name.casefold():
                return mapping
        raise NotFound(f"未找到品种: {name_or_mark}")
