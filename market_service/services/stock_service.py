"""
股票数据服务
STOCK_DATA_SOURCE=sina 时对接新浪实时行情 / K 线 / 列表；simulated 时返回固定的模拟数据
"""

import logging
from datetime import date, timedelta
from typing import List, Optional

from market_service.adapters import StockBarsAdapter, StockListAdapter, StockQuoteAdapter
from market_service.adapters.common import beijing_now
from market_service.config import settings
from market_service.errors import InvalidRequest
from market_service.layers.acquisition import UpstreamClient, get_upstream_client
from market_service.layers.orchestrator import FetchOrchestrator
from market_service.layers.processing import get_processing_layer
from market_service.models import Bar, Quote

logger = logging.getLogger(__name__)

_SIMULATED_SYMBOLS = ["AAPL", "GOOGL", "MSFT", "TSLA", "AMZN"]
_SIMULATED_START = date(2024, 1, 1)


def normalize_stock_symbol(symbol: str) -> str:
    """600000 → sh600000，000001 → sz000001，已带市场前缀的原样小写"""
    text = (symbol or "").strip().lower()
    if not text:
        raise InvalidRequest("股票代码不能为空")
    if text.isdigit() and len(text) == 6:
        return ("sh" if text[0] in "569" else "sz") + text
    return text


class StockService:
    """股票数据业务服务"""

    def __init__(self, client: Optional[UpstreamClient] = None, source: Optional[str] = None):
        self.source = (source or settings.STOCK_DATA_SOURCE).lower()
        self.client = client or get_upstream_client()
        self.orchestrator = FetchOrchestrator()
        self._proc = get_processing_layer()
        self._quote = StockQuoteAdapter(self.client)
        self._bars = StockBarsAdapter(self.client)
        self._list = StockListAdapter(self.client)

    @property
    def simulated(self) -> bool:
        return self.source == "simulated"

    # ── 股票列表 ──────────────────────────────────────────

    async def list_stocks(self, limit: Optional[int] = None) -> List[Quote]:
        limit = limit or 20
        if self.simulated:
            return self._simulated_list(limit)
        return await self.orchestrator.fetch_one(self._list, {"limit": limit})

    # ── 实时行情 ──────────────────────────────────────────

    async def get_stock(self, symbol: str) -> Quote:
        if self.simulated:
            return self._simulated_quote(symbol)
        quotes = await self.orchestrator.fetch_one(
            self._quote, {"symbol": normalize_stock_symbol(symbol)}
        )
        return quotes[0]

    # ── 历史 K 线 ─────────────────────────────────────────

    async def get_history(self, symbol: str, limit: Optional[int] = None) -> List[Bar]:
        """日 K 线，最新在前，默认最近 DEFAULT_HISTORY_LIMIT 条"""
        limit = limit or settings.DEFAULT_HISTORY_LIMIT
        if self.simulated:
            bars = self._simulated_history(symbol, limit)
        else:
            bars = await self.orchestrator.fetch_one(
                self._bars, {"symbol": normalize_stock_symbol(symbol), "limit": limit}
            )
        return self._proc.normalize_bars(bars, "daily", limit)

    # ── 模拟数据 ──────────────────────────────────────────

    def _simulated_quote(self, symbol: str) -> Quote:
        code = symbol.strip().upper()
        if not code:
            raise InvalidRequest("股票代码不能为空")
        return Quote(
            symbol=code,
            display_name=f"{code} Company",
            current_price=150.25,
            change=2.35,
            change_percent=1.58,
            volume=1_234_567,
            market_cap=50_000_000_000.0,
            observed_at=beijing_now(),
        )

    def _simulated_list(self, limit: int) -> List[Quote]:
        observed_at = beijing_now()
        return [
            Quote(
                symbol=code,
                display_name=f"{code} Company",
                current_price=100.0 + i * 50.0,
                change=(i - 2) * 1.5,
                change_percent=(i - 2) * 0.8,
                volume=1_000_000 + i * 500_000,
                market_cap=10_000_000_000.0 + i * 20_000_000_000.0,
                observed_at=observed_at,
            )
            for i, code in enumerate(_SIMULATED_SYMBOLS[:limit])
        ]

    def _simulated_history(self, symbol: str, limit: int) -> List[Bar]:
        code = symbol.strip().upper()
        bars = []
        for i in range(limit):
            price = 150.0 + i * 0.5 - 15.0
            bars.append(Bar(
                symbol=code,
                timestamp=(_SIMULATED_START + timedelta(days=i)).isoformat(),
                open=price,
                high=price + 2.0,
                low=price - 1.5,
                close=price + 0.5,
                volume=1_000_000 + i * 10_000,
            ))
        return bars


# ── 模块级别单例 ──────────────────────────────────────────
_stock_service: Optional[StockService] = None


def get_stock_service() -> StockService:
    global _stock_service
    if _stock_service is None:
        _stock_service = StockService()
    return _stock_service
