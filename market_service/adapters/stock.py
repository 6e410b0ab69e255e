"""
A 股适配器（新浪）

  - StockQuoteAdapter  hq.sinajs.cn/list=sh600000
  - StockBarsAdapter   CN_MarketDataService.getKLineData（键不带引号的 JSONP）
  - StockListAdapter   Market_Center.getHQNodeData  沪深 A 股列表
"""

import json
import logging
from typing import Any, Dict, List

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    SINA_HEADERS,
    SINA_REALTIME_API,
    SINA_STOCK_KLINE_API,
    SINA_STOCK_LIST_API,
    extract_jsonp_array,
    split_js_assignments,
    to_float,
    to_int,
)
from market_service.adapters.realtime import quote_change
from market_service.errors import ParseError
from market_service.models import Bar, Quote

logger = logging.getLogger(__name__)

_MIN_FIELDS = 32
# 新浪列表接口中市值单位为万元
_MKTCAP_UNIT = 10000


class StockQuoteAdapter(SourceAdapter):
    """request: {"symbol": "sh600000"}"""

    source = "sina.stock_realtime"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_REALTIME_API,
            params={"list": request["symbol"]},
            headers=SINA_HEADERS,
            encoding="gbk",
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Quote]:
        symbol = payload.request["symbol"]
        assignments = split_js_assignments(payload.text)
        if not assignments or not assignments[0][1].strip():
            raise ParseError.empty(f"股票代码 {symbol} 可能无效或已退市", source=self.source)

        fields = assignments[0][1].split(",")
        if len(fields) < _MIN_FIELDS:
            raise ParseError.shape(
                f"股票行情字段不足: 期望至少 {_MIN_FIELDS} 个，实际 {len(fields)} 个",
                source=self.source,
            )

        current = to_float(fields[3]) or 0.0
        prev_close = to_float(fields[2])
        change, change_percent = quote_change(current, prev_close)
        return [Quote(
            symbol=symbol.upper(),
            display_name=fields[0].strip(),
            current_price=current,
            change=change,
            change_percent=change_percent,
            volume=to_int(fields[8]) or 0,
            open=to_float(fields[1]),
            high=to_float(fields[4]),
            low=to_float(fields[5]),
            prev_settlement=prev_close,
            observed_at=f"{fields[30].strip()} {fields[31].strip()}",
        )]


class StockBarsAdapter(SourceAdapter):
    """request: {"symbol": "sh600000", "limit": 30}"""

    source = "sina.stock_kline"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_STOCK_KLINE_API,
            params={
                "symbol": request["symbol"],
                "scale": "240",
                "ma": "no",
                "datalen": str(request["limit"]),
            },
            headers=SINA_HEADERS,
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Bar]:
        rows = extract_jsonp_array(payload.text, self.source)
        symbol = payload.request["symbol"].upper()
        return [
            Bar(
                symbol=symbol,
                timestamp=str(row["day"]),
                open=to_float(row.get("open")) or 0.0,
                high=to_float(row.get("high")) or 0.0,
                low=to_float(row.get("low")) or 0.0,
                close=to_float(row.get("close")) or 0.0,
                volume=to_int(row.get("volume")) or 0,
            )
            for row in rows
            if isinstance(row, dict) and row.get("day")
        ]


class StockListAdapter(SourceAdapter):
    """request: {"limit": 20}"""

    source = "sina.stock_list"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_STOCK_LIST_API,
            params={
                "node": "hs_a",
                "page": "1",
                "num": str(request["limit"]),
                "sort": "symbol",
                "asc": "1",
            },
            headers=SINA_HEADERS,
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Quote]:
        try:
            items = json.loads(payload.text)
        except json.JSONDecodeError as exc:
            raise ParseError.shape(f"股票列表 JSON 解析失败: {exc}", source=self.source) from exc
        if items is None:
            raise ParseError.empty("股票列表为空", source=self.source)
        if not isinstance(items, list):
            raise ParseError.shape("股票列表不是数组", source=self.source)

        quotes = []
        for item in items:
            if not isinstance(item, dict) or not item.get("symbol"):
                continue
            mktcap = to_float(item.get("mktcap"))
            quotes.append(Quote(
                symbol=str(item["symbol"]),
                display_name=str(item.get("name", "")),
                current_price=to_float(item.get("trade")) or 0.0,
                change=to_float(item.get("pricechange")) or 0.0,
                change_percent=to_float(item.get("changepercent")) or 0.0,
                volume=to_int(item.get("volume")) or 0,
                open=to_float(item.get("open")),
                high=to_float(item.get("high")),
                low=to_float(item.get("low")),
                prev_settlement=to_float(item.get("settlement")),
                market_cap=mktcap * _MKTCAP_UNIT if mktcap is not None else None,
                observed_at=payload.received_at,
            ))
        return quotes
