"""
期货实时行情适配器

  - RealtimeQuoteAdapter  hq.sinajs.cn  var hq_str_nf_CU2602="铜2602,150000,...";
  - NodeQuotesAdapter     新浪 Market_Center.getHQFuturesData  某品种全部合约（JSON）
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    SINA_HEADERS,
    SINA_NODE_LIST_API,
    SINA_REALTIME_API,
    split_js_assignments,
    to_float,
    to_int,
)
from market_service.errors import ParseError
from market_service.models import Quote

logger = logging.getLogger(__name__)

# nf_ / CFF_ 行情字段位置
_MIN_FIELDS = 15
_F_NAME, _F_TIME, _F_OPEN, _F_HIGH, _F_LOW = 0, 1, 2, 3, 4
_F_LAST, _F_SETTLE, _F_PREV_SETTLE = 8, 9, 10
_F_OPEN_INTEREST, _F_VOLUME, _F_DATE = 13, 14, 17


def _rn_code() -> str:
    """新浪 rn 参数：毫秒时间戳的十六进制"""
    return format(int(time.time() * 1000) % 0x7FFFFFFF, "x")


def quote_change(current: float, prev: Optional[float]) -> tuple:
    """(涨跌, 涨跌幅%)，无昨结算时涨跌幅为 0"""
    if not prev:
        return 0.0, 0.0
    change = current - prev
    return round(change, 6), round(change / prev * 100, 4)


def _observed_at(fields: List[str], fallback: str) -> str:
    """行情自带日期 + HHMMSS 时间时使用行情时间，否则使用接收时间"""
    date = fields[_F_DATE].strip() if len(fields) > _F_DATE else ""
    hhmmss = fields[_F_TIME].strip()
    if len(date) == 10 and len(hhmmss) == 6 and hhmmss.isdigit():
        return f"{date} {hhmmss[:2]}:{hhmmss[2:4]}:{hhmmss[4:]}"
    return fallback


class RealtimeQuoteAdapter(SourceAdapter):
    """request: {"symbol": 用户输入的合约代码, "code": nf_CU2602 / CFF_IF2412}"""

    source = "sina.realtime"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_REALTIME_API,
            params={"rn": _rn_code(), "list": request["code"]},
            headers=SINA_HEADERS,
            encoding="gbk",
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Quote]:
        symbol = payload.request.get("symbol", "")
        assignments = split_js_assignments(payload.text)
        if not assignments:
            if not payload.text.strip():
                raise ParseError.empty(f"合约 {symbol} 无行情数据", source=self.source)
            raise ParseError.shape("行情返回中没有 hq_str 变量", source=self.source)

        _, body = assignments[0]
        if not body.strip():
            raise ParseError.empty(f"合约 {symbol} 无行情数据", source=self.source)

        fields = body.split(",")
        if len(fields) < _MIN_FIELDS:
            raise ParseError.shape(
                f"行情字段不足: 期望至少 {_MIN_FIELDS} 个，实际 {len(fields)} 个",
                source=self.source,
            )

        current = to_float(fields[_F_LAST]) or 0.0
        prev_settle = to_float(fields[_F_PREV_SETTLE])
        change, change_percent = quote_change(current, prev_settle)
        return [Quote(
            symbol=symbol,
            display_name=fields[_F_NAME].strip(),
            current_price=current,
            change=change,
            change_percent=change_percent,
            volume=to_int(fields[_F_VOLUME]) or 0,
            open=to_float(fields[_F_OPEN]),
            high=to_float(fields[_F_HIGH]),
            low=to_float(fields[_F_LOW]),
            settlement=to_float(fields[_F_SETTLE]) or None,
            prev_settlement=prev_settle,
            open_interest=to_int(fields[_F_OPEN_INTEREST]),
            observed_at=_observed_at(fields, payload.received_at),
        )]


class NodeQuotesAdapter(SourceAdapter):
    """
    某品种（node，如 tong_qh）的全部合约行情，按持仓量倒序

    request: {"node": "tong_qh", "limit": 可选}
    """

    source = "sina.node_list"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_NODE_LIST_API,
            params={
                "page": "1",
                "sort": "position",
                "asc": "0",
                "node": request["node"],
                "base": "futures",
            },
            headers=SINA_HEADERS,
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Quote]:
        text = payload.text.strip()
        if not text or text in ("null", "[]"):
            raise ParseError.empty(
                f"品种 {payload.request.get('node')} 无合约数据", source=self.source
            )
        try:
            items = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError.shape(f"JSON 解析失败: {exc}", source=self.source) from exc
        if not isinstance(items, list):
            raise ParseError.shape("合约列表不是数组", source=self.source)

        limit = payload.request.get("limit")
        if limit:
            items = items[:limit]

        quotes = []
        for item in items:
            if not isinstance(item, dict) or not item.get("symbol"):
                continue
            current = to_float(item.get("trade")) or 0.0
            prev_settle = to_float(item.get("presettlement"))
            change, change_percent = quote_change(current, prev_settle)
            observed = " ".join(
                part for part in (item.get("tradedate"), item.get("ticktime")) if part
            )
            quotes.append(Quote(
                symbol=str(item["symbol"]),
                display_name=str(item.get("name", "")),
                current_price=current,
                change=change,
                change_percent=change_percent,
                volume=to_int(item.get("volume")) or 0,
                open=to_float(item.get("open")),
                high=to_float(item.get("high")),
                low=to_float(item.get("low")),
                settlement=to_float(item.get("settlement")),
                prev_settlement=prev_settle,
                open_interest=to_int(item.get("position")),
                observed_at=observed or payload.received_at,
            ))
        return quotes
