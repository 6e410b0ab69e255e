"""
K 线适配器（新浪 InnerFuturesNewService）

返回为 JSONP：var _temp=([{"d":"2026-01-05","o":"68000",...}, ...]);
行可能是对象（d/o/h/l/c/v/p/s），也可能是按位置排列的数组。
解析只负责逐行转换，排序与截断交给 ProcessingLayer。
"""

import logging
from typing import Any, Dict, List, Optional

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    SINA_DAILY_API,
    SINA_HEADERS,
    SINA_JSONP_API,
    SINA_MINUTE_API,
    extract_jsonp_array,
    to_float,
    to_int,
)
from market_service.models import Bar, MainContractPoint

logger = logging.getLogger(__name__)

# 主力连续接口要求的回调变量后缀，固定值即可
_MAIN_DAILY_TOKEN = "2021_08_17"

MINUTE_PERIODS = ("1", "5", "15", "30", "60")


def _row_fields(row: Any, min_len: int) -> Optional[Dict[str, Any]]:
    """把对象行或数组行统一为 d/o/h/l/c/v/p/s 字典，无法识别返回 None"""
    if isinstance(row, dict):
        return row
    if isinstance(row, list) and len(row) >= min_len:
        keys = ("d", "o", "h", "l", "c", "v", "p", "s")
        return dict(zip(keys, row))
    return None


def parse_bar_rows(rows: List[Any], symbol: str, *, minute: bool = False) -> List[Bar]:
    bars = []
    for row in rows:
        fields = _row_fields(row, 6 if minute else 8)
        if fields is None or not fields.get("d"):
            continue
        bars.append(Bar(
            symbol=symbol,
            timestamp=str(fields["d"]).strip(),
            open=to_float(fields.get("o")) or 0.0,
            high=to_float(fields.get("h")) or 0.0,
            low=to_float(fields.get("l")) or 0.0,
            close=to_float(fields.get("c")) or 0.0,
            volume=to_int(fields.get("v")) or 0,
            settlement=None if minute else to_float(fields.get("s")),
            open_interest=to_int(fields.get("p")),
        ))
    return bars


class DailyBarsAdapter(SourceAdapter):
    """request: {"symbol": "CU2602"}"""

    source = "sina.daily_kline"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_DAILY_API, params={"symbol": request["symbol"]}, headers=SINA_HEADERS
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Bar]:
        rows = extract_jsonp_array(payload.text, self.source)
        return parse_bar_rows(rows, payload.request["symbol"])


class MinuteBarsAdapter(SourceAdapter):
    """request: {"symbol": "CU2602", "period": "5"}"""

    source = "sina.minute_kline"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_MINUTE_API,
            params={"symbol": request["symbol"], "type": request["period"]},
            headers=SINA_HEADERS,
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Bar]:
        rows = extract_jsonp_array(payload.text, self.source)
        return parse_bar_rows(rows, payload.request["symbol"], minute=True)


class MainDailyAdapter(SourceAdapter):
    """
    主力连续合约日线（V0、RB0 等）

    request: {"symbol": "V0"}
    """

    source = "sina.main_daily"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        symbol = request["symbol"]
        url = (
            f"{SINA_JSONP_API}/var%20_{symbol}{_MAIN_DAILY_TOKEN}="
            f"/InnerFuturesNewService.getDailyKLine"
        )
        text = await self.client.get_text(
            url,
            params={"symbol": symbol, "_": _MAIN_DAILY_TOKEN},
            headers=SINA_HEADERS,
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[MainContractPoint]:
        rows = extract_jsonp_array(payload.text, self.source)
        points = []
        for row in rows:
            fields = _row_fields(row, 8)
            if fields is None or not fields.get("d"):
                continue
            points.append(MainContractPoint(
                date=str(fields["d"]).strip(),
                open=to_float(fields.get("o")) or 0.0,
                high=to_float(fields.get("h")) or 0.0,
                low=to_float(fields.get("l")) or 0.0,
                close=to_float(fields.get("c")) or 0.0,
                volume=to_int(fields.get("v")) or 0,
                open_interest=to_int(fields.get("p")) or 0,
                settlement=to_float(fields.get("s")),
            ))
        return points
