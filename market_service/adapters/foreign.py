"""
外盘期货适配器

  - ForeignQuoteAdapter    hq.sinajs.cn  var hq_str_hf_CL="...";
  - ForeignHistoryAdapter  GlobalFuturesService.getGlobalFuturesDailyKLine（JSONP）
  - ForeignDetailAdapter   futures/quotes/{code}.shtml 合约规格表
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List
from zoneinfo import ZoneInfo

from bs4 import BeautifulSoup

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    HTML_HEADERS,
    SINA_CONTRACT_PAGE,
    SINA_HEADERS,
    SINA_JSONP_API,
    SINA_REALTIME_API,
    extract_jsonp_array,
    split_js_assignments,
    to_float,
    to_int,
)
from market_service.adapters.realtime import quote_change
from market_service.config import settings
from market_service.errors import ParseError
from market_service.models import Bar, DetailItem, ForeignSymbol, Quote

logger = logging.getLogger(__name__)

# ── 外盘品种表 ────────────────────────────────────────────
FOREIGN_SYMBOLS: List[ForeignSymbol] = [
    ForeignSymbol(symbol=name, code=code)
    for name, code in [
        ("新加坡铁矿石", "FEF"), ("马棕油", "FCPO"), ("日橡胶", "RSS3"),
        ("美国原糖", "RS"), ("CME比特币期货", "BTC"), ("NYBOT-棉花", "CT"),
        ("LME镍3个月", "NID"), ("LME铅3个月", "PBD"), ("LME锡3个月", "SND"),
        ("LME锌3个月", "ZSD"), ("LME铝3个月", "AHD"), ("LME铜3个月", "CAD"),
        ("CBOT-黄豆", "S"), ("CBOT-小麦", "W"), ("CBOT-玉米", "C"),
        ("CBOT-黄豆油", "BO"), ("CBOT-黄豆粉", "SM"), ("COMEX铜", "HG"),
        ("NYMEX天然气", "NG"), ("NYMEX原油", "CL"), ("COMEX白银", "SI"),
        ("COMEX黄金", "GC"), ("布伦特原油", "OIL"), ("伦敦金", "XAU"),
        ("伦敦银", "XAG"), ("伦敦铂金", "XPT"), ("伦敦钯金", "XPD"),
        ("欧洲碳排放", "EUA"),
    ]
]
FOREIGN_NAMES: Dict[str, str] = {s.code: s.symbol for s in FOREIGN_SYMBOLS}

# hf_ 行情字段位置
_MIN_FIELDS = 13
_F_LAST, _F_HIGH, _F_LOW, _F_TIME = 0, 4, 5, 6
_F_PREV_SETTLE, _F_OPEN, _F_OPEN_INTEREST, _F_DATE = 7, 8, 9, 12

_TIME_RE = re.compile(r"^\d{2}:\d{2}:\d{2}$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ForeignQuoteAdapter(SourceAdapter):
    """request: {"code": "CL"}"""

    source = "sina.foreign_realtime"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_REALTIME_API,
            params={"list": f"hf_{request['code']}"},
            headers=SINA_HEADERS,
            encoding="gbk",
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Quote]:
        code = payload.request["code"]
        assignments = split_js_assignments(payload.text)
        if not assignments or not assignments[0][1].strip():
            raise ParseError.empty(f"外盘合约 {code} 无行情数据", source=self.source)

        fields = assignments[0][1].split(",")
        if len(fields) < _MIN_FIELDS:
            raise ParseError.shape(
                f"外盘行情字段不足: 期望至少 {_MIN_FIELDS} 个，实际 {len(fields)} 个",
                source=self.source,
            )

        current = to_float(fields[_F_LAST]) or 0.0
        prev_settle = to_float(fields[_F_PREV_SETTLE])
        change, change_percent = quote_change(current, prev_settle)
        observed_at = payload.received_at
        if _DATE_RE.match(fields[_F_DATE].strip()) and _TIME_RE.match(fields[_F_TIME].strip()):
            observed_at = f"{fields[_F_DATE].strip()} {fields[_F_TIME].strip()}"

        return [Quote(
            symbol=code,
            display_name=FOREIGN_NAMES.get(code, code),
            current_price=current,
            change=change,
            change_percent=change_percent,
            volume=0,
            open=to_float(fields[_F_OPEN]),
            high=to_float(fields[_F_HIGH]),
            low=to_float(fields[_F_LOW]),
            prev_settlement=prev_settle,
            open_interest=to_int(fields[_F_OPEN_INTEREST]),
            observed_at=observed_at,
        )]


class ForeignHistoryAdapter(SourceAdapter):
    """request: {"symbol": "CL"}"""

    source = "sina.foreign_history"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        now = datetime.now(ZoneInfo(settings.TZ))
        token = f"{now.year}_{now.month}_{now.day}"
        url = f"{SINA_JSONP_API}/var%20_S{token}=/GlobalFuturesService.getGlobalFuturesDailyKLine"
        text = await self.client.get_text(
            url,
            params={"symbol": request["symbol"], "_": token, "source": "web"},
            headers=SINA_HEADERS,
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[Bar]:
        rows = extract_jsonp_array(payload.text, self.source)
        symbol = payload.request["symbol"]
        bars = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("date"):
                continue
            bars.append(Bar(
                symbol=symbol,
                timestamp=str(row["date"]),
                open=to_float(row.get("open")) or 0.0,
                high=to_float(row.get("high")) or 0.0,
                low=to_float(row.get("low")) or 0.0,
                close=to_float(row.get("close")) or 0.0,
                volume=to_int(row.get("volume")) or 0,
            ))
        return bars


class ForeignDetailAdapter(SourceAdapter):
    """request: {"symbol": "CL"}"""

    source = "sina.foreign_detail"

    # 规格表通常是页面中的第 7 张表
    TABLE_INDEX = 6

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        url = f"{SINA_CONTRACT_PAGE}/{request['symbol']}.shtml"
        text = await self.client.get_text(url, headers=HTML_HEADERS, encoding="gbk")
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[DetailItem]:
        tables = BeautifulSoup(payload.text, "html.parser").find_all("table")
        if len(tables) <= self.TABLE_INDEX:
            raise ParseError.shape(
                f"合约详情页只有 {len(tables)} 张表格，未找到规格表", source=self.source
            )

        items = []
        for row in tables[self.TABLE_INDEX].find_all("tr"):
            cells = [cell.get_text(strip=True) for cell in row.find_all(["td", "th"])]
            # 一行可能并排放两组 名称 / 值
            for i in (0, 2):
                if len(cells) >= i + 2 and cells[i] and cells[i + 1]:
                    items.append(DetailItem(name=cells[i], value=cells[i + 1]))
        return items
