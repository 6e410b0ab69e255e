"""
费用 / 规则表适配器

  - FeesAdapter      openctp 交易费用参照表
  - CommInfoAdapter  九期网手续费标准
  - RuleAdapter      国泰君安交易日历中的交易规则
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    EXCHANGE_NAMES,
    GTJA_CALENDAR_URL,
    HTML_HEADERS,
    OPENCTP_FEES_URL,
    QIHUO_COMM_URL,
    to_float,
    to_int,
)
from market_service.errors import ParseError
from market_service.models import CommInfoRecord, FeeRecord, RuleRecord

logger = logging.getLogger(__name__)

ALL_EXCHANGES = "所有"

_GENERATED_RE = re.compile(r"Generated at ([^.]+)\.")
_RULE_HEADER_WORDS = ("交易所", "交易保证金比例", "保证金收取标准")


def _cell_texts(row) -> List[str]:
    return [cell.get_text(strip=True) for cell in row.find_all("td")]


def _percent(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    return to_float(text.strip().rstrip("%"))


def _yuan(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    return to_float(text.replace("元", ""))


def parse_fee_cell(text: str) -> Tuple[Optional[float], Optional[float]]:
    """手续费单元格 → (比例, 元)；“万分之1.5/...” 按万分比换算"""
    text = text.strip()
    if "万分之" in text:
        ratio = to_float(text.replace("万分之", "").split("/")[0])
        return (ratio / 10000 if ratio is not None else None), None
    if "元" in text:
        return None, _yuan(text)
    return None, None


class FeesAdapter(SourceAdapter):
    source = "openctp.fees"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(OPENCTP_FEES_URL, headers=HTML_HEADERS)
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[FeeRecord]:
        generated = _GENERATED_RE.search(payload.text)
        updated_at = generated.group(1).strip() if generated else "未知"

        tbody = BeautifulSoup(payload.text, "html.parser").find("tbody")
        if tbody is None:
            raise ParseError.shape("未找到费用数据表格", source=self.source)

        records = []
        for row in tbody.find_all("tr"):
            cells = _cell_texts(row)
            if len(cells) < 16:
                continue
            records.append(FeeRecord(
                exchange=cells[0],
                contract_code=cells[1],
                contract_name=cells[2],
                product_code=cells[3],
                product_name=cells[4],
                contract_size=cells[5],
                price_tick=cells[6],
                open_fee_rate=cells[7],
                open_fee=cells[8],
                close_fee_rate=cells[9],
                close_fee=cells[10],
                close_today_fee_rate=cells[11],
                close_today_fee=cells[12],
                long_margin_rate=cells[13],
                short_margin_rate=cells[15],
                updated_at=updated_at,
            ))
        logger.debug(f"解析到 {len(records)} 条期货费用数据（更新于 {updated_at}）")
        return records


class CommInfoAdapter(SourceAdapter):
    """request: {"exchange": 交易所中文名 / "所有" / None}"""

    source = "9qihuo.comm_info"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(QIHUO_COMM_URL, headers=HTML_HEADERS)
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[CommInfoRecord]:
        wanted = payload.request.get("exchange") or ALL_EXCHANGES
        table = BeautifulSoup(payload.text, "html.parser").find("table")
        if table is None:
            raise ParseError.shape("未找到手续费数据表格", source=self.source)

        markers = list(EXCHANGE_NAMES.values())
        current_exchange = ""
        skip_rows = 0
        records = []
        for row in table.find_all("tr"):
            cells = _cell_texts(row)
            if not cells:
                continue

            header = next((m for m in markers if m in cells[0]), None)
            if header is not None:
                # 交易所标题行之后还有两行表头
                current_exchange = header
                skip_rows = 2
                continue
            if skip_rows > 0:
                skip_rows -= 1
                continue
            if not current_exchange or len(cells) < 12:
                continue
            if wanted != ALL_EXCHANGES and current_exchange != wanted:
                continue

            name, _, code = cells[0].partition("(")
            limit_up, _, limit_down = cells[2].partition("/")
            open_ratio, open_yuan = parse_fee_cell(cells[6])
            close_y_ratio, close_y_yuan = parse_fee_cell(cells[7])
            close_t_ratio, close_t_yuan = parse_fee_cell(cells[8])
            records.append(CommInfoRecord(
                exchange=current_exchange,
                contract_name=name.strip(),
                contract_code=code.rstrip(")").strip(),
                current_price=to_float(cells[1]),
                limit_up=to_float(limit_up),
                limit_down=to_float(limit_down) if limit_down else None,
                margin_buy=_percent(cells[3]),
                margin_sell=_percent(cells[4]),
                margin_per_lot=_yuan(cells[5]),
                fee_open_ratio=open_ratio,
                fee_open_yuan=open_yuan,
                fee_close_yesterday_ratio=close_y_ratio,
                fee_close_yesterday_yuan=close_y_yuan,
                fee_close_today_ratio=close_t_ratio,
                fee_close_today_yuan=close_t_yuan,
                profit_per_tick=to_float(cells[9]),
                fee_total=_yuan(cells[10]),
                net_profit_per_tick=to_float(cells[11]),
                remark=cells[12] if len(cells) > 12 else None,
            ))

        if not records:
            raise ParseError.empty("未能解析到期货手续费数据", source=self.source)
        return records


class RuleAdapter(SourceAdapter):
    """request: {"date": "20260105"}"""

    source = "gtja.rule"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            GTJA_CALENDAR_URL, params={"date": request["date"]}, headers=HTML_HEADERS
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[RuleRecord]:
        if "交易保证金比例" not in payload.text and "涨跌停板幅度" not in payload.text:
            raise ParseError.empty(
                f"{payload.request.get('date')} 没有交易规则数据", source=self.source
            )

        rules = []
        for row in BeautifulSoup(payload.text, "html.parser").find_all("tr"):
            cells = _cell_texts(row) or [th.get_text(strip=True) for th in row.find_all("th")]
            if len(cells) < 6:
                continue
            head = cells[:4]
            if any(word in c for c in head for word in _RULE_HEADER_WORDS) or "品种" in head:
                continue
            exchange, product, code = cells[0], cells[1], cells[2]
            if not exchange and not product:
                continue

            def cell(i: int) -> Optional[str]:
                return cells[i] if len(cells) > i and cells[i] else None

            rules.append(RuleRecord(
                exchange=exchange,
                product=product,
                code=code,
                margin_rate=_percent(cells[3]),
                price_limit=_percent(cells[4]),
                contract_size=to_float(cells[5]),
                price_tick=to_float(cell(6)),
                max_order_size=to_int(cell(7)),
                special_note=cell(8),
                remark=cell(9),
            ))
        return rules
