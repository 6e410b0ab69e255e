"""
新浪 HTML 页面适配器（GBK）

  - ContractDetailAdapter  合约详情页 futures/quotes/{symbol}.shtml
  - HoldingRankAdapter     持仓排名页 vFutures_Positions_cjcc.php
"""

import logging
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    HTML_HEADERS,
    SINA_CONTRACT_PAGE,
    SINA_HOLD_POS_API,
    to_int,
)
from market_service.errors import ParseError, UpstreamUnavailable
from market_service.models import ContractDetail, HoldingRankEntry

logger = logging.getLogger(__name__)

# 字段 → 页面标签
_DETAIL_LABELS = {
    "exchange": "上市交易所",
    "trading_unit": "交易单位",
    "quote_unit": "报价单位",
    "min_price_change": "最小变动价位",
    "price_limit": "涨跌停板幅度",
    "contract_months": "合约交割月份",
    "trading_hours": "交易时间",
    "last_trading_day": "最后交易日",
    "last_delivery_day": "最后交割日",
    "delivery_grade": "交割品级",
    "margin": "最低交易保证金",
    "delivery_method": "交割方式",
}

# 持仓排名类型 → 页面中第几张表
HOLD_POS_TABLES = {"volume": 2, "long": 3, "short": 4}

_BAN_MARKERS = ("拒绝访问", "IP 存在异常访问")


def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _label_value(soup: BeautifulSoup, label: str) -> str:
    """先按 “标签单元格 + 相邻单元格” 查找，再退回到 “标签：值” 文本"""
    for cell in soup.find_all(["td", "th"]):
        if _clean(cell.get_text()).rstrip("：:") == label:
            sibling = cell.find_next_sibling(["td", "th"])
            if sibling is not None:
                return _clean(sibling.get_text())
    match = re.search(rf"{label}[：:]\s*([^\n]+)", soup.get_text("\n"))
    return _clean(match.group(1)) if match else ""


def _check_banned(html: str) -> None:
    if any(marker in html for marker in _BAN_MARKERS):
        raise UpstreamUnavailable("IP 被新浪限流，请稍后重试（通常 5-60 分钟后自动解封）")


class ContractDetailAdapter(SourceAdapter):
    """request: {"symbol": "CU2602"}"""

    source = "sina.contract_detail"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        url = f"{SINA_CONTRACT_PAGE}/{request['symbol']}.shtml"
        text = await self.client.get_text(url, headers=HTML_HEADERS, encoding="gbk")
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[ContractDetail]:
        soup = BeautifulSoup(payload.text, "html.parser")
        values = {field: _label_value(soup, label) for field, label in _DETAIL_LABELS.items()}
        if not any(values.values()):
            raise ParseError.empty(
                f"合约 {payload.request['symbol']} 详情页中没有合约信息", source=self.source
            )
        title = _clean(soup.title.get_text()) if soup.title else ""
        return [ContractDetail(symbol=payload.request["symbol"], name=title, **values)]


class HoldingRankAdapter(SourceAdapter):
    """request: {"pos_type": "volume", "contract": "RB2510", "date": "2026-01-05"}"""

    source = "sina.hold_pos"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_HOLD_POS_API,
            params={"t_breed": request["contract"], "t_date": request["date"]},
            headers={**HTML_HEADERS, "Referer": "https://vip.stock.finance.sina.com.cn/"},
            encoding="gbk",
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[HoldingRankEntry]:
        _check_banned(payload.text)
        table_index = HOLD_POS_TABLES[payload.request["pos_type"]]

        tables = BeautifulSoup(payload.text, "html.parser").find_all("table")
        if len(tables) <= table_index:
            raise ParseError.empty(
                f"未找到持仓排名表（{payload.request['contract']} {payload.request['date']}）",
                source=self.source,
            )

        entries: List[HoldingRankEntry] = []
        for row in tables[table_index].find_all("tr")[1:]:
            cells = [_clean(td.get_text()) for td in row.find_all("td")]
            if len(cells) < 3:
                continue
            if "合计" in cells[0] or "合计" in cells[1]:
                continue
            rank: Optional[int] = to_int(cells[0])
            if not rank or rank <= 0:
                continue
            entries.append(HoldingRankEntry(
                rank=rank,
                company=cells[1],
                value=to_int(cells[2]) or 0,
                change=(to_int(cells[3]) or 0) if len(cells) >= 4 else 0,
            ))
        return entries
