"""
100ppi 现货价格与基差适配器（table#fdata）

  - SpotPriceAdapter          sf/day-YYYY-MM-DD.html   现货价、近月 / 主力合约价
  - SpotPricePreviousAdapter  sf2/day-YYYY-MM-DD.html  主力基差与 180 日统计
"""

import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    HTML_HEADERS,
    SPOT_PRICE_PREVIOUS_URL,
    SPOT_PRICE_URL,
    extract_contract_month,
    name_to_code,
    parse_basis_string,
    to_float,
)
from market_service.errors import ParseError
from market_service.models import SpotPricePreviousRecord, SpotPriceRecord

logger = logging.getLogger(__name__)


def _rows(text: str, source: str, min_cells: int) -> List[List[str]]:
    """table#fdata 的数据行（去掉 &nbsp;、表头与交易所分组行）"""
    table = BeautifulSoup(text, "html.parser").find("table", id="fdata")
    if table is None:
        raise ParseError.empty("未找到数据表格(#fdata)，可能是非交易日", source=source)
    rows = []
    for tr in table.find_all("tr"):
        cells = [td.get_text().replace("\xa0", "").strip() for td in tr.find_all("td")]
        if len(cells) < min_cells:
            continue
        first = cells[0]
        if not first or first == "商品" or "交易所" in first:
            continue
        rows.append(cells)
    return rows


def _basis_rate(price: float, spot: float) -> float:
    return price / spot - 1 if spot else 0.0


class SpotPriceAdapter(SourceAdapter):
    """request: {"date": "2026-01-05", "symbols": ["RB", "CU"] 或 None}"""

    source = "100ppi.spot"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        url = f"{SPOT_PRICE_URL}/day-{request['date']}.html"
        text = await self.client.get_text(url, headers=HTML_HEADERS)
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[SpotPriceRecord]:
        wanted: Optional[List[str]] = payload.request.get("symbols")
        wanted_set = {s.upper() for s in wanted} if wanted else None
        date = payload.request["date"].replace("-", "")

        records = []
        for cells in _rows(payload.text, self.source, 10):
            name = cells[0]
            symbol = name_to_code(name)
            if symbol is None:
                if not (name.isascii() and name.isalpha()):
                    continue
                symbol = name.upper()
            if wanted_set is not None and symbol not in wanted_set:
                continue

            spot = to_float(cells[1]) or 0.0
            if spot == 0.0:
                continue
            near_price = to_float(cells[3]) or 0.0
            dom_price = to_float(cells[8]) or 0.0
            records.append(SpotPriceRecord(
                date=date,
                symbol=symbol,
                spot_price=spot,
                near_contract=symbol.lower() + extract_contract_month(cells[2]),
                near_contract_price=near_price,
                dominant_contract=symbol.lower() + extract_contract_month(cells[7]),
                dominant_contract_price=dom_price,
                near_basis=near_price - spot,
                dom_basis=dom_price - spot,
                near_basis_rate=_basis_rate(near_price, spot),
                dom_basis_rate=_basis_rate(dom_price, spot),
            ))
        return records


class SpotPricePreviousAdapter(SourceAdapter):
    """request: {"date": "2026-01-05"}"""

    source = "100ppi.spot_previous"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        url = f"{SPOT_PRICE_PREVIOUS_URL}/day-{request['date']}.html"
        text = await self.client.get_text(url, headers=HTML_HEADERS)
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[SpotPricePreviousRecord]:
        records = []
        for cells in _rows(payload.text, self.source, 8):
            spot = to_float(cells[1]) or 0.0
            if spot == 0.0:
                continue
            basis, basis_rate = parse_basis_string(cells[4])
            records.append(SpotPricePreviousRecord(
                commodity=cells[0],
                spot_price=spot,
                dominant_contract=cells[2],
                dominant_price=to_float(cells[3]) or 0.0,
                basis=basis,
                basis_rate=basis_rate,
                basis_180d_high=to_float(cells[5]),
                basis_180d_low=to_float(cells[6]),
                basis_180d_avg=to_float(cells[7]),
            ))
        return records
