"""
交易所仓单日报适配器

  - CzceWarehouseAdapter  郑商所 FutureDataWhsheet.xlsx / .xls，按品种分块
  - DceWarehouseAdapter   大商所 wbillWeeklyQuotes（JSON，data.entityList）
  - ShfeWarehouseAdapter  上期所 {date}dailystock.dat（JSON，o_cursor）
  - GfexWarehouseAdapter  广期所 interfacesWebTdWbillWeeklyQuotes（JSON，data）

郑商所 / 上期所 / 广期所按品种分组返回，大商所为平铺列表。
"""

import logging
from typing import Any, Dict, List, Sequence

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    DCE_WAREHOUSE_PAGE,
    DCE_WAREHOUSE_URL,
    GFEX_API_URL,
    SHFE_DAILY_DATA_URL,
    parse_json_object,
    read_sheet_rows,
    to_int,
)
from market_service.adapters.rank import czce_file_url
from market_service.errors import ParseError
from market_service.models import (
    CzceWarehouseReceipt,
    DceWarehouseReceipt,
    GfexWarehouseReceipt,
    ShfeWarehouseReceipt,
    WarehouseReceiptGroup,
)

logger = logging.getLogger(__name__)


def _group(records: Dict[str, List[Any]]) -> List[WarehouseReceiptGroup]:
    return [
        WarehouseReceiptGroup(symbol=symbol, data=records[symbol])
        for symbol in sorted(records)
        if records[symbol]
    ]


def _text(value: Any) -> str:
    """上期所字段形如 “铜$$COPPER”，取 $ 之前的中文部分"""
    return str(value or "").split("$")[0].strip()


# ─────────────────────────────────────────────────────────
# 郑商所
# ─────────────────────────────────────────────────────────

def parse_czce_warehouse_rows(rows: Sequence[Sequence[str]]) -> List[WarehouseReceiptGroup]:
    """
    每个品种一块：首行以“品种”开头（含字母代码），
    接着是含“仓库”或“简称”的表头，之后到下一块之前为数据行
    """
    starts = [i for i, row in enumerate(rows) if row and row[0].startswith("品种")]
    grouped: Dict[str, List[CzceWarehouseReceipt]] = {}
    for start, end in zip(starts, starts[1:] + [len(rows)]):
        symbol = "".join(ch for ch in rows[start][0] if ch.isascii() and ch.isalpha()).upper()
        if not symbol:
            continue
        header = next(
            (i for i in range(start + 1, end)
             if rows[i] and ("仓库" in rows[i][0] or "简称" in rows[i][0])),
            None,
        )
        if header is None:
            continue

        for row in rows[header + 1: end]:
            warehouse = row[0].strip() if row else ""
            if not warehouse or "合计" in warehouse or "小计" in warehouse:
                continue
            cells = list(row[1:4]) + [""] * (4 - len(row))
            grouped.setdefault(symbol, []).append(CzceWarehouseReceipt(
                warehouse=warehouse,
                warehouse_receipt=to_int(cells[0]),
                valid_forecast=to_int(cells[1]),
                change=to_int(cells[2]),
            ))
    return _group(grouped)


class CzceWarehouseAdapter(SourceAdapter):
    """request: {"date": "20260105"}"""

    source = "czce.warehouse"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        content = await self.client.get_bytes(czce_file_url(request["date"], "FutureDataWhsheet"))
        return self._payload("", request, content=content)

    def parse(self, payload: RawPayload) -> List[WarehouseReceiptGroup]:
        groups = parse_czce_warehouse_rows(read_sheet_rows(payload.content, self.source))
        if not groups:
            raise ParseError.empty(f"郑商所 {payload.request['date']} 无仓单数据", source=self.source)
        return groups


# ─────────────────────────────────────────────────────────
# 大商所
# ─────────────────────────────────────────────────────────

class DceWarehouseAdapter(SourceAdapter):
    """request: {"date": "20260105"}"""

    source = "dce.warehouse"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.post_text(
            DCE_WAREHOUSE_URL,
            json={"tradeDate": request["date"], "varietyId": "all"},
            headers={
                "Accept": "application/json, text/plain, */*",
                "Origin": "http://www.dce.com.cn",
                "Referer": DCE_WAREHOUSE_PAGE,
            },
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[DceWarehouseReceipt]:
        data = parse_json_object(payload.text, self.source).get("data")
        entities = data.get("entityList") if isinstance(data, dict) else None
        if not isinstance(entities, list):
            raise ParseError.shape("大商所仓单数据中缺少 data.entityList", source=self.source)

        records = []
        for item in entities:
            if not isinstance(item, dict):
                continue
            records.append(DceWarehouseReceipt(
                variety_code=str(item.get("varietyOrder") or "").upper(),
                variety_name=str(item.get("variety") or ""),
                warehouse=str(item.get("whAbbr") or ""),
                delivery_location=item.get("deliveryAbbr") or None,
                last_receipt=to_int(item.get("lastWbillQty")) or 0,
                today_receipt=to_int(item.get("wbillQty")) or 0,
                change=to_int(item.get("diff")) or 0,
            ))
        return records


# ─────────────────────────────────────────────────────────
# 上期所
# ─────────────────────────────────────────────────────────

class ShfeWarehouseAdapter(SourceAdapter):
    """request: {"date": "20260105"}，数据从 20140519 开始"""

    source = "shfe.warehouse"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        url = f"{SHFE_DAILY_DATA_URL}/{request['date']}dailystock.dat"
        text = await self.client.get_text(url, headers={"Referer": "https://www.shfe.com.cn/"})
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[WarehouseReceiptGroup]:
        cursor = parse_json_object(payload.text, self.source).get("o_cursor")
        if not isinstance(cursor, list):
            raise ParseError.shape("上期所仓单数据中缺少 o_cursor", source=self.source)

        grouped: Dict[str, List[ShfeWarehouseReceipt]] = {}
        for item in cursor:
            if not isinstance(item, dict):
                continue
            variety = _text(item.get("VARNAME"))
            if not variety:
                continue
            grouped.setdefault(variety, []).append(ShfeWarehouseReceipt(
                variety=variety,
                region=_text(item.get("REGNAME")),
                warehouse=_text(item.get("WHABBRNAME")),
                last_receipt=to_int(item.get("WRTWGHTS")) or 0,
                today_receipt=to_int(item.get("WRTQTY")) or 0,
                change=to_int(item.get("WRTCHANGE")) or 0,
                unit=str(item.get("UNIT") or ""),
            ))
        if not grouped:
            raise ParseError.empty(f"上期所 {payload.request['date']} 无仓单数据", source=self.source)
        return _group(grouped)


# ─────────────────────────────────────────────────────────
# 广期所
# ─────────────────────────────────────────────────────────

class GfexWarehouseAdapter(SourceAdapter):
    """request: {"date": "20260105"}"""

    source = "gfex.warehouse"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.post_text(
            f"{GFEX_API_URL}/interfacesWebTdWbillWeeklyQuotes/loadList",
            data={"gen_date": request["date"]},
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[WarehouseReceiptGroup]:
        items = parse_json_object(payload.text, self.source).get("data")
        if not isinstance(items, list):
            raise ParseError.shape("广期所仓单数据中缺少 data 数组", source=self.source)

        grouped: Dict[str, List[GfexWarehouseReceipt]] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            symbol = str(item.get("varietyOrder") or "").upper()
            # whType 为空的行不是仓库明细
            if not symbol or item.get("whType") is None:
                continue
            grouped.setdefault(symbol, []).append(GfexWarehouseReceipt(
                variety=str(item.get("variety") or ""),
                warehouse=str(item.get("whAbbr") or ""),
                last_receipt=to_int(item.get("lastWbillQty")) or 0,
                today_receipt=to_int(item.get("wbillQty")) or 0,
                change=to_int(item.get("regWbillQty")) or 0,
            ))
        return _group(grouped)
