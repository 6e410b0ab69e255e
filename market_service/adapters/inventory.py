"""
99 期货网库存适配器

页面是 Next.js 渲染的，数据都在 <script id="__NEXT_DATA__"> 的 JSON 里：
  - props.pageProps.data.varietyListData[].productList[]        品种映射
  - props.pageProps.data.positionTrendChartListData.list       [日期, 收盘价, 库存]
"""

import json
import logging
from typing import Any, Dict, List

from bs4 import BeautifulSoup

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import HTML_HEADERS, QH99_STOCK_URL, to_float, to_int
from market_service.errors import ParseError
from market_service.models import InventoryRecord, InventorySymbol

logger = logging.getLogger(__name__)


def _next_data(text: str, source: str) -> Dict[str, Any]:
    script = BeautifulSoup(text, "html.parser").find("script", id="__NEXT_DATA__")
    if script is None:
        raise ParseError.shape("未找到 __NEXT_DATA__ 脚本标签", source=source)
    try:
        data = json.loads(script.string or script.get_text())
    except json.JSONDecodeError as exc:
        raise ParseError.shape(f"__NEXT_DATA__ 解析失败: {exc}", source=source) from exc
    # props / pageProps / data 每一层都必须是对象
    node: Any = data
    for key in ("props", "pageProps", "data"):
        if not isinstance(node, dict):
            break
        node = node.get(key)
    if not isinstance(node, dict):
        raise ParseError.shape("__NEXT_DATA__ 中缺少 props.pageProps.data", source=source)
    return node


class InventorySymbolsAdapter(SourceAdapter):
    source = "99qh.symbols"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(QH99_STOCK_URL, headers=HTML_HEADERS)
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[InventorySymbol]:
        data = _next_data(payload.text, self.source)
        symbols = []
        for variety in data.get("varietyListData") or []:
            if not isinstance(variety, dict):
                continue
            for product in variety.get("productList") or []:
                if not isinstance(product, dict):
                    continue
                product_id = to_int(product.get("productId")) or 0
                name = product.get("name") or ""
                if product_id > 0 and name:
                    symbols.append(InventorySymbol(
                        product_id=product_id, name=name, code=product.get("code") or ""
                    ))
        if not symbols:
            raise ParseError.empty("99 期货网没有返回任何品种", source=self.source)
        return symbols


class InventoryAdapter(SourceAdapter):
    """request: {"product_id": 12, "symbol": "豆一"}"""

    source = "99qh.inventory"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            QH99_STOCK_URL,
            params={"productId": str(request["product_id"])},
            headers=HTML_HEADERS,
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[InventoryRecord]:
        data = _next_data(payload.text, self.source)
        chart = data.get("positionTrendChartListData")
        rows = (chart.get("list") if isinstance(chart, dict) else None) or []
        symbol = payload.request.get("symbol", "")

        records = []
        for row in rows:
            if not isinstance(row, list) or not row or not row[0]:
                continue
            records.append(InventoryRecord(
                date=str(row[0]),
                symbol=symbol,
                close_price=to_float(row[1]) if len(row) > 1 else None,
                inventory=to_float(row[2]) if len(row) > 2 else None,
            ))
        records.sort(key=lambda r: r.date)
        return records
