"""
品种映射脚本适配器（新浪 qihuohangqing.js）

脚本形如：
    ARRFUTURESNODES = {
        czce: ['郑州商品交易所', ['PTA', 'pta_qh', '16'], ...],
        dce:  [...],
        ...
    };

只做模式提取，从不执行脚本。
"""

import logging
import re
from typing import Any, Dict, List, Set, Tuple

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import EXCHANGE_NAMES, SINA_HEADERS, SINA_SYMBOL_SCRIPT_URL
from market_service.errors import ParseError
from market_service.models import SymbolMapping

logger = logging.getLogger(__name__)

# 脚本中的交易所键 → 交易所代码
_SCRIPT_EXCHANGES = {
    "czce": "CZCE",
    "dce": "DCE",
    "shfe": "SHFE",
    "cffex": "CFFEX",
    "gfex": "GFEX",
}

_BLOCK_RE = re.compile(r"ARRFUTURESNODES\s*=\s*\{([\s\S]*?)\}\s*;")
_SEGMENT_RE = re.compile(r"\b(czce|dce|shfe|cffex|gfex)\s*:\s*\[")
_ITEM_RE = re.compile(r"\['([^']+)',\s*'([^']+)',\s*'[^']*'")


def parse_symbol_script(text: str) -> List[SymbolMapping]:
    """把映射脚本解析为 SymbolMapping 列表，同一 (交易所, mark) 只保留首个"""
    block = _BLOCK_RE.search(text or "")
    if block is None:
        raise ParseError.shape("映射脚本中未找到 ARRFUTURESNODES", source=SymbolScriptAdapter.source)
    body = block.group(1)

    starts = [(m.start(), m.group(1)) for m in _SEGMENT_RE.finditer(body)]
    mappings: List[SymbolMapping] = []
    seen: Set[Tuple[str, str]] = set()
    for i, (start, key) in enumerate(starts):
        end = starts[i + 1][0] if i + 1 < len(starts) else len(body)
        exchange_code = _SCRIPT_EXCHANGES[key]
        for item in _ITEM_RE.finditer(body[start:end]):
            name, mark = item.group(1).strip(), item.group(2).strip()
            if not mark.endswith("_qh"):
                continue
            if (exchange_code, mark) in seen:
                continue
            seen.add((exchange_code, mark))
            mappings.append(SymbolMapping(
                exchange_code=exchange_code,
                exchange_display_name=EXCHANGE_NAMES[exchange_code],
                product_display_name=name,
                upstream_mark=mark,
            ))

    if not mappings:
        raise ParseError.empty("映射脚本中没有任何品种", source=SymbolScriptAdapter.source)
    return mappings


class SymbolScriptAdapter(SourceAdapter):
    source = "sina.symbol_script"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.get_text(
            SINA_SYMBOL_SCRIPT_URL, headers=SINA_HEADERS, encoding="gbk"
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[SymbolMapping]:
        return parse_symbol_script(payload.text)
