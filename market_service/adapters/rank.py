"""
交易所会员成交持仓排名适配器（前 20 名）

  - ShfeRankAdapter       上期所 pm{date}.dat，JSON 的 o_cursor 数组
  - CffexRankAdapter      中金所 {VAR}_1.csv，GBK，每个品种一个文件
  - CzceRankAdapter       郑商所 FutureDataHolding.xlsx（20251102 之前为 .xls）
  - DceRankAdapter        大商所批量下载，ZIP 中每个合约一个文本文件
  - GfexContractsAdapter  广期所某品种当日的合约列表
  - GfexRankAdapter       广期所单个合约的成交 / 多单 / 空单三张表

日期参数统一为 YYYYMMDD。
"""

import csv
import io
import json
import logging
import re
import zipfile
from itertools import zip_longest
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.common import (
    CFFEX_RANK_URL,
    CZCE_DATA_URL,
    DCE_RANK_PAGE,
    DCE_RANK_URL,
    GFEX_API_URL,
    SHFE_DAILY_DATA_URL,
    extract_variety,
    parse_json_object,
    read_sheet_rows,
    to_int,
)
from market_service.errors import ParseError
from market_service.models import PositionRankRecord, RankTable

logger = logging.getLogger(__name__)

# ── 各交易所参与排名汇总的品种 ─────────────────────────────
RANK_VARIETIES: Dict[str, Tuple[str, ...]] = {
    "DCE": (
        "C", "CS", "A", "B", "M", "Y", "P", "FB", "BB", "JD", "L", "V", "PP", "J", "JM",
        "I", "EG", "RR", "EB", "PG", "LH", "LG", "BZ",
    ),
    "SHFE": (
        "CU", "AL", "ZN", "PB", "NI", "SN", "AU", "AG", "RB", "WR", "HC", "FU", "BU", "RU",
        "SC", "NR", "SP", "SS", "LU", "BC", "AO", "BR", "EC", "AD",
    ),
    "CZCE": (
        "WH", "PM", "CF", "SR", "TA", "OI", "RI", "MA", "ME", "FG", "RS", "RM", "ZC", "JR",
        "LR", "SF", "SM", "WT", "TC", "GN", "RO", "ER", "SRX", "SRY", "WSX", "WSY", "CY",
        "AP", "UR", "CJ", "SA", "PK", "PF", "PX", "SH", "PR",
    ),
    "CFFEX": ("IF", "IC", "IM", "IH", "T", "TF", "TS", "TL"),
    "GFEX": ("SI", "LC", "PS"),
}

# 郑商所从这一天起改为发布 .xlsx
CZCE_XLSX_SINCE = "20251102"

# (会员简称, 数量, 比上日增减)
Section = Tuple[str, int, int]

_BLANK: Section = ("", 0, 0)
_CZCE_SYMBOL_RE = re.compile(r"([A-Za-z]+\d+)")
_TOTAL_MARKERS = ("合计", "总计")

_DCE_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Origin": "http://www.dce.com.cn",
    "Referer": DCE_RANK_PAGE,
}


def wanted_variety(variety: str, varieties: Optional[Sequence[str]]) -> bool:
    """varieties 为空表示不过滤"""
    return not varieties or variety.upper() in {v.upper() for v in varieties}


def group_rank_records(records: Iterable[PositionRankRecord]) -> List[RankTable]:
    """按合约分组，合约代码升序"""
    grouped: Dict[str, List[PositionRankRecord]] = {}
    for record in records:
        grouped.setdefault(record.symbol, []).append(record)
    return [RankTable(symbol=symbol, data=grouped[symbol]) for symbol in sorted(grouped)]


def merge_rank_sections(
    symbol: str,
    variety: str,
    volume: Sequence[Section],
    long: Sequence[Section],
    short: Sequence[Section],
) -> List[PositionRankRecord]:
    """三张表按名次对齐，较短的表缺位补空，名次从 1 开始"""
    records = []
    for rank, (vol, lng, sht) in enumerate(zip_longest(volume, long, short, fillvalue=_BLANK), 1):
        records.append(PositionRankRecord(
            rank=rank,
            vol_party_name=vol[0], vol=vol[1], vol_chg=vol[2],
            long_party_name=lng[0], long_open_interest=lng[1], long_open_interest_chg=lng[2],
            short_party_name=sht[0], short_open_interest=sht[1], short_open_interest_chg=sht[2],
            symbol=symbol,
            variety=variety,
        ))
    return records


def _record(rank: int, symbol: str, cells: Sequence[Any]) -> PositionRankRecord:
    """cells: 名称, 成交量, 增减, 名称, 多单, 增减, 名称, 空单, 增减"""
    return PositionRankRecord(
        rank=rank,
        vol_party_name=str(cells[0]).strip(),
        vol=to_int(cells[1]) or 0,
        vol_chg=to_int(cells[2]) or 0,
        long_party_name=str(cells[3]).strip(),
        long_open_interest=to_int(cells[4]) or 0,
        long_open_interest_chg=to_int(cells[5]) or 0,
        short_party_name=str(cells[6]).strip(),
        short_open_interest=to_int(cells[7]) or 0,
        short_open_interest_chg=to_int(cells[8]) or 0,
        symbol=symbol,
        variety=extract_variety(symbol),
    )


# ─────────────────────────────────────────────────────────
# 上期所
# ─────────────────────────────────────────────────────────

class ShfeRankAdapter(SourceAdapter):
    """request: {"date": "20260105", "vars": ["CU"] 或 None}"""

    source = "shfe.rank"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        url = f"{SHFE_DAILY_DATA_URL}/pm{request['date']}.dat"
        text = await self.client.get_text(url, headers={"Referer": "https://www.shfe.com.cn/"})
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[RankTable]:
        cursor = parse_json_object(payload.text, self.source).get("o_cursor")
        if not isinstance(cursor, list):
            raise ParseError.shape("上期所排名数据中缺少 o_cursor", source=self.source)
        if not cursor:
            raise ParseError.empty(f"上期所 {payload.request['date']} 无排名数据", source=self.source)

        varieties = payload.request.get("vars")
        records = []
        for item in cursor:
            if not isinstance(item, dict):
                continue
            rank = to_int(item.get("RANK")) or 0
            symbol = str(item.get("INSTRUMENTID") or "").strip().upper()
            if rank <= 0 or not symbol or not wanted_variety(extract_variety(symbol), varieties):
                continue
            records.append(_record(rank, symbol, [
                item.get("PARTICIPANTABBR1") or "", item.get("CJ1"), item.get("CJ1_CHG"),
                item.get("PARTICIPANTABBR2") or "", item.get("CJ2"), item.get("CJ2_CHG"),
                item.get("PARTICIPANTABBR3") or "", item.get("CJ3"), item.get("CJ3_CHG"),
            ]))
        return group_rank_records(records)


# ─────────────────────────────────────────────────────────
# 中金所
# ─────────────────────────────────────────────────────────

class CffexRankAdapter(SourceAdapter):
    """request: {"date": "20260105", "variety": "IF"}"""

    source = "cffex.rank"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        day = request["date"]
        url = f"{CFFEX_RANK_URL}/{day[:6]}/{day[6:]}/{request['variety']}_1.csv"
        text = await self.client.get_text(url, encoding="gbk")
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[RankTable]:
        records = []
        for fields in csv.reader(io.StringIO(payload.text)):
            line = ",".join(fields)
            # 标题行与表头行
            if "交易日" in line or "合约" in line or "名次" in line:
                continue
            if len(fields) < 12:
                continue
            symbol = fields[1].strip().upper()
            rank = to_int(fields[2]) or 0
            if not symbol or rank <= 0:
                continue
            records.append(_record(rank, symbol, fields[3:12]))

        if not records:
            raise ParseError.empty(
                f"中金所 {payload.request['variety']} {payload.request['date']} 无排名数据",
                source=self.source,
            )
        return group_rank_records(records)


# ─────────────────────────────────────────────────────────
# 郑商所
# ─────────────────────────────────────────────────────────

def czce_file_url(day: str, name: str) -> str:
    """郑商所每日统计文件地址，name 如 FutureDataHolding"""
    suffix = "xlsx" if day >= CZCE_XLSX_SINCE else "xls"
    return f"{CZCE_DATA_URL}/{day[:4]}/{day}/{name}.{suffix}"


def parse_czce_rank_rows(rows: Sequence[Sequence[str]]) -> List[RankTable]:
    """
    郑商所排名表：“品种 / 合约”行给出当前合约，其后是名次行

    数据行 10 列：名次, 会员, 成交量, 增减, 会员, 多单, 增减, 会员, 空单, 增减
    """
    records = []
    current = ""
    for row in rows:
        if not row:
            continue
        first = row[0]
        if "品种" in first or "合约" in first:
            # 品种汇总块没有合约代码，块内数据行跳过
            match = _CZCE_SYMBOL_RE.search(first)
            current = match.group(1).upper() if match else ""
            continue
        if not first or "名次" in first or "合计" in first:
            continue
        if len(row) < 10 or not current:
            continue
        rank = to_int(first) or 0
        if rank <= 0:
            continue
        records.append(_record(rank, current, row[1:10]))
    return group_rank_records(records)


class CzceRankAdapter(SourceAdapter):
    """request: {"date": "20260105"}"""

    source = "czce.rank"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        content = await self.client.get_bytes(czce_file_url(request["date"], "FutureDataHolding"))
        return self._payload("", request, content=content)

    def parse(self, payload: RawPayload) -> List[RankTable]:
        tables = parse_czce_rank_rows(read_sheet_rows(payload.content, self.source))
        if not tables:
            raise ParseError.empty(f"郑商所 {payload.request['date']} 无排名数据", source=self.source)
        return tables


# ─────────────────────────────────────────────────────────
# 大商所
# ─────────────────────────────────────────────────────────

def _decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return content.decode("gbk", errors="replace")


def parse_dce_section(lines: Sequence[str]) -> List[Section]:
    """名次行之后的数据行：名次 会员 数量 增减（空白分隔）"""
    section = []
    for line in lines:
        line = line.strip()
        if not line or any(marker in line for marker in _TOTAL_MARKERS):
            continue
        fields = line.split()
        if len(fields) >= 4:
            section.append((fields[1], to_int(fields[2]) or 0, to_int(fields[3]) or 0))
    return section


def parse_dce_rank_file(text: str, symbol: str) -> List[PositionRankRecord]:
    """单个合约文件：依次是成交量、持买单量、持卖单量三段，每段以“名次”行开头"""
    lines = text.splitlines()
    starts = [i for i, line in enumerate(lines) if "名次" in line][:3]
    if len(starts) < 3:
        return []
    bounds = starts + [len(lines)]
    volume, long, short = (
        parse_dce_section(lines[bounds[i] + 1: bounds[i + 1]]) for i in range(3)
    )
    return merge_rank_sections(symbol, extract_variety(symbol), volume, long, short)


class DceRankAdapter(SourceAdapter):
    """request: {"date": "20260105", "vars": ["M"] 或 None}"""

    source = "dce.rank"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        body = {
            "tradeDate": request["date"],
            "varietyId": "a",
            "contractId": "a2601",
            "tradeType": "1",
            "lang": "zh",
        }
        content = await self.client.post_bytes(DCE_RANK_URL, json=body, headers=_DCE_HEADERS)
        return self._payload("", request, content=content)

    def parse(self, payload: RawPayload) -> List[RankTable]:
        day = payload.request["date"]
        varieties = payload.request.get("vars")
        try:
            archive = zipfile.ZipFile(io.BytesIO(payload.content))
        except zipfile.BadZipFile as exc:
            raise ParseError.shape(f"大商所返回的不是 ZIP 文件: {exc}", source=self.source) from exc

        tables = []
        with archive:
            # 文件名形如 20260105_m2605_成交持仓排名.txt
            for name in sorted(archive.namelist()):
                parts = name.split("_")
                if not name.startswith(day) or len(parts) < 2:
                    continue
                symbol = parts[1].upper()
                if not wanted_variety(extract_variety(symbol), varieties):
                    continue
                records = parse_dce_rank_file(_decode_text(archive.read(name)), symbol)
                if records:
                    tables.append(RankTable(symbol=symbol, data=records))

        logger.debug(f"大商所 {day} 解析到 {len(tables)} 个合约的排名")
        return sorted(tables, key=lambda t: t.symbol)


# ─────────────────────────────────────────────────────────
# 广期所
# ─────────────────────────────────────────────────────────

class GfexContractsAdapter(SourceAdapter):
    """request: {"variety": "si", "date": "20260105"} → 合约代码列表"""

    source = "gfex.contracts"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        text = await self.client.post_text(
            f"{GFEX_API_URL}/interfacesWebTiMemberDealPosiQuotes/loadListContract_id",
            data={"variety": request["variety"], "trade_date": request["date"]},
        )
        return self._payload(text, request)

    def parse(self, payload: RawPayload) -> List[str]:
        items = parse_json_object(payload.text, self.source).get("data") or []
        contracts = []
        for item in items:
            # 合约可能以 ["si2605"]、{"contractId": "si2605"} 或纯字符串出现
            if isinstance(item, list):
                value = item[0] if item else None
            elif isinstance(item, dict):
                value = next(iter(item.values()), None)
            else:
                value = item
            if isinstance(value, str) and value:
                contracts.append(value)
        return contracts


def _gfex_section(body: Any) -> List[Section]:
    items = body.get("data") if isinstance(body, dict) else None
    section = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get("abbr") or "").strip()
        if not name or name in _TOTAL_MARKERS:
            continue
        change = item.get("qtySub")
        if change is None:
            change = item.get("todayQtyChg")
        section.append((name, to_int(item.get("todayQty")) or 0, to_int(change) or 0))
    return section


class GfexRankAdapter(SourceAdapter):
    """
    request: {"variety": "si", "contract": "si2605", "date": "20260105"}

    data_type 1 / 2 / 3 分别是成交量、持买单量、持卖单量，三次返回合并成一个 JSON 数组
    """

    source = "gfex.rank"

    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        bodies = []
        for data_type in ("1", "2", "3"):
            bodies.append(await self.client.post_text(
                f"{GFEX_API_URL}/interfacesWebTiMemberDealPosiQuotes/loadList",
                data={
                    "trade_date": request["date"],
                    "trade_type": "0",
                    "variety": request["variety"],
                    "contract_id": request["contract"],
                    "data_type": data_type,
                },
            ))
        return self._payload("[" + ",".join(bodies) + "]", request)

    def parse(self, payload: RawPayload) -> List[PositionRankRecord]:
        try:
            bodies = json.loads(payload.text)
        except json.JSONDecodeError as exc:
            raise ParseError.shape(f"JSON 解析失败: {exc}", source=self.source) from exc
        if not isinstance(bodies, list) or len(bodies) != 3:
            raise ParseError.shape("广期所排名应包含 3 张表", source=self.source)

        volume, long, short = (_gfex_section(body) for body in bodies)
        return merge_rank_sections(
            payload.request["contract"].upper(),
            payload.request["variety"].upper(),
            volume, long, short,
        )
