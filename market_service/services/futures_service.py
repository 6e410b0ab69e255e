"""
期货数据服务
整合注册表、调度层、适配器与处理层，对外提供统一的期货数据访问接口
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar
from zoneinfo import ZoneInfo

from market_service.adapters import (
    CffexRankAdapter,
    CommInfoAdapter,
    ContractDetailAdapter,
    CzceRankAdapter,
    CzceWarehouseAdapter,
    DailyBarsAdapter,
    DceRankAdapter,
    DceWarehouseAdapter,
    FeesAdapter,
    ForeignDetailAdapter,
    ForeignHistoryAdapter,
    ForeignQuoteAdapter,
    GfexContractsAdapter,
    GfexRankAdapter,
    GfexWarehouseAdapter,
    HoldingRankAdapter,
    InventoryAdapter,
    InventorySymbolsAdapter,
    MainDailyAdapter,
    MinuteBarsAdapter,
    NodeQuotesAdapter,
    RealtimeQuoteAdapter,
    RuleAdapter,
    ShfeRankAdapter,
    ShfeWarehouseAdapter,
    SpotPriceAdapter,
    SpotPricePreviousAdapter,
    SymbolScriptAdapter,
)
from market_service.adapters.common import EXCHANGES, EXCHANGE_NAMES, VARIETIES, extract_variety
from market_service.adapters.detail import HOLD_POS_TABLES
from market_service.adapters.fees import ALL_EXCHANGES
from market_service.adapters.foreign import FOREIGN_NAMES, FOREIGN_SYMBOLS
from market_service.adapters.kline import MINUTE_PERIODS
from market_service.adapters.rank import RANK_VARIETIES
from market_service.config import settings
from market_service.errors import InvalidRequest, NotFound, RegistryUnavailable
from market_service.layers.acquisition import UpstreamClient, get_upstream_client
from market_service.layers.orchestrator import FetchOrchestrator
from market_service.layers.processing import get_processing_layer
from market_service.layers.registry import SymbolRegistry
from market_service.layers.scheduler import RegistryRefresher
from market_service.models import (
    Bar,
    BatchItem,
    CommInfoRecord,
    ContractDetail,
    DceWarehouseReceipt,
    DetailItem,
    Exchange,
    FeeRecord,
    ForeignSymbol,
    HoldingRankEntry,
    InventoryRecord,
    InventorySymbol,
    MainContract,
    MainContractPoint,
    Quote,
    RankSum,
    RankTable,
    RuleRecord,
    SpotPricePreviousRecord,
    SpotPriceRecord,
    SymbolMapping,
    WarehouseReceiptGroup,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONTRACT_RE = re.compile(r"^([A-Za-z]{1,2})(\d{1,4})$")

# 不指定交易所时，列表接口从这些交易所各取 2 个品种
_DEFAULT_LIST_EXCHANGES = ("SHFE", "DCE", "CZCE", "CFFEX")
# 主力连续合约一览覆盖的交易所
_DISPLAY_EXCHANGES = ("DCE", "CZCE", "SHFE", "CFFEX", "GFEX")

_MAX_SPOT_DAYS = 366
# 每天要访问五个交易所，排名汇总的日期范围限制得更短
_MAX_RANK_DAYS = 31


# ── 合约解析 ──────────────────────────────────────────────

@dataclass(frozen=True)
class ContractRef:
    symbol: str
    variety: str
    exchange: str
    realtime_code: str


def resolve_contract(symbol: str) -> ContractRef:
    """
    合约代码 → 品种 / 交易所 / 实时行情代码，品种未知时抛出 NotFound（不发起任何请求）

    支持 CU2602、rb2510、RB0、IF2412，以及带 nf_ / CFF_ 前缀的原始代码
    """
    raw = (symbol or "").strip()
    upper = raw.upper()
    for prefix in ("NF_", "CFF_"):
        if upper.startswith(prefix):
            upper = upper[len(prefix):]
            break

    match = _CONTRACT_RE.match(upper)
    if match is None:
        raise NotFound(f"无法识别的合约代码: {raw}")
    variety = match.group(1)
    if variety not in VARIETIES:
        raise NotFound(f"未知的期货品种: {variety}（合约 {raw}）")

    exchange = VARIETIES[variety][1]
    prefix = "CFF_" if exchange == "CFFEX" else "nf_"
    return ContractRef(
        symbol=upper, variety=variety, exchange=exchange, realtime_code=f"{prefix}{upper}"
    )


# ── 日期参数 ──────────────────────────────────────────────

def parse_date(value: str, field: str = "date") -> date:
    """接受 YYYYMMDD 或 YYYY-MM-DD，否则 InvalidRequest"""
    text = (value or "").strip()
    for fmt in ("%Y%m%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise InvalidRequest(f"{field} 日期格式无效: {value!r}，应为 YYYYMMDD 或 YYYY-MM-DD")


def today() -> date:
    return datetime.now(ZoneInfo(settings.TZ)).date()


class FuturesService:
    """期货数据业务服务"""

    def __init__(self, client: Optional[UpstreamClient] = None):
        self.client = client or get_upstream_client()
        self.registry = SymbolRegistry()
        self.refresher = RegistryRefresher(self.registry, SymbolScriptAdapter(self.client))
        self.orchestrator = FetchOrchestrator()
        self._proc = get_processing_layer()

        self._realtime = RealtimeQuoteAdapter(self.client)
        self._node = NodeQuotesAdapter(self.client)
        self._daily = DailyBarsAdapter(self.client)
        self._minute = MinuteBarsAdapter(self.client)
        self._main_daily = MainDailyAdapter(self.client)
        self._detail = ContractDetailAdapter(self.client)
        self._hold_pos = HoldingRankAdapter(self.client)
        self._fees = FeesAdapter(self.client)
        self._comm_info = CommInfoAdapter(self.client)
        self._rule = RuleAdapter(self.client)
        self._inventory_symbols = InventorySymbolsAdapter(self.client)
        self._inventory = InventoryAdapter(self.client)
        self._spot = SpotPriceAdapter(self.client)
        self._spot_previous = SpotPricePreviousAdapter(self.client)
        self._foreign_quote = ForeignQuoteAdapter(self.client)
        self._foreign_history = ForeignHistoryAdapter(self.client)
        self._foreign_detail = ForeignDetailAdapter(self.client)
        self._shfe_rank = ShfeRankAdapter(self.client)
        self._cffex_rank = CffexRankAdapter(self.client)
        self._czce_rank = CzceRankAdapter(self.client)
        self._dce_rank = DceRankAdapter(self.client)
        self._gfex_contracts = GfexContractsAdapter(self.client)
        self._gfex_rank = GfexRankAdapter(self.client)
        self._czce_warehouse = CzceWarehouseAdapter(self.client)
        self._dce_warehouse = DceWarehouseAdapter(self.client)
        self._shfe_warehouse = ShfeWarehouseAdapter(self.client)
        self._gfex_warehouse = GfexWarehouseAdapter(self.client)

    # ── 生命周期 ──────────────────────────────────────────

    async def start(self) -> None:
        if settings.REGISTRY_REFRESH_ON_STARTUP:
            self.refresher.trigger()
        self.refresher.start()

    async def close(self) -> None:
        await self.refresher.stop()

    def registry_stats(self) -> Dict[str, Any]:
        generation = self.registry.generation
        age = self.registry.age
        return {
            "generation": generation.number if generation else None,
            "mappings": len(generation.mappings) if generation else 0,
            "published_at": generation.published_at_text if generation else None,
            "age_seconds": round(age, 1) if age is not None else None,
            "last_error": self.refresher.last_error,
        }

    # ── 注册表查询 ────────────────────────────────────────

    async def _lookup(self, query: Callable[[], T]) -> T:
        """
        查询注册表：从未发布时后台触发刷新并返回 RegistryUnavailable；
        未命中且当前一代已过期时，刷新一次后重试
        """
        try:
            return query()
        except RegistryUnavailable:
            self.refresher.trigger()
            raise
        except NotFound:
            if not self.refresher.is_stale():
                raise
            if not await self.refresher.refresh_if_stale():
                raise
            return query()

    @staticmethod
    def _check_exchange(exchange: str) -> str:
        if exchange not in EXCHANGE_NAMES:
            raise NotFound(
                f"未知的交易所代码: {exchange}（可选: {', '.join(EXCHANGE_NAMES)}）"
            )
        return exchange

    def get_exchanges(self) -> List[Exchange]:
        return [Exchange(code=code, name=name, description=desc) for code, name, desc in EXCHANGES]

    async def list_symbols(self, exchange: Optional[str] = None) -> List[SymbolMapping]:
        if exchange is not None:
            self._check_exchange(exchange)
        return await self._lookup(lambda: self.registry.list(exchange))

    # ── 单合约 ────────────────────────────────────────────

    async def get_quote(self, symbol: str) -> Quote:
        ref = resolve_contract(symbol)
        quotes = await self.orchestrator.fetch_one(
            self._realtime, {"symbol": ref.symbol, "code": ref.realtime_code}
        )
        return quotes[0]

    async def get_quotes(self, symbols: Sequence[str]) -> List[BatchItem]:
        """批量实时行情，单个失败写在对应位置上"""
        return await self.orchestrator.fetch_batch(symbols, self.get_quote)

    async def get_detail(self, symbol: str) -> ContractDetail:
        ref = resolve_contract(symbol)
        details = await self.orchestrator.fetch_one(self._detail, {"symbol": ref.symbol})
        return details[0]

    async def get_history(self, symbol: str, limit: Optional[int] = None) -> List[Bar]:
        """日 K 线，最新在前，默认最近 DEFAULT_HISTORY_LIMIT 条"""
        ref = resolve_contract(symbol)
        bars = await self.orchestrator.fetch_one(self._daily, {"symbol": ref.symbol})
        return self._proc.normalize_bars(
            bars, "daily", limit or settings.DEFAULT_HISTORY_LIMIT
        )

    async def get_minute(
        self, symbol: str, period: str = "5", limit: Optional[int] = None
    ) -> List[Bar]:
        """分钟 K 线，最新在前；limit 为空时返回上游给出的全部"""
        if period not in MINUTE_PERIODS:
            raise InvalidRequest(f"无效的分钟周期: {period}（可选: {', '.join(MINUTE_PERIODS)}）")
        ref = resolve_contract(symbol)
        bars = await self.orchestrator.fetch_one(
            self._minute, {"symbol": ref.symbol, "period": period}
        )
        return self._proc.normalize_bars(bars, "minute", limit)

    # ── 品种 / 交易所维度 ─────────────────────────────────

    async def _node_quotes(self, mapping: SymbolMapping, limit: Optional[int]) -> List[Quote]:
        return await self.orchestrator.fetch_one(
            self._node, {"node": mapping.upstream_mark, "limit": limit}
        )

    async def get_realtime_by_product(self, product: str) -> List[Quote]:
        """某品种（铜 / tong_qh）全部合约的实时行情"""
        mapping = await self._lookup(lambda: self.registry.find(product))
        return await self._node_quotes(mapping, None)

    async def list_futures(
        self, exchange: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Quote]:
        """
        活跃合约列表

        指定交易所：取前 5 个品种各自持仓最大的合约，按持仓量倒序，默认最多 20 条；
        未指定：SHFE / DCE / CZCE / CFFEX 各取 2 个品种
        """
        if exchange is not None:
            self._check_exchange(exchange)
            mappings = (await self._lookup(lambda: self.registry.list(exchange)))[:5]
        else:
            everything = await self._lookup(lambda: self.registry.list())
            mappings = []
            for code in _DEFAULT_LIST_EXCHANGES:
                mappings.extend([m for m in everything if m.exchange_code == code][:2])

        results = await self.orchestrator.gather_tolerant(
            [lambda m=m: self._node_quotes(m, 1) for m in mappings], label="期货列表"
        )
        quotes = [q for chunk in results if chunk for q in chunk]

        if exchange is not None:
            quotes.sort(key=lambda q: q.open_interest or 0, reverse=True)
            return quotes[: limit or 20]
        return quotes[:limit] if limit else quotes

    async def get_main_contracts(self, exchange: str) -> List[str]:
        """交易所每个品种在最活跃 5 个合约中持仓量最大的那个"""
        self._check_exchange(exchange)
        mappings = await self._lookup(lambda: self.registry.list(exchange))
        results = await self.orchestrator.gather_tolerant(
            [lambda m=m: self._node_quotes(m, 5) for m in mappings], label="主力合约"
        )
        contracts = []
        for quotes in results:
            if quotes:
                main = max(quotes, key=lambda q: q.open_interest or 0)
                contracts.append(main.symbol)
        return contracts

    async def get_main_display(self) -> List[MainContract]:
        """主力连续合约一览：每个品种取名称含“连续”且代码以 0 结尾的合约"""
        everything = await self._lookup(lambda: self.registry.list())
        mappings = [m for code in _DISPLAY_EXCHANGES for m in everything if m.exchange_code == code]
        results = await self.orchestrator.gather_tolerant(
            [lambda m=m: self._node_quotes(m, None) for m in mappings], label="主力连续一览"
        )
        contracts = []
        for mapping, quotes in zip(mappings, results):
            for quote in quotes or []:
                if "连续" in quote.display_name and quote.symbol.endswith("0"):
                    contracts.append(MainContract(
                        symbol=quote.symbol,
                        name=quote.display_name,
                        exchange=mapping.exchange_code,
                    ))
                    break
        return contracts

    async def get_main_daily(
        self,
        symbol: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[MainContractPoint]:
        """主力连续日线（V0 / RB0），按日期正序，含起止日"""
        ref = resolve_contract(symbol)
        start = parse_date(start_date, "start_date") if start_date else None
        end = parse_date(end_date, "end_date") if end_date else None
        if start and end and start > end:
            raise InvalidRequest("开始日期不能晚于结束日期")
        points = await self.orchestrator.fetch_one(self._main_daily, {"symbol": ref.symbol})
        return self._proc.normalize_main_series(
            points,
            start.isoformat() if start else None,
            end.isoformat() if end else None,
        )

    # ── 持仓 / 费用 / 规则 ────────────────────────────────

    async def get_hold_pos(
        self, pos_type: str, contract: str, trade_date: Optional[str] = None
    ) -> List[HoldingRankEntry]:
        if pos_type not in HOLD_POS_TABLES:
            raise InvalidRequest(
                f"无效的持仓类型: {pos_type}，应为 {'/'.join(HOLD_POS_TABLES)}"
            )
        ref = resolve_contract(contract)
        day = parse_date(trade_date) if trade_date else today()
        return await self.orchestrator.fetch_one(
            self._hold_pos,
            {"pos_type": pos_type, "contract": ref.symbol, "date": day.isoformat()},
        )

    async def get_fees(self) -> List[FeeRecord]:
        return await self.orchestrator.fetch_one(self._fees, {})

    async def get_comm_info(self, exchange: Optional[str] = None) -> List[CommInfoRecord]:
        """exchange 可以是交易所中文名、交易所代码或“所有”"""
        if exchange and exchange != ALL_EXCHANGES:
            if exchange in EXCHANGE_NAMES:
                exchange = EXCHANGE_NAMES[exchange]
            elif exchange not in EXCHANGE_NAMES.values():
                raise NotFound(f"未知的交易所: {exchange}")
        return await self.orchestrator.fetch_one(
            self._comm_info, {"exchange": exchange or ALL_EXCHANGES}
        )

    async def get_rule(self, trade_date: Optional[str] = None) -> List[RuleRecord]:
        day = parse_date(trade_date) if trade_date else today()
        return await self.orchestrator.fetch_one(self._rule, {"date": day.strftime("%Y%m%d")})

    # ── 库存 ──────────────────────────────────────────────

    async def get_inventory_symbols(self) -> List[InventorySymbol]:
        return await self.orchestrator.fetch_one(self._inventory_symbols, {})

    async def get_inventory(self, symbol: str) -> List[InventoryRecord]:
        """symbol 为品种中文名（豆一）或代码（A）"""
        key = (symbol or "").strip()
        if not key:
            raise InvalidRequest("symbol 不能为空")
        symbols = await self.get_inventory_symbols()
        product = next(
            (s for s in symbols if s.name == key or s.code.casefold() == key.casefold()),
            None,
        )
        if product is None:
            raise NotFound(f"未找到品种 {key} 对应的编号")
        return await self.orchestrator.fetch_one(
            self._inventory, {"product_id": product.product_id, "symbol": product.name}
        )

    # ── 现货与基差 ────────────────────────────────────────

    @staticmethod
    def _split_symbols(symbols: Optional[str]) -> Optional[List[str]]:
        if not symbols:
            return None
        items = [s.strip().upper() for s in symbols.split(",") if s.strip()]
        return items or None

    async def get_spot_price(
        self, trade_date: Optional[str] = None, symbols: Optional[str] = None
    ) -> List[SpotPriceRecord]:
        day = parse_date(trade_date) if trade_date else today()
        return await self.orchestrator.fetch_one(
            self._spot, {"date": day.isoformat(), "symbols": self._split_symbols(symbols)}
        )

    async def get_spot_price_previous(
        self, trade_date: Optional[str] = None
    ) -> List[SpotPricePreviousRecord]:
        day = parse_date(trade_date) if trade_date else today()
        return await self.orchestrator.fetch_one(self._spot_previous, {"date": day.isoformat()})

    async def get_spot_price_daily(
        self, start_date: str, end_date: str, symbols: Optional[str] = None
    ) -> List[SpotPriceRecord]:
        """逐日抓取现货价格，失败的日期（多为非交易日）跳过，结果按日期排列"""
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if start > end:
            raise InvalidRequest("开始日期不能晚于结束日期")
        days = (end - start).days + 1
        if days > _MAX_SPOT_DAYS:
            raise InvalidRequest(f"日期范围最多 {_MAX_SPOT_DAYS} 天，实际 {days} 天")

        wanted = self._split_symbols(symbols)
        requests = [
            {"date": (start + timedelta(days=i)).isoformat(), "symbols": wanted}
            for i in range(days)
        ]
        results = await self.orchestrator.gather_tolerant(
            [lambda r=r: self.orchestrator.fetch_one(self._spot, r) for r in requests],
            label="现货日线",
        )
        records = [rec for chunk in results if chunk for rec in chunk]
        logger.info(f"现货价格日线 {start} ~ {end}: 共 {len(records)} 条")
        return records

    # ── 会员持仓排名 ──────────────────────────────────────

    @staticmethod
    def _exchange_date(value: str, field: str = "date") -> str:
        """交易所接口统一使用 YYYYMMDD"""
        return parse_date(value, field).strftime("%Y%m%d")

    async def _shfe_tables(self, day: str, varieties: Optional[List[str]]) -> List[RankTable]:
        return await self.orchestrator.fetch_one(self._shfe_rank, {"date": day, "vars": varieties})

    async def _cffex_tables(self, day: str, varieties: Optional[List[str]]) -> List[RankTable]:
        """中金所每个品种一个文件，单个品种失败时跳过"""
        targets = [v for v in RANK_VARIETIES["CFFEX"] if not varieties or v in varieties]
        results = await self.orchestrator.gather_tolerant(
            [lambda v=v: self.orchestrator.fetch_one(self._cffex_rank, {"date": day, "variety": v})
             for v in targets],
            label="中金所持仓排名",
        )
        return sorted((t for chunk in results if chunk for t in chunk), key=lambda t: t.symbol)

    async def _czce_tables(self, day: str) -> List[RankTable]:
        return await self.orchestrator.fetch_one(self._czce_rank, {"date": day})

    async def _dce_tables(self, day: str, varieties: Optional[List[str]]) -> List[RankTable]:
        return await self.orchestrator.fetch_one(self._dce_rank, {"date": day, "vars": varieties})

    async def _gfex_contract_tables(self, variety: str, day: str) -> List[RankTable]:
        contracts = await self.orchestrator.fetch_one(
            self._gfex_contracts, {"variety": variety, "date": day}
        )
        if not contracts:
            logger.warning(f"广期所 {variety.upper()} 在 {day} 无合约数据")
            return []
        results = await self.orchestrator.gather_tolerant(
            [lambda c=c: self.orchestrator.fetch_one(
                self._gfex_rank, {"variety": variety, "contract": c, "date": day})
             for c in contracts],
            label=f"广期所 {variety.upper()} 合约排名",
        )
        return [
            RankTable(symbol=contract.upper(), data=records)
            for contract, records in zip(contracts, results)
            if records
        ]

    async def _gfex_tables(self, day: str, varieties: Optional[List[str]]) -> List[RankTable]:
        """广期所先取品种当日合约列表，再逐合约取三张表"""
        targets = [v.lower() for v in RANK_VARIETIES["GFEX"] if not varieties or v in varieties]
        results = await self.orchestrator.gather_tolerant(
            [lambda v=v: self._gfex_contract_tables(v, day) for v in targets],
            label="广期所持仓排名",
        )
        return sorted((t for chunk in results if chunk for t in chunk), key=lambda t: t.symbol)

    async def get_shfe_rank_table(
        self, trade_date: str, variety_codes: Optional[str] = None
    ) -> List[RankTable]:
        """variety_codes 为逗号分隔的品种代码（CU,AL），为空表示全部品种"""
        day = self._exchange_date(trade_date)
        return await self._shfe_tables(day, self._split_symbols(variety_codes))

    async def get_cffex_rank_table(
        self, trade_date: str, variety_codes: Optional[str] = None
    ) -> List[RankTable]:
        day = self._exchange_date(trade_date)
        return await self._cffex_tables(day, self._split_symbols(variety_codes))

    async def get_czce_rank_table(self, trade_date: str) -> List[RankTable]:
        return await self._czce_tables(self._exchange_date(trade_date))

    async def get_dce_rank_table(
        self, trade_date: str, variety_codes: Optional[str] = None
    ) -> List[RankTable]:
        day = self._exchange_date(trade_date)
        return await self._dce_tables(day, self._split_symbols(variety_codes))

    async def get_gfex_rank_table(
        self, trade_date: str, variety_codes: Optional[str] = None
    ) -> List[RankTable]:
        day = self._exchange_date(trade_date)
        return await self._gfex_tables(day, self._split_symbols(variety_codes))

    async def _rank_sum(self, day: str, varieties: Optional[List[str]]) -> List[RankSum]:
        """五个交易所的排名表合并后汇总，某个交易所失败只记日志"""

        def targets(exchange: str) -> List[str]:
            return [v for v in RANK_VARIETIES[exchange] if not varieties or v in varieties]

        async def czce() -> List[RankTable]:
            wanted = targets("CZCE")
            return [t for t in await self._czce_tables(day) if extract_variety(t.symbol) in wanted]

        jobs = []
        if targets("DCE"):
            jobs.append(lambda: self._dce_tables(day, targets("DCE")))
        if targets("SHFE"):
            jobs.append(lambda: self._shfe_tables(day, targets("SHFE")))
        if targets("CZCE"):
            jobs.append(czce)
        if targets("CFFEX"):
            jobs.append(lambda: self._cffex_tables(day, targets("CFFEX")))
        if targets("GFEX"):
            jobs.append(lambda: self._gfex_tables(day, targets("GFEX")))

        results = await self.orchestrator.gather_tolerant(jobs, label=f"{day} 持仓排名汇总")
        tables = [t for chunk in results if chunk for t in chunk]
        # 郑商所与广期所只给出合约行，其余三所额外给出品种合计
        totals = RANK_VARIETIES["SHFE"] + RANK_VARIETIES["DCE"] + RANK_VARIETIES["CFFEX"]
        return self._proc.summarize_rank(tables, day, totals)

    async def get_rank_sum(
        self, trade_date: str, variety_codes: Optional[str] = None
    ) -> List[RankSum]:
        day = self._exchange_date(trade_date)
        summary = await self._rank_sum(day, self._split_symbols(variety_codes))
        logger.info(f"📊 {day} 持仓排名汇总 {len(summary)} 条")
        return summary

    async def get_rank_sum_daily(
        self, start_date: str, end_date: str, variety_codes: Optional[str] = None
    ) -> List[RankSum]:
        """逐日汇总，无数据的日期（多为非交易日）跳过，结果按日期排列"""
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if start > end:
            raise InvalidRequest("开始日期不能晚于结束日期")
        days = (end - start).days + 1
        if days > _MAX_RANK_DAYS:
            raise InvalidRequest(f"日期范围最多 {_MAX_RANK_DAYS} 天，实际 {days} 天")

        varieties = self._split_symbols(variety_codes)
        records: List[RankSum] = []
        for offset in range(days):
            day = (start + timedelta(days=offset)).strftime("%Y%m%d")
            summary = await self._rank_sum(day, varieties)
            if summary:
                records.extend(summary)
            else:
                logger.info(f"📅 {day} 无持仓排名数据（可能是非交易日）")
        logger.info(f"📊 持仓排名汇总 {start} ~ {end}: 共 {len(records)} 条")
        return records

    # ── 仓单日报 ──────────────────────────────────────────

    async def get_czce_warehouse_receipt(self, trade_date: str) -> List[WarehouseReceiptGroup]:
        return await self.orchestrator.fetch_one(
            self._czce_warehouse, {"date": self._exchange_date(trade_date)}
        )

    async def get_dce_warehouse_receipt(self, trade_date: str) -> List[DceWarehouseReceipt]:
        return await self.orchestrator.fetch_one(
            self._dce_warehouse, {"date": self._exchange_date(trade_date)}
        )

    async def get_shfe_warehouse_receipt(self, trade_date: str) -> List[WarehouseReceiptGroup]:
        return await self.orchestrator.fetch_one(
            self._shfe_warehouse, {"date": self._exchange_date(trade_date)}
        )

    async def get_gfex_warehouse_receipt(self, trade_date: str) -> List[WarehouseReceiptGroup]:
        return await self.orchestrator.fetch_one(
            self._gfex_warehouse, {"date": self._exchange_date(trade_date)}
        )

    # ── 外盘 ──────────────────────────────────────────────

    def get_foreign_symbols(self) -> List[ForeignSymbol]:
        return list(FOREIGN_SYMBOLS)

    @staticmethod
    def _check_foreign(code: str) -> str:
        """外盘代码必须在品种表中，否则不发起请求直接 NotFound"""
        key = (code or "").strip().upper()
        if key not in FOREIGN_NAMES:
            raise NotFound(f"未知的外盘品种代码: {code}（可查询 /futures/foreign/symbols）")
        return key

    async def _foreign_quote_one(self, code: str) -> Quote:
        quotes = await self.orchestrator.fetch_one(
            self._foreign_quote, {"code": self._check_foreign(code)}
        )
        return quotes[0]

    async def get_foreign_quotes(self, codes: Sequence[str]) -> List[BatchItem]:
        return await self.orchestrator.fetch_batch(codes, self._foreign_quote_one)

    async def get_foreign_history(self, symbol: str, limit: Optional[int] = None) -> List[Bar]:
        bars = await self.orchestrator.fetch_one(
            self._foreign_history, {"symbol": self._check_foreign(symbol)}
        )
        return self._proc.normalize_bars(
            bars, "daily", limit or settings.DEFAULT_HISTORY_LIMIT
        )

    async def get_foreign_detail(self, symbol: str) -> List[DetailItem]:
        return await self.orchestrator.fetch_one(
            self._foreign_detail, {"symbol": self._check_foreign(symbol)}
        )


# ── 模块级别单例 ──────────────────────────────────────────
_futures_service: Optional[FuturesService] = None


def get_futures_service() -> FuturesService:
    global _futures_service
    if _futures_service is None:
        _futures_service = FuturesService()
    return _futures_service
