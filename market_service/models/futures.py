"""
期货领域模型
所有记录均为不可变值对象，每次请求构造一次，序列化后即丢弃
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── 交易所 / 品种映射 ──────────────────────────────────────

class Exchange(_Record):
    code: str
    name: str
    description: str


class SymbolMapping(_Record):
    """交易所 → 品种 → 新浪 node 参数（如 tong_qh）"""
    exchange_code: str
    exchange_display_name: str
    product_display_name: str
    upstream_mark: str


# ── 行情与 K 线 ───────────────────────────────────────────

class Quote(_Record):
    """实时行情（期货 / 外盘 / 股票共用）"""
    symbol: str
    display_name: str
    current_price: float
    change: float
    change_percent: float
    volume: int
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    settlement: Optional[float] = None
    prev_settlement: Optional[float] = None
    open_interest: Optional[int] = None
    market_cap: Optional[float] = None
    observed_at: str


class Bar(_Record):
    """日线 timestamp 为 YYYY-MM-DD，分钟线为 YYYY-MM-DD HH:MM:SS"""
    symbol: str
    timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    settlement: Optional[float] = None
    open_interest: Optional[int] = None


class MainContract(_Record):
    """主力连续合约（如 V0 / PVC连续）"""
    symbol: str
    name: str
    exchange: str


class MainContractPoint(_Record):
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    open_interest: int
    settlement: Optional[float] = None


class ContractDetail(_Record):
    symbol: str
    name: str
    exchange: str
    trading_unit: str
    quote_unit: str
    min_price_change: str
    price_limit: str
    contract_months: str
    trading_hours: str
    last_trading_day: str
    last_delivery_day: str
    delivery_grade: str
    margin: str
    delivery_method: str


class HoldingRankEntry(_Record):
    rank: int
    company: str
    value: int
    change: int


# ── 费用 / 规则 ───────────────────────────────────────────

class FeeRecord(_Record):
    """OpenCTP 交易费用参照表"""
    exchange: str
    contract_code: str
    contract_name: str
    product_code: str
    product_name: str
    contract_size: str
    price_tick: str
    open_fee_rate: str
    open_fee: str
    close_fee_rate: str
    close_fee: str
    close_today_fee_rate: str
    close_today_fee: str
    long_margin_rate: str
    short_margin_rate: str
    updated_at: str


class CommInfoRecord(_Record):
    """九期网手续费标准"""
    exchange: str
    contract_name: str
    contract_code: str
    current_price: Optional[float] = None
    limit_up: Optional[float] = None
    limit_down: Optional[float] = None
    margin_buy: Optional[float] = None
    margin_sell: Optional[float] = None
    margin_per_lot: Optional[float] = None
    fee_open_ratio: Optional[float] = None
    fee_open_yuan: Optional[float] = None
    fee_close_yesterday_ratio: Optional[float] = None
    fee_close_yesterday_yuan: Optional[float] = None
    fee_close_today_ratio: Optional[float] = None
    fee_close_today_yuan: Optional[float] = None
    profit_per_tick: Optional[float] = None
    fee_total: Optional[float] = None
    net_profit_per_tick: Optional[float] = None
    remark: Optional[str] = None


class RuleRecord(_Record):
    """国泰君安交易规则"""
    exchange: str
    product: str
    code: str
    margin_rate: Optional[float] = None
    price_limit: Optional[float] = None
    contract_size: Optional[float] = None
    price_tick: Optional[float] = None
    max_order_size: Optional[int] = None
    special_note: Optional[str] = None
    remark: Optional[str] = None


# ── 库存 / 现货 ───────────────────────────────────────────

class InventorySymbol(_Record):
    product_id: int
    name: str
    code: str


class InventoryRecord(_Record):
    date: str
    symbol: str
    close_price: Optional[float] = None
    inventory: Optional[float] = None


class SpotPriceRecord(_Record):
    date: str
    symbol: str
    spot_price: float
    near_contract: str
    near_contract_price: float
    dominant_contract: str
    dominant_contract_price: float
    near_basis: float
    dom_basis: float
    near_basis_rate: float
    dom_basis_rate: float


class SpotPricePreviousRecord(_Record):
    commodity: str
    spot_price: float
    dominant_contract: str
    dominant_price: float
    basis: float
    basis_rate: float
    basis_180d_high: Optional[float] = None
    basis_180d_low: Optional[float] = None
    basis_180d_avg: Optional[float] = None


# ── 外盘 ──────────────────────────────────────────────────

class ForeignSymbol(_Record):
    symbol: str
    code: str


class DetailItem(_Record):
    name: str
    value: str


# ── 会员持仓排名 / 仓单日报 ───────────────────────────────

class PositionRankRecord(_Record):
    """交易所公布的前 20 会员成交 / 多单 / 空单排名（同一名次一行）"""
    rank: int
    vol_party_name: str
    vol: int
    vol_chg: int
    long_party_name: str
    long_open_interest: int
    long_open_interest_chg: int
    short_party_name: str
    short_open_interest: int
    short_open_interest_chg: int
    symbol: str
    variety: str


class RankTable(_Record):
    """按合约分组的排名表"""
    symbol: str
    data: List[PositionRankRecord]


class RankSum(_Record):
    """
    前 5 / 10 / 15 / 20 名会员的成交与持仓合计

    symbol 为合约代码；品种合计行的 symbol 与 variety 相同（如 CU）
    """
    symbol: str
    variety: str
    vol_top5: int = 0
    vol_chg_top5: int = 0
    long_open_interest_top5: int = 0
    long_open_interest_chg_top5: int = 0
    short_open_interest_top5: int = 0
    short_open_interest_chg_top5: int = 0
    vol_top10: int = 0
    vol_chg_top10: int = 0
    long_open_interest_top10: int = 0
    long_open_interest_chg_top10: int = 0
    short_open_interest_top10: int = 0
    short_open_interest_chg_top10: int = 0
    vol_top15: int = 0
    vol_chg_top15: int = 0
    long_open_interest_top15: int = 0
    long_open_interest_chg_top15: int = 0
    short_open_interest_top15: int = 0
    short_open_interest_chg_top15: int = 0
    vol_top20: int = 0
    vol_chg_top20: int = 0
    long_open_interest_top20: int = 0
    long_open_interest_chg_top20: int = 0
    short_open_interest_top20: int = 0
    short_open_interest_chg_top20: int = 0
    date: str


class CzceWarehouseReceipt(_Record):
    warehouse: str
    warehouse_receipt: Optional[int] = None
    valid_forecast: Optional[int] = None
    change: Optional[int] = None


class DceWarehouseReceipt(_Record):
    variety_code: str
    variety_name: str
    warehouse: str
    delivery_location: Optional[str] = None
    last_receipt: int
    today_receipt: int
    change: int


class ShfeWarehouseReceipt(_Record):
    variety: str
    region: str
    warehouse: str
    last_receipt: int
    today_receipt: int
    change: int
    unit: str


class GfexWarehouseReceipt(_Record):
    variety: str
    warehouse: str
    last_receipt: int
    today_receipt: int
    change: int


class WarehouseReceiptGroup(_Record):
    """按品种分组的仓单（郑商所 / 上期所 / 广期所）"""
    symbol: str
    data: List[Any]


# ── 批量结果 ──────────────────────────────────────────────

class BatchItem(_Record):
    """批量请求中单个符号的结果，成功与失败互斥"""
    symbol: str
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
