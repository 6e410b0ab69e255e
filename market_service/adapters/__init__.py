"""
数据源适配器
每种上游格式一个适配器，统一实现 fetch / parse 两步
"""

from market_service.adapters.base import RawPayload, SourceAdapter
from market_service.adapters.detail import ContractDetailAdapter, HoldingRankAdapter
from market_service.adapters.fees import CommInfoAdapter, FeesAdapter, RuleAdapter
from market_service.adapters.foreign import (
    ForeignDetailAdapter,
    ForeignHistoryAdapter,
    ForeignQuoteAdapter,
)
from market_service.adapters.inventory import InventoryAdapter, InventorySymbolsAdapter
from market_service.adapters.kline import DailyBarsAdapter, MainDailyAdapter, MinuteBarsAdapter
from market_service.adapters.rank import (
    CffexRankAdapter,
    CzceRankAdapter,
    DceRankAdapter,
    GfexContractsAdapter,
    GfexRankAdapter,
    ShfeRankAdapter,
)
from market_service.adapters.realtime import NodeQuotesAdapter, RealtimeQuoteAdapter
from market_service.adapters.spot import SpotPriceAdapter, SpotPricePreviousAdapter
from market_service.adapters.stock import StockBarsAdapter, StockListAdapter, StockQuoteAdapter
from market_service.adapters.symbols import SymbolScriptAdapter
from market_service.adapters.warehouse import (
    CzceWarehouseAdapter,
    DceWarehouseAdapter,
    GfexWarehouseAdapter,
    ShfeWarehouseAdapter,
)

__all__ = [
    "CffexRankAdapter",
    "CommInfoAdapter",
    "ContractDetailAdapter",
    "CzceRankAdapter",
    "CzceWarehouseAdapter",
    "DailyBarsAdapter",
    "DceRankAdapter",
    "DceWarehouseAdapter",
    "FeesAdapter",
    "ForeignDetailAdapter",
    "ForeignHistoryAdapter",
    "ForeignQuoteAdapter",
    "GfexContractsAdapter",
    "GfexRankAdapter",
    "GfexWarehouseAdapter",
    "HoldingRankAdapter",
    "InventoryAdapter",
    "InventorySymbolsAdapter",
    "MainDailyAdapter",
    "MinuteBarsAdapter",
    "NodeQuotesAdapter",
    "RawPayload",
    "RealtimeQuoteAdapter",
    "RuleAdapter",
    "ShfeRankAdapter",
    "ShfeWarehouseAdapter",
    "SourceAdapter",
    "SpotPriceAdapter",
    "SpotPricePreviousAdapter",
    "StockBarsAdapter",
    "StockListAdapter",
    "StockQuoteAdapter",
    "SymbolScriptAdapter",
]
