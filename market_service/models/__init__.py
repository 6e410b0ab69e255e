"""领域模型与统一响应"""

from market_service.models.futures import (
    Bar,
    BatchItem,
    CommInfoRecord,
    ContractDetail,
    CzceWarehouseReceipt,
    DceWarehouseReceipt,
    DetailItem,
    Exchange,
    FeeRecord,
    ForeignSymbol,
    GfexWarehouseReceipt,
    HoldingRankEntry,
    InventoryRecord,
    InventorySymbol,
    MainContract,
    MainContractPoint,
    PositionRankRecord,
    Quote,
    RankSum,
    RankTable,
    RuleRecord,
    ShfeWarehouseReceipt,
    SpotPricePreviousRecord,
    SpotPriceRecord,
    SymbolMapping,
    WarehouseReceiptGroup,
)
from market_service.models.response import ApiResponse

__all__ = [
    "ApiResponse",
    "Bar",
    "BatchItem",
    "CommInfoRecord",
    "ContractDetail",
    "CzceWarehouseReceipt",
    "DceWarehouseReceipt",
    "DetailItem",
    "Exchange",
    "FeeRecord",
    "ForeignSymbol",
    "GfexWarehouseReceipt",
    "HoldingRankEntry",
    "InventoryRecord",
    "InventorySymbol",
    "MainContract",
    "MainContractPoint",
    "PositionRankRecord",
    "Quote",
    "RankSum",
    "RankTable",
    "RuleRecord",
    "ShfeWarehouseReceipt",
    "SpotPricePreviousRecord",
    "SpotPriceRecord",
    "SymbolMapping",
    "WarehouseReceiptGroup",
]
