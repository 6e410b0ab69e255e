"""
期货数据路由
GET  /futures                           - 活跃合约列表
GET  /futures/exchanges                 - 交易所列表
GET  /futures/symbols[/{exchange}]      - 品种映射
POST /futures/batch                     - 批量实时行情
GET  /futures/realtime/{product}        - 某品种全部合约实时行情
GET  /futures/main/display              - 主力连续合约一览
GET  /futures/main/{symbol}/daily       - 主力连续日线
GET  /futures/main/{exchange}           - 交易所主力合约
GET  /futures/hold_pos                  - 持仓排名
GET  /futures/fees | comm_info | rule   - 费用 / 手续费 / 交易规则
GET  /futures/inventory99[/symbols]     - 99 期货网库存
GET  /futures/spot_price[_previous|_daily]
GET  /futures/rank/{shfe|cffex|dce|czce|gfex}  - 交易所会员持仓排名
GET  /futures/rank/sum[_daily]          - 持仓排名前 N 名汇总
GET  /futures/warehouse/{czce|dce|shfe|gfex}    - 仓单日报
GET  /futures/foreign/symbols           - 外盘品种
POST /futures/foreign/realtime          - 外盘批量实时行情
GET  /futures/foreign/{symbol}/history|detail
GET  /futures/{symbol}[/detail|/history|/minute]

静态路径必须注册在 /{symbol} 之前。
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query

from market_service.models import ApiResponse
from market_service.routers.auth import verify_api_key
from market_service.services.futures_service import FuturesService, get_futures_service

router = APIRouter(prefix="/futures", tags=["期货数据"], dependencies=[Depends(verify_api_key)])


# ── 列表与映射 ────────────────────────────────────────────

@router.get("", response_model=ApiResponse)
async def list_futures(
    exchange: Optional[str] = Query(default=None, description="交易所代码，如 SHFE"),
    limit: Optional[int] = Query(default=None, ge=1, le=5000, description="最多返回条数"),
    svc: FuturesService = Depends(get_futures_service),
):
    """活跃合约列表"""
    return ApiResponse.ok(data=await svc.list_futures(exchange, limit))


@router.get("/exchanges", response_model=ApiResponse)
async def list_exchanges(svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=svc.get_exchanges())


@router.get("/symbols", response_model=ApiResponse)
async def list_all_symbols(svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=await svc.list_symbols())


@router.get("/symbols/{exchange}", response_model=ApiResponse)
async def list_exchange_symbols(exchange: str, svc: FuturesService = Depends(get_futures_service)):
    """某交易所的品种映射（交易所代码区分大小写）"""
    return ApiResponse.ok(data=await svc.list_symbols(exchange))


# ── 实时行情 ──────────────────────────────────────────────

@router.post("/batch", response_model=ApiResponse)
async def batch_quotes(
    symbols: List[str] = Body(..., description='合约代码数组，如 ["CU2602", "RB2605"]'),
    svc: FuturesService = Depends(get_futures_service),
):
    """
    批量实时行情

    只要批量调度本身完成，顶层 success 即为 true；
    每个位置各自携带 success / error / error_type，顺序与输入一致
    """
    return ApiResponse.ok(data=await svc.get_quotes(symbols))


@router.get("/realtime/{product}", response_model=ApiResponse)
async def realtime_by_product(product: str, svc: FuturesService = Depends(get_futures_service)):
    """某品种（中文名或 node 参数）全部合约的实时行情"""
    return ApiResponse.ok(data=await svc.get_realtime_by_product(product))


# ── 主力合约 ──────────────────────────────────────────────

@router.get("/main/display", response_model=ApiResponse)
async def main_display(svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=await svc.get_main_display())


@router.get("/main/{symbol}/daily", response_model=ApiResponse)
async def main_daily(
    symbol: str,
    start_date: Optional[str] = Query(default=None, description="YYYYMMDD 或 YYYY-MM-DD"),
    end_date: Optional[str] = Query(default=None, description="YYYYMMDD 或 YYYY-MM-DD"),
    svc: FuturesService = Depends(get_futures_service),
):
    """主力连续日线（如 V0、RB0），按日期正序"""
    return ApiResponse.ok(data=await svc.get_main_daily(symbol, start_date, end_date))


@router.get("/main/{exchange}", response_model=ApiResponse)
async def main_contracts(exchange: str, svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=await svc.get_main_contracts(exchange))


# ── 持仓 / 费用 / 规则 ────────────────────────────────────

@router.get("/hold_pos", response_model=ApiResponse)
async def hold_pos(
    contract: str = Query(..., description="合约代码，如 RB2510"),
    pos_type: str = Query(default="volume", description="volume / long / short"),
    date: Optional[str] = Query(default=None, description="交易日，默认今天"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_hold_pos(pos_type, contract, date))


@router.get("/fees", response_model=ApiResponse)
async def fees(svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=await svc.get_fees())


@router.get("/comm_info", response_model=ApiResponse)
async def comm_info(
    exchange: Optional[str] = Query(default=None, description="交易所代码 / 中文名 / 所有"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_comm_info(exchange))


@router.get("/rule", response_model=ApiResponse)
async def rule(
    date: Optional[str] = Query(default=None, description="交易日，默认今天"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_rule(date))


# ── 库存 ──────────────────────────────────────────────────

@router.get("/inventory99/symbols", response_model=ApiResponse)
async def inventory_symbols(svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=await svc.get_inventory_symbols())


@router.get("/inventory99", response_model=ApiResponse)
async def inventory(
    symbol: str = Query(..., description="品种中文名（豆一）或代码（A）"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_inventory(symbol))


# ── 现货与基差 ────────────────────────────────────────────

@router.get("/spot_price", response_model=ApiResponse)
async def spot_price(
    date: Optional[str] = Query(default=None, description="交易日，默认今天"),
    symbols: Optional[str] = Query(default=None, description="逗号分隔的品种代码，如 RB,CU"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_spot_price(date, symbols))


@router.get("/spot_price_previous", response_model=ApiResponse)
async def spot_price_previous(
    date: Optional[str] = Query(default=None, description="交易日，默认今天"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_spot_price_previous(date))


@router.get("/spot_price_daily", response_model=ApiResponse)
async def spot_price_daily(
    start_date: str = Query(..., description="YYYYMMDD 或 YYYY-MM-DD"),
    end_date: str = Query(..., description="YYYYMMDD 或 YYYY-MM-DD"),
    symbols: Optional[str] = Query(default=None, description="逗号分隔的品种代码"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_spot_price_daily(start_date, end_date, symbols))


# ── 交易所会员持仓排名 ────────────────────────────────────

@router.get("/rank/shfe", response_model=ApiResponse)
async def rank_shfe(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    variety_codes: Optional[str] = Query(
        default=None, alias="vars", description="逗号分隔的品种代码，如 CU,AL"
    ),
    svc: FuturesService = Depends(get_futures_service),
):
    """上期所前 20 会员成交持仓排名，按合约分组"""
    return ApiResponse.ok(data=await svc.get_shfe_rank_table(date, variety_codes))


@router.get("/rank/cffex", response_model=ApiResponse)
async def rank_cffex(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    variety_codes: Optional[str] = Query(
        default=None, alias="vars", description="逗号分隔的品种代码，如 IF,IC"
    ),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_cffex_rank_table(date, variety_codes))


@router.get("/rank/dce", response_model=ApiResponse)
async def rank_dce(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    variety_codes: Optional[str] = Query(
        default=None, alias="vars", description="逗号分隔的品种代码，如 M,Y"
    ),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_dce_rank_table(date, variety_codes))


@router.get("/rank/czce", response_model=ApiResponse)
async def rank_czce(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    svc: FuturesService = Depends(get_futures_service),
):
    """郑商所排名来自交易所发布的 Excel，不支持按品种过滤"""
    return ApiResponse.ok(data=await svc.get_czce_rank_table(date))


@router.get("/rank/gfex", response_model=ApiResponse)
async def rank_gfex(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    variety_codes: Optional[str] = Query(
        default=None, alias="vars", description="逗号分隔的品种代码，如 SI,LC"
    ),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_gfex_rank_table(date, variety_codes))


@router.get("/rank/sum", response_model=ApiResponse)
async def rank_sum(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    variety_codes: Optional[str] = Query(
        default=None, alias="vars", description="逗号分隔的品种代码，为空表示全部"
    ),
    svc: FuturesService = Depends(get_futures_service),
):
    """五个交易所前 5 / 10 / 15 / 20 名会员的成交与持仓合计"""
    return ApiResponse.ok(data=await svc.get_rank_sum(date, variety_codes))


@router.get("/rank/sum_daily", response_model=ApiResponse)
async def rank_sum_daily(
    start_date: str = Query(..., description="YYYYMMDD"),
    end_date: str = Query(..., description="YYYYMMDD，最多 31 天"),
    variety_codes: Optional[str] = Query(
        default=None, alias="vars", description="逗号分隔的品种代码，为空表示全部"
    ),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_rank_sum_daily(start_date, end_date, variety_codes))


# ── 仓单日报 ──────────────────────────────────────────────

@router.get("/warehouse/czce", response_model=ApiResponse)
async def warehouse_czce(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_czce_warehouse_receipt(date))


@router.get("/warehouse/dce", response_model=ApiResponse)
async def warehouse_dce(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_dce_warehouse_receipt(date))


@router.get("/warehouse/shfe", response_model=ApiResponse)
async def warehouse_shfe(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_shfe_warehouse_receipt(date))


@router.get("/warehouse/gfex", response_model=ApiResponse)
async def warehouse_gfex(
    date: str = Query(..., description="交易日 YYYYMMDD"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_gfex_warehouse_receipt(date))


# ── 外盘 ──────────────────────────────────────────────────

@router.get("/foreign/symbols", response_model=ApiResponse)
async def foreign_symbols(svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=svc.get_foreign_symbols())


@router.post("/foreign/realtime", response_model=ApiResponse)
async def foreign_realtime(
    codes: List[str] = Body(..., description='外盘代码数组，如 ["CL", "GC"]'),
    svc: FuturesService = Depends(get_futures_service),
):
    """外盘批量实时行情，语义与 /futures/batch 相同"""
    return ApiResponse.ok(data=await svc.get_foreign_quotes(codes))


@router.get("/foreign/{symbol}/history", response_model=ApiResponse)
async def foreign_history(
    symbol: str,
    limit: Optional[int] = Query(default=None, ge=1, le=5000, description="最多返回条数"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_foreign_history(symbol, limit))


@router.get("/foreign/{symbol}/detail", response_model=ApiResponse)
async def foreign_detail(symbol: str, svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=await svc.get_foreign_detail(symbol))


# ── 单合约 ────────────────────────────────────────────────

@router.get("/{symbol}/detail", response_model=ApiResponse)
async def contract_detail(symbol: str, svc: FuturesService = Depends(get_futures_service)):
    return ApiResponse.ok(data=await svc.get_detail(symbol))


@router.get("/{symbol}/history", response_model=ApiResponse)
async def contract_history(
    symbol: str,
    limit: Optional[int] = Query(default=None, ge=1, le=5000, description="最多返回条数"),
    svc: FuturesService = Depends(get_futures_service),
):
    """日 K 线，最新在前，默认 30 条"""
    return ApiResponse.ok(data=await svc.get_history(symbol, limit))


@router.get("/{symbol}/minute", response_model=ApiResponse)
async def contract_minute(
    symbol: str,
    period: str = Query(default="5", description="1 / 5 / 15 / 30 / 60"),
    limit: Optional[int] = Query(default=None, ge=1, le=5000, description="最多返回条数"),
    svc: FuturesService = Depends(get_futures_service),
):
    return ApiResponse.ok(data=await svc.get_minute(symbol, period, limit))


@router.get("/{symbol}", response_model=ApiResponse)
async def contract_quote(symbol: str, svc: FuturesService = Depends(get_futures_service)):
    """单个合约实时行情"""
    return ApiResponse.ok(data=await svc.get_quote(symbol))
