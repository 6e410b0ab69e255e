"""
股票数据路由
GET /stocks                    - 股票列表（默认 20 条）
GET /stocks/{symbol}           - 单只股票实时行情
GET /stocks/{symbol}/history   - 历史日 K 线（默认 30 条，最新在前）
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from market_service.models import ApiResponse
from market_service.routers.auth import verify_api_key
from market_service.services.stock_service import StockService, get_stock_service

router = APIRouter(prefix="/stocks", tags=["股票数据"], dependencies=[Depends(verify_api_key)])


@router.get("", response_model=ApiResponse)
async def list_stocks(
    limit: Optional[int] = Query(default=None, ge=1, le=5000, description="默认 20"),
    svc: StockService = Depends(get_stock_service),
):
    """获取股票列表"""
    return ApiResponse.ok(data=await svc.list_stocks(limit))


@router.get("/{symbol}/history", response_model=ApiResponse)
async def get_stock_history(
    symbol: str,
    limit: Optional[int] = Query(default=None, ge=1, le=5000, description="默认 30"),
    svc: StockService = Depends(get_stock_service),
):
    """获取股票历史 K 线数据"""
    return ApiResponse.ok(data=await svc.get_history(symbol, limit))


@router.get("/{symbol}", response_model=ApiResponse)
async def get_stock(symbol: str, svc: StockService = Depends(get_stock_service)):
    """获取单只股票实时行情"""
    return ApiResponse.ok(data=await svc.get_stock(symbol))
