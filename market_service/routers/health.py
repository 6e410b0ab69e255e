"""健康检查路由（无需认证）"""

import time
from pathlib import Path

from fastapi import APIRouter, Depends

from market_service import __version__
from market_service.models import ApiResponse
from market_service.services.futures_service import FuturesService, get_futures_service

router = APIRouter(tags=["健康检查"])


def _read_version() -> str:
    try:
        vf = Path(__file__).parent.parent.parent / "VERSION"
        if vf.exists():
            return vf.read_text(encoding="utf-8").strip()
    except OSError:
        pass
    return __version__


@router.get("/health", response_model=ApiResponse)
async def health(svc: FuturesService = Depends(get_futures_service)):
    """服务健康检查；品种注册表未加载时仍返回 ok，由 registry 字段体现"""
    return ApiResponse.ok(data={
        "status": "ok",
        "version": _read_version(),
        "timestamp": int(time.time()),
        "service": "Market Data Service",
        "registry": svc.registry_stats(),
    })


@router.get("/healthz", include_in_schema=False, response_model=ApiResponse)
async def healthz():
    """Kubernetes 存活检查"""
    return ApiResponse.ok(data={"status": "ok"})


@router.get("/readyz", include_in_schema=False, response_model=ApiResponse)
async def readyz(svc: FuturesService = Depends(get_futures_service)):
    """Kubernetes 就绪检查：品种注册表至少发布过一代"""
    return ApiResponse.ok(data={"ready": svc.registry.generation is not None})
