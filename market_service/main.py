"""
行情数据聚合服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn market_service.main:app --host 0.0.0.0 --port 8080
    python -m market_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from market_service import __version__
from market_service.config import settings
from market_service.errors import ServiceError
from market_service.layers.acquisition import close_upstream_client
from market_service.models import ApiResponse
from market_service.routers import futures, health, stocks
from market_service.services.futures_service import get_futures_service

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Market Data Service v{__version__} 启动中")
    logger.info(f"   Listen    : {settings.HOST}:{settings.PORT}{settings.API_PREFIX}")
    logger.info(
        f"   Upstream  : timeout={settings.UPSTREAM_TIMEOUT}s "
        f"connect={settings.UPSTREAM_CONNECT_TIMEOUT}s"
    )
    logger.info(f"   Auth      : {'Bearer API Key' if settings.API_KEY else '未启用'}")
    logger.info("=" * 60)

    # 注册表在后台加载，加载失败不阻断启动
    svc = get_futures_service()
    await svc.start()

    yield

    logger.info("🔄 行情服务正在关闭...")
    await svc.close()
    await close_upstream_client()
    logger.info("✅ 行情服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="行情数据聚合服务",
    description=(
        "把多个期货 / 股票行情数据源统一为一套 REST 接口：\n"
        "- 📈 期货实时行情、日线 / 分钟线、主力连续合约\n"
        "- 🏦 持仓排名、交易费用、交易规则、库存、现货基差\n"
        "- 🌍 外盘期货行情与合约详情\n"
        "- 📊 A 股行情与日线\n\n"
        "所有响应统一为 `{success, data, error}`。"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 异常处理：统一转换为 {success: false, data: null, error} ──
def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ApiResponse.fail(message).model_dump())


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} → {exc.error_type}: {exc.message}")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return _error_response(400, f"请求参数无效: {details}")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return _error_response(500, f"内部服务错误: {exc}")


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(futures.router, prefix=settings.API_PREFIX)
app.include_router(stocks.router, prefix=settings.API_PREFIX)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False, response_model=ApiResponse)
async def root():
    return ApiResponse.ok(data={
        "service": "Market Data Service",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    })


# ── 直接运行入口 ──────────────────────────────────────────
def run() -> None:
    uvicorn.run(
        "market_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
