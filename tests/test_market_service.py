"""
行情服务单元测试

覆盖范围：
  - 配置模块
  - 品种注册表（发布 / 查询 / 未加载）与刷新调度
  - 获取层（超时、上游状态码归类）
  - 调度层（批量顺序、单项失败、批量校验）
  - 数据处理层（K 线排序与截断）
  - 合约代码解析与日期参数
  - FastAPI 路由（通过 TestClient + 模拟上游）
"""

import asyncio
import time
from unittest.mock import patch

import httpx
import pytest

from conftest import SYMBOL_SCRIPT, make_client

from market_service.errors import (
    InvalidRequest,
    NotFound,
    RegistryUnavailable,
    UpstreamTimeout,
    UpstreamUnavailable,
)


def _mappings():
    from market_service.adapters.symbols import parse_symbol_script
    return parse_symbol_script(SYMBOL_SCRIPT)


# ─────────────────────────────────────────────────────────
# 1. 配置模块测试
# ─────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self):
        from market_service.config import MarketServiceSettings
        s = MarketServiceSettings()
        assert s.PORT == 8080
        assert s.UPSTREAM_TIMEOUT == 30.0
        assert s.UPSTREAM_CONNECT_TIMEOUT == 10.0
        assert s.DEFAULT_HISTORY_LIMIT == 30

    def test_override(self):
        from market_service.config import MarketServiceSettings
        s = MarketServiceSettings(API_KEY="secret", BATCH_MAX_SIZE=5)
        assert s.API_KEY == "secret"
        assert s.BATCH_MAX_SIZE == 5

    def test_docker_host(self):
        from market_service.config import MarketServiceSettings
        with patch("market_service.config._is_docker", return_value=True):
            assert MarketServiceSettings().HOST == "0.0.0.0"


# ─────────────────────────────────────────────────────────
# 2. 品种注册表
# ─────────────────────────────────────────────────────────

class TestSymbolRegistry:
    def setup_method(self):
        from market_service.layers.registry import SymbolRegistry
        self.registry = SymbolRegistry()

    def test_unavailable_before_publish(self):
        with pytest.raises(RegistryUnavailable):
            self.registry.list()
        assert self.registry.generation is None
        assert self.registry.age is None

    def test_publish_increments_generation(self):
        first = self.registry.publish(_mappings())
        second = self.registry.publish(_mappings())
        assert first.number == 1
        assert second.number == 2
        assert self.registry.generation is second

    def test_list_by_exchange(self):
        self.registry.publish(_mappings())
        shfe = self.registry.list("SHFE")
        assert {m.product_display_name for m in shfe} == {"铜", "螺纹钢"}
        assert self.registry.list("shfe") == []

    def test_resolve(self):
        self.registry.publish(_mappings())
        assert self.registry.resolve("SHFE", "铜").upstream_mark == "tong_qh"
        assert self.registry.resolve("SHFE", "TONG_QH").product_display_name == "铜"
        with pytest.raises(NotFound):
            self.registry.resolve("DCE", "铜")

    def test_find(self):
        self.registry.publish(_mappings())
        assert self.registry.find("pvc_qh").product_display_name == "PVC"
        assert self.registry.find("螺纹").upstream_mark == "luowengang_qh"
        with pytest.raises(NotFound):
            self.registry.find("不存在的品种")

    def test_old_generation_unchanged_after_swap(self):
        old = self.registry.publish(_mappings())
        self.registry.publish(_mappings()[:1])
        assert len(old.mappings) == len(_mappings())
        assert len(self.registry.list()) == 1


class _FlakyAdapter:
    """第一次成功，之后全部失败"""

    def __init__(self):
        self.calls = 0

    async def run(self, request):
        self.calls += 1
        if self.calls > 1:
            raise UpstreamUnavailable("上游返回异常状态: HTTP 500")
        return _mappings()


class TestRegistryRefresher:
    def _refresher(self, adapter, stale_after=600.0):
        from market_service.layers.registry import SymbolRegistry
        from market_service.layers.scheduler import RegistryRefresher
        return RegistryRefresher(SymbolRegistry(), adapter, interval=3600, stale_after=stale_after)

    def test_failed_refresh_keeps_previous_generation(self):
        refresher = self._refresher(_FlakyAdapter())

        async def _go():
            assert await refresher.refresh() is True
            assert await refresher.refresh() is False

        asyncio.run(_go())
        assert refresher.registry.generation.number == 1
        assert refresher.registry.list("SHFE")
        assert "UpstreamUnavailable" in refresher.last_error

    def test_refresh_if_stale(self):
        adapter = _FlakyAdapter()
        refresher = self._refresher(adapter)

        async def _go():
            assert refresher.is_stale() is True
            assert await refresher.refresh_if_stale() is True
            # 刚发布，不会再次请求
            assert await refresher.refresh_if_stale() is False

        asyncio.run(_go())
        assert adapter.calls == 1

    def test_concurrent_triggers_share_one_refresh(self):
        adapter = _FlakyAdapter()
        refresher = self._refresher(adapter)

        async def _go():
            first = refresher.trigger()
            second = refresher.trigger()
            assert first is second
            await first

        asyncio.run(_go())
        assert adapter.calls == 1


# ─────────────────────────────────────────────────────────
# 3. 获取层
# ─────────────────────────────────────────────────────────

class TestUpstreamClient:
    def test_total_timeout(self):
        async def slow(request):
            await asyncio.sleep(2)
            return httpx.Response(200, text="late")

        async def _go():
            upstream = make_client(slow, timeout=0.2, connect_timeout=0.1)
            started = time.monotonic()
            with pytest.raises(UpstreamTimeout):
                await upstream.get_text("https://example.com/slow")
            await upstream.aclose()
            return time.monotonic() - started

        assert asyncio.run(_go()) < 1.5

    def test_connect_error_is_unavailable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def _go():
            upstream = make_client(refuse)
            try:
                await upstream.get_text("https://example.com/")
            finally:
                await upstream.aclose()

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(_go())

    def test_connect_timeout_is_timeout(self):
        def hang(request):
            raise httpx.ConnectTimeout("connect timeout", request=request)

        async def _go():
            upstream = make_client(hang)
            try:
                await upstream.get_text("https://example.com/")
            finally:
                await upstream.aclose()

        with pytest.raises(UpstreamTimeout):
            asyncio.run(_go())

    @pytest.mark.parametrize("status", [403, 412, 456, 500])
    def test_bad_status_is_unavailable(self, status):
        async def _go():
            upstream = make_client(lambda request: httpx.Response(status))
            try:
                await upstream.get_text("https://example.com/")
            finally:
                await upstream.aclose()

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(_go())

    def test_gbk_decoding(self):
        async def _go():
            upstream = make_client(lambda request: httpx.Response(200, content="铜".encode("gbk")))
            try:
                return await upstream.get_text("https://example.com/", encoding="gbk")
            finally:
                await upstream.aclose()

        assert asyncio.run(_go()) == "铜"


# ─────────────────────────────────────────────────────────
# 4. 调度层
# ─────────────────────────────────────────────────────────

class TestOrchestrator:
    def setup_method(self):
        from market_service.layers.orchestrator import FetchOrchestrator
        self.orch = FetchOrchestrator(max_concurrency=2, batch_max_size=5)

    def test_batch_preserves_order_and_isolates_failure(self):
        delays = {"A": 0.05, "B": 0.0, "C": 0.01}

        async def worker(symbol):
            await asyncio.sleep(delays[symbol])
            if symbol == "B":
                raise NotFound("未知的期货品种: B")
            return symbol.lower()

        items = asyncio.run(self.orch.fetch_batch(["A", "B", "C"], worker))
        assert [i.symbol for i in items] == ["A", "B", "C"]
        assert [i.success for i in items] == [True, False, True]
        assert items[0].data == "a"
        assert items[1].data is None
        assert items[1].error_type == "NotFound"
        assert items[2].error is None

    def test_batch_concurrency_limit(self):
        running = {"now": 0, "peak": 0}

        async def worker(symbol):
            running["now"] += 1
            running["peak"] = max(running["peak"], running["now"])
            await asyncio.sleep(0.01)
            running["now"] -= 1
            return symbol

        asyncio.run(self.orch.fetch_batch(["A", "B", "C", "D", "E"], worker))
        assert running["peak"] <= 2

    def test_batch_validation(self):
        with pytest.raises(InvalidRequest):
            self.orch.check_batch([])
        with pytest.raises(InvalidRequest):
            self.orch.check_batch(["A"] * 6)
        with pytest.raises(InvalidRequest):
            self.orch.check_batch(["A", "  "])
        assert self.orch.check_batch([" cu2602 "]) == ["cu2602"]

    def test_gather_tolerant(self):
        async def ok():
            return 1

        async def bad():
            raise UpstreamUnavailable("down")

        assert asyncio.run(self.orch.gather_tolerant([ok, bad, ok])) == [1, None, 1]


# ─────────────────────────────────────────────────────────
# 5. 数据处理层
# ─────────────────────────────────────────────────────────

def _bar(ts, close=1.0):
    from market_service.models import Bar
    return Bar(symbol="CU2602", timestamp=ts, open=1, high=1, low=1, close=close, volume=1)


class TestProcessingLayer:
    def setup_method(self):
        from market_service.layers.processing import ProcessingLayer
        self.proc = ProcessingLayer()

    def test_normalize_empty(self):
        assert self.proc.normalize_bars([], "daily", 30) == []

    def test_daily_sorted_desc_and_limited(self):
        bars = [_bar(f"2026-01-{d:02d}") for d in range(1, 11)]
        result = self.proc.normalize_bars(bars, "daily", 3)
        assert [b.timestamp for b in result] == ["2026-01-10", "2026-01-09", "2026-01-08"]

    def test_minute_format_and_dedup(self):
        bars = [
            _bar("2026-01-05 09:05", close=1.0),
            _bar("2026/01/05 09:00:00", close=2.0),
            _bar("2026-01-05 09:05:00", close=3.0),
            _bar("not a time"),
        ]
        result = self.proc.normalize_bars(bars, "minute")
        assert [b.timestamp for b in result] == ["2026-01-05 09:05:00", "2026-01-05 09:00:00"]
        assert result[0].close == 3.0

    def test_main_series_ascending_with_range(self):
        from market_service.models import MainContractPoint
        points = [
            MainContractPoint(date=d, open=1, high=1, low=1, close=1, volume=1, open_interest=1)
            for d in ["2026-01-07", "2026-01-05", "2026-01-06", "2026-01-08"]
        ]
        result = self.proc.normalize_main_series(points, "2026-01-06", "2026-01-07")
        assert [p.date for p in result] == ["2026-01-06", "2026-01-07"]


# ─────────────────────────────────────────────────────────
# 6. 合约代码与日期参数
# ─────────────────────────────────────────────────────────

class TestContractResolution:
    def test_shfe_contract(self):
        from market_service.services.futures_service import resolve_contract
        ref = resolve_contract("cu2602")
        assert (ref.symbol, ref.variety, ref.exchange, ref.realtime_code) == (
            "CU2602", "CU", "SHFE", "nf_CU2602"
        )

    def test_cffex_prefix(self):
        from market_service.services.futures_service import resolve_contract
        assert resolve_contract("IF2412").realtime_code == "CFF_IF2412"
        assert resolve_contract("T2503").realtime_code == "CFF_T2503"
        # TA 是郑商所 PTA，不是国债
        assert resolve_contract("TA605").realtime_code == "nf_TA605"

    def test_raw_prefix_stripped(self):
        from market_service.services.futures_service import resolve_contract
        assert resolve_contract("nf_RB2510").symbol == "RB2510"

    @pytest.mark.parametrize("symbol", ["BAD9999", "XX2602", "", "CU"])
    def test_unknown(self, symbol):
        from market_service.services.futures_service import resolve_contract
        with pytest.raises(NotFound):
            resolve_contract(symbol)

    def test_parse_date(self):
        from datetime import date

        from market_service.services.futures_service import parse_date
        assert parse_date("20260105") == date(2026, 1, 5)
        assert parse_date("2026-01-05") == date(2026, 1, 5)
        with pytest.raises(InvalidRequest):
            parse_date("2026/01/05")


class TestFuturesServiceLookups:
    def _service(self, handler=None, stale_after=600.0):
        from market_service.adapters.symbols import SymbolScriptAdapter
        from market_service.layers.scheduler import RegistryRefresher
        from market_service.services.futures_service import FuturesService

        svc = FuturesService(client=make_client(handler) if handler else make_client())
        svc.refresher = RegistryRefresher(
            svc.registry, SymbolScriptAdapter(svc.client), interval=3600, stale_after=stale_after
        )
        # 第一代缺少“铜”
        svc.registry.publish([m for m in _mappings() if "铜" not in m.product_display_name])
        return svc

    def test_stale_miss_refreshes_then_retries(self):
        svc = self._service(stale_after=0)
        mapping = asyncio.run(svc._lookup(lambda: svc.registry.find("铜")))
        assert mapping.upstream_mark == "tong_qh"
        assert svc.registry.generation.number == 2

    def test_fresh_miss_does_not_refresh(self):
        svc = self._service()
        with pytest.raises(NotFound):
            asyncio.run(svc._lookup(lambda: svc.registry.find("铜")))
        assert svc.registry.generation.number == 1

    def test_foreign_unknown_code_sends_no_request(self):
        requests = []

        def handler(request):
            requests.append(str(request.url))
            return httpx.Response(404)

        svc = self._service(handler)
        items = asyncio.run(svc.get_foreign_quotes(["BAD9999"]))
        assert items[0].error_type == "NotFound"
        with pytest.raises(NotFound):
            asyncio.run(svc.get_foreign_history("BAD9999"))
        with pytest.raises(NotFound):
            asyncio.run(svc.get_foreign_detail("XYZ"))
        assert requests == []

    def test_foreign_quotes_mixed(self):
        svc = self._service()
        items = asyncio.run(svc.get_foreign_quotes(["cl", "BAD9999"]))
        assert [i.symbol for i in items] == ["cl", "BAD9999"]
        assert items[0].success is True
        assert items[0].data.display_name == "NYMEX原油"
        assert items[1].success is False
        assert items[1].error_type == "NotFound"


# ─────────────────────────────────────────────────────────
# 7. API 响应模型
# ─────────────────────────────────────────────────────────

class TestApiResponse:
    def test_ok(self):
        from market_service.models.response import ApiResponse
        r = ApiResponse.ok(data={"key": "value"})
        assert r.success is True
        assert r.data == {"key": "value"}
        assert r.error is None

    def test_fail(self):
        from market_service.models.response import ApiResponse
        r = ApiResponse.fail(error="not found")
        assert r.success is False
        assert r.data is None
        assert r.error == "not found"

    def test_inconsistent_rejected(self):
        from pydantic import ValidationError

        from market_service.models.response import ApiResponse
        with pytest.raises(ValidationError):
            ApiResponse(success=False, data=[1], error="x")


# ─────────────────────────────────────────────────────────
# 8. HTTP 路由测试（TestClient，上游全部模拟）
# ─────────────────────────────────────────────────────────

class TestHealthRoutes:
    def test_health_endpoint(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["status"] == "ok"
        assert body["data"]["registry"]["generation"] >= 1

    def test_healthz_endpoint(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "data": {"status": "ok"}, "error": None}

    def test_readyz_endpoint(self, client):
        resp = client.get("/readyz")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["ready"] is True
        assert body["error"] is None

    def test_root_endpoint(self, client):
        body = client.get("/").json()
        assert body["success"] is True
        assert body["error"] is None
        assert "version" in body["data"]
        assert body["data"]["docs"] == "/docs"


class TestFuturesRoutes:
    def test_quote(self, client):
        resp = client.get("/futures/CU2602")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["error"] is None
        assert body["data"]["symbol"] == "CU2602"
        assert body["data"]["current_price"] == 68500.0

    def test_unknown_contract_is_404(self, client):
        resp = client.get("/futures/BAD9999")
        assert resp.status_code == 404
        body = resp.json()
        assert body == {"success": False, "data": None, "error": body["error"]}
        assert body["error"]

    def test_empty_quote_is_404(self, client):
        resp = client.get("/futures/CU2199")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_batch(self, client):
        resp = client.post("/futures/batch", json=["CU2602", "BAD9999", "RB2605"])
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        items = body["data"]
        assert [i["symbol"] for i in items] == ["CU2602", "BAD9999", "RB2605"]
        assert items[0]["success"] is True
        assert items[0]["data"]["current_price"] == 68500.0
        assert items[1]["success"] is False
        assert items[1]["error_type"] == "NotFound"
        assert items[2]["data"]["display_name"] == "螺纹钢2605"

    def test_batch_empty_is_400(self, client):
        resp = client.post("/futures/batch", json=[])
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_history_default_limit(self, client):
        resp = client.get("/futures/CU2602/history")
        assert resp.status_code == 200
        bars = resp.json()["data"]
        assert len(bars) == 30
        assert bars[0]["timestamp"] == "2025-12-20"
        timestamps = [b["timestamp"] for b in bars]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_history_limit(self, client):
        bars = client.get("/futures/CU2602/history", params={"limit": 5}).json()["data"]
        assert len(bars) == 5

    def test_invalid_limit_is_400(self, client):
        resp = client.get("/futures/CU2602/history", params={"limit": 0})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_upstream_404_is_502(self, client):
        resp = client.get("/futures/RB2605/history")
        assert resp.status_code == 502
        assert resp.json()["success"] is False

    def test_invalid_minute_period(self, client):
        resp = client.get("/futures/CU2602/minute", params={"period": "7"})
        assert resp.status_code == 400

    def test_exchanges(self, client):
        codes = [e["code"] for e in client.get("/futures/exchanges").json()["data"]]
        assert codes == ["DCE", "CZCE", "SHFE", "INE", "CFFEX", "GFEX"]

    def test_symbols_by_exchange(self, client):
        data = client.get("/futures/symbols/SHFE").json()["data"]
        assert {m["upstream_mark"] for m in data} == {"tong_qh", "luowengang_qh"}

    def test_symbols_unknown_exchange(self, client):
        assert client.get("/futures/symbols/shfe").status_code == 404

    def test_hold_pos(self, client):
        resp = client.get(
            "/futures/hold_pos", params={"contract": "RB2510", "pos_type": "volume", "date": "20260105"}
        )
        assert resp.status_code == 200
        entries = resp.json()["data"]
        assert entries[0] == {"rank": 1, "company": "中信期货", "value": 120000, "change": 3500}

    def test_hold_pos_bad_type(self, client):
        resp = client.get("/futures/hold_pos", params={"contract": "RB2510", "pos_type": "all"})
        assert resp.status_code == 400

    def test_spot_daily_range_checked(self, client):
        resp = client.get(
            "/futures/spot_price_daily", params={"start_date": "20260110", "end_date": "20260101"}
        )
        assert resp.status_code == 400

    def test_foreign_symbols(self, client):
        data = client.get("/futures/foreign/symbols").json()["data"]
        assert {"symbol": "NYMEX原油", "code": "CL"} in data

    def test_foreign_realtime_unknown_code(self, client):
        resp = client.post("/futures/foreign/realtime", json=["CL", "BAD9999"])
        assert resp.status_code == 200
        items = resp.json()["data"]
        assert items[0]["success"] is True
        assert items[0]["data"]["current_price"] == 72.5
        assert items[1]["success"] is False
        assert items[1]["error_type"] == "NotFound"

    def test_foreign_history_unknown_code(self, client):
        resp = client.get("/futures/foreign/BAD9999/history")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_main_daily_inclusive_range(self, client):
        resp = client.get(
            "/futures/main/V0/daily", params={"start_date": "20260103", "end_date": "2026-01-06"}
        )
        assert resp.status_code == 200
        points = resp.json()["data"]
        assert [p["date"] for p in points] == ["2026-01-03", "2026-01-04", "2026-01-05", "2026-01-06"]
        assert points[0]["open_interest"] == 200000

    def test_main_daily_range_reversed(self, client):
        resp = client.get(
            "/futures/main/V0/daily", params={"start_date": "20260106", "end_date": "20260103"}
        )
        assert resp.status_code == 400

    def test_spot_daily_skips_missing_days(self, client):
        resp = client.get(
            "/futures/spot_price_daily", params={"start_date": "20260104", "end_date": "20260108"}
        )
        assert resp.status_code == 200
        dates = [r["date"] for r in resp.json()["data"]]
        assert dates == ["20260105", "20260105", "20260107", "20260107"]


class TestAuth:
    def test_missing_token(self, client):
        with patch("market_service.routers.auth.settings.API_KEY", "secret"):
            resp = client.get("/futures/exchanges")
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_wrong_token(self, client):
        with patch("market_service.routers.auth.settings.API_KEY", "secret"):
            resp = client.get("/futures/exchanges", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_valid_token(self, client):
        with patch("market_service.routers.auth.settings.API_KEY", "secret"):
            resp = client.get("/futures/exchanges", headers={"Authorization": "Bearer secret"})
        assert resp.status_code == 200

    def test_health_needs_no_token(self, client):
        with patch("market_service.routers.auth.settings.API_KEY", "secret"):
            assert client.get("/health").status_code == 200


class TestStockRoutes:
    def test_list_default(self, client):
        data = client.get("/stocks").json()["data"]
        assert [s["symbol"] for s in data] == ["AAPL", "GOOGL", "MSFT", "TSLA", "AMZN"]

    def test_stock_quote(self, client):
        data = client.get("/stocks/aapl").json()["data"]
        assert data["symbol"] == "AAPL"
        assert data["current_price"] == 150.25

    def test_stock_history(self, client):
        bars = client.get("/stocks/AAPL/history", params={"limit": 10}).json()["data"]
        assert len(bars) == 10
        assert bars[0]["timestamp"] > bars[-1]["timestamp"]

    def test_normalize_stock_symbol(self):
        from market_service.services.stock_service import normalize_stock_symbol
        assert normalize_stock_symbol("600000") == "sh600000"
        assert normalize_stock_symbol("000001") == "sz000001"
        assert normalize_stock_symbol("SZ000001") == "sz000001"
        with pytest.raises(InvalidRequest):
            normalize_stock_symbol(" ")
