"""
测试公共夹具：用 httpx.MockTransport 模拟所有上游，不访问真实网络
"""

import json
import os
import sys
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

# 确保项目根目录在 sys.path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


# ─────────────────────────────────────────────────────────
# 上游样例数据
# ─────────────────────────────────────────────────────────

SYMBOL_SCRIPT = """
var ARRFUTURESNODES = {
    czce: ['郑州商品交易所', ['PTA', 'pta_qh', '16'], ['白糖', 'baitang_qh', '16']],
    dce: ['大连商品交易所', ['豆一', 'dou1_qh', '16'], ['PVC', 'pvc_qh', '16']],
    shfe: ['上海期货交易所', ['铜', 'tong_qh', '16'], ['螺纹钢', 'luowengang_qh', '16'],
           ['铜', 'tong_qh', '16'], ['沪铜期权', 'tong_option', '16']],
    cffex: ['中国金融期货交易所', ['沪深300', 'hs300_qh', '16']],
    gfex: ['广州期货交易所', ['工业硅', 'gyg_qh', '16']]
};
"""


def realtime_body(name="铜2602", last="68500", prev_settle="68000", date="2026-01-05"):
    """构造 nf_ 行情字段（18 个）"""
    fields = [
        name, "150000", "68100", "68800", "67900", "0", "68490", "68500",
        last, "68400", prev_settle, "0", "0", "210000", "123456", "0", "0", date,
    ]
    return ",".join(fields)


def daily_jsonp(days):
    rows = ",".join(
        f'{{"d":"{d}","o":"68000","h":"68800","l":"67900","c":"{68000 + i}","v":"{1000 + i}",'
        f'"p":"200000","s":"68400"}}'
        for i, d in enumerate(days)
    )
    return f"var _temp=([{rows}]);"


HOLD_POS_HTML = """
<html><body>
<table><tr><td>导航</td></tr></table>
<table><tr><td>查询</td></tr></table>
<table>
  <tr><td>名次</td><td>会员简称</td><td>成交量</td><td>比上交易日增减</td></tr>
  <tr><td>1</td><td>中信期货</td><td>120,000</td><td>3,500</td></tr>
  <tr><td>2</td><td>国泰君安</td><td>98,000</td><td>-1,200</td></tr>
  <tr><td>合计</td><td></td><td>218,000</td><td>2,300</td></tr>
</table>
<table><tr><td>名次</td></tr></table>
<table><tr><td>名次</td></tr></table>
</body></html>
"""

SPOT_HTML = """
<html><body>
<table id="fdata">
  <tr><td>商品</td><td>现货价格</td><td>最近合约代码</td><td>最近合约价格</td>
      <td>最近合约现期差</td><td>最近合约期现差率</td><td></td>
      <td>主力合约代码</td><td>主力合约价格</td><td>主力合约现期差</td></tr>
  <tr><td>上海期货交易所</td></tr>
  <tr><td>螺纹钢</td><td>3300</td><td>rb2601</td><td>3250</td><td>-50</td><td></td><td></td>
      <td>rb2605</td><td>3280</td><td>-20</td></tr>
  <tr><td>铜</td><td>68000</td><td>cu2601</td><td>68100</td><td>100</td><td></td><td></td>
      <td>cu2602</td><td>68200</td><td>200</td></tr>
  <tr><td>未知商品</td><td>100</td><td>x2601</td><td>100</td><td>0</td><td></td><td></td>
      <td>x2605</td><td>100</td><td>0</td></tr>
</table>
</body></html>
"""

FOREIGN_CL_FIELDS = [
    "72.50", "", "72.40", "72.60", "73.10", "71.80", "14:30:00",
    "72.00", "72.10", "250000", "0", "0", "2026-01-05", "纽约原油",
]


def _shfe_rank_row(symbol, rank, vol, long_oi, short_oi):
    return {
        "INSTRUMENTID": symbol, "RANK": rank,
        "PARTICIPANTABBR1": "中信期货", "CJ1": vol, "CJ1_CHG": 10,
        "PARTICIPANTABBR2": "国泰君安", "CJ2": long_oi, "CJ2_CHG": -5,
        "PARTICIPANTABBR3": "永安期货", "CJ3": short_oi, "CJ3_CHG": 3,
    }


# 上期所 pm{date}.dat：cu2602 两个名次 + 合计行（RANK -1），al2602 一个名次
SHFE_RANK_JSON = json.dumps({"o_cursor": [
    _shfe_rank_row("cu2602  ", 1, 12000, 5000, 4800),
    _shfe_rank_row("cu2602  ", 2, 9000, 4000, 4500),
    _shfe_rank_row("cu2602  ", -1, 21000, 9000, 9300),
    _shfe_rank_row("al2602  ", 1, 3000, 1500, 1200),
]}, ensure_ascii=False)

SHFE_STOCK_JSON = json.dumps({"o_cursor": [
    {"VARNAME": "铜$$COPPER", "REGNAME": "上海$$Shanghai", "WHABBRNAME": "中储吴淞$$CMST",
     "WRTWGHTS": 1200, "WRTQTY": 1500, "WRTCHANGE": 300, "UNIT": "吨"},
    {"VARNAME": "铜$$COPPER", "REGNAME": "上海$$Shanghai", "WHABBRNAME": "国储837$$837",
     "WRTWGHTS": 800, "WRTQTY": 700, "WRTCHANGE": -100, "UNIT": "吨"},
    {"VARNAME": "铝$$ALUMINIUM", "REGNAME": "浙江$$Zhejiang", "WHABBRNAME": "宁波九龙仓$$NB",
     "WRTWGHTS": 500, "WRTQTY": 500, "WRTCHANGE": 0, "UNIT": "吨"},
]}, ensure_ascii=False)

CFFEX_RANK_CSV = (
    "交易日,合约,排名,成交量排名,,,持买单量排名,,,持卖单量排名,,\n"
    "20260105,IF2601,1,中信期货,12000,300,中信期货,8000,100,国泰君安,9000,-200\n"
    "20260105,IF2601,2,国泰君安,10000,-50,海通期货,6000,20,中信期货,7000,50\n"
    "20260105,IF2602,1,中信期货,3000,10,中信期货,2000,5,国泰君安,1800,-1\n"
)

# 100ppi 有数据的日期，其余日期返回 404
SPOT_DAYS = ("2026-01-05", "2026-01-07")


# ─────────────────────────────────────────────────────────
# 模拟上游
# ─────────────────────────────────────────────────────────

def upstream_handler(request: httpx.Request) -> httpx.Response:
    """按 URL 路由到样例数据，未覆盖的地址返回 404"""
    host = request.url.host
    path = request.url.path
    params = request.url.params

    if host == "hq.sinajs.cn":
        code = params.get("list", "")
        if code == "nf_CU2602":
            body = f'var hq_str_nf_CU2602="{realtime_body()}";\n'
        elif code == "nf_RB2605":
            body = f'var hq_str_nf_RB2605="{realtime_body("螺纹钢2605", "3280", "3300")}";\n'
        elif code == "hf_CL":
            body = f'var hq_str_hf_CL="{",".join(FOREIGN_CL_FIELDS)}";\n'
        else:
            body = f'var hq_str_{code}="";\n'
        return httpx.Response(200, content=body.encode("gbk"))

    if path.endswith("qihuohangqing.js"):
        return httpx.Response(200, content=SYMBOL_SCRIPT.encode("gbk"))

    if path.endswith("getDailyKLine") and params.get("symbol") == "CU2602":
        days = [f"2025-{m:02d}-{d:02d}" for m in (10, 11, 12) for d in range(1, 21)]
        return httpx.Response(200, text=daily_jsonp(days))

    # 主力连续日线
    if path.endswith("getDailyKLine") and params.get("symbol") == "V0":
        days = [f"2026-01-{d:02d}" for d in range(2, 10)]
        return httpx.Response(200, text=daily_jsonp(days))

    if path.endswith("vFutures_Positions_cjcc.php"):
        return httpx.Response(200, content=HOLD_POS_HTML.encode("gbk"))

    if host == "www.100ppi.com":
        if any(path == f"/sf/day-{day}.html" for day in SPOT_DAYS):
            return httpx.Response(200, text=SPOT_HTML)
        return httpx.Response(404, text="not found")

    if host == "www.shfe.com.cn":
        if path.endswith("/pm20260105.dat"):
            return httpx.Response(200, text=SHFE_RANK_JSON)
        if path.endswith("/20260105dailystock.dat"):
            return httpx.Response(200, text=SHFE_STOCK_JSON)

    if host == "www.cffex.com.cn" and path == "/sj/ccpm/202601/05/IF_1.csv":
        return httpx.Response(200, content=CFFEX_RANK_CSV.encode("gbk"))

    return httpx.Response(404, text="not found")


def make_client(handler=upstream_handler, **kwargs):
    from market_service.layers.acquisition import UpstreamClient
    return UpstreamClient(transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture
def upstream():
    return make_client()


@pytest.fixture(scope="module")
def futures_service():
    from market_service.adapters.symbols import parse_symbol_script
    from market_service.services.futures_service import FuturesService

    svc = FuturesService(client=make_client())
    svc.registry.publish(parse_symbol_script(SYMBOL_SCRIPT))
    return svc


@pytest.fixture(scope="module")
def client(futures_service):
    """创建测试客户端，期货 / 股票服务均替换为使用模拟上游的实例"""
    from market_service.services.stock_service import StockService

    stock_service = StockService(client=make_client(), source="simulated")
    with patch("market_service.services.futures_service._futures_service", futures_service), \
         patch("market_service.services.stock_service._stock_service", stock_service):
        from market_service.main import app
        with TestClient(app) as c:
            yield c
