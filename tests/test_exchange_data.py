"""
交易所官网数据单元测试

覆盖范围：
  - 会员持仓排名解析（上期所 JSON、中金所 CSV、郑商所 Excel、大商所 ZIP、广期所 JSON）
  - 仓单日报解析（四个交易所）
  - 前 N 名汇总（ProcessingLayer.summarize_rank）
  - 服务层汇总与逐日汇总
  - /futures/rank/* 与 /futures/warehouse/* 路由
"""

import asyncio
import io
import json
import zipfile

import pandas as pd
import pytest

from conftest import CFFEX_RANK_CSV, SHFE_RANK_JSON, SHFE_STOCK_JSON, make_client

from market_service.adapters.base import RawPayload
from market_service.errors import InvalidRequest, ParseError


def _payload(text, content=b"", **request):
    return RawPayload(
        text=text, request=request, received_at="2026-01-05 10:00:00", content=content
    )


def _xlsx(rows):
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, header=False, index=False)
    return buffer.getvalue()


def _service():
    from market_service.services.futures_service import FuturesService
    return FuturesService(client=make_client())


# ─────────────────────────────────────────────────────────
# 1. 会员持仓排名
# ─────────────────────────────────────────────────────────

class TestShfeRank:
    def test_parse_filters_varieties(self, upstream):
        from market_service.adapters.rank import ShfeRankAdapter
        tables = ShfeRankAdapter(upstream).parse(_payload(SHFE_RANK_JSON, date="20260105", vars=["CU"]))
        assert [t.symbol for t in tables] == ["CU2602"]
        records = tables[0].data
        # 合计行（RANK -1）不计入
        assert [r.rank for r in records] == [1, 2]
        first = records[0]
        assert first.variety == "CU"
        assert (first.vol_party_name, first.vol, first.vol_chg) == ("中信期货", 12000, 10)
        assert (first.long_party_name, first.long_open_interest) == ("国泰君安", 5000)
        assert (first.short_party_name, first.short_open_interest_chg) == ("永安期货", 3)

    def test_parse_all_varieties(self, upstream):
        from market_service.adapters.rank import ShfeRankAdapter
        tables = ShfeRankAdapter(upstream).parse(_payload(SHFE_RANK_JSON, date="20260105", vars=None))
        assert [t.symbol for t in tables] == ["AL2602", "CU2602"]

    def test_empty_cursor_is_no_data(self, upstream):
        from market_service.adapters.rank import ShfeRankAdapter
        with pytest.raises(ParseError) as exc_info:
            ShfeRankAdapter(upstream).parse(_payload('{"o_cursor": []}', date="20260103"))
        assert exc_info.value.no_data is True

    def test_missing_cursor_is_shape_error(self, upstream):
        from market_service.adapters.rank import ShfeRankAdapter
        with pytest.raises(ParseError) as exc_info:
            ShfeRankAdapter(upstream).parse(_payload('{"o_cursor": {}}', date="20260105"))
        assert exc_info.value.no_data is False


class TestCffexRank:
    def test_parse_csv(self, upstream):
        from market_service.adapters.rank import CffexRankAdapter
        tables = CffexRankAdapter(upstream).parse(_payload(CFFEX_RANK_CSV, date="20260105", variety="IF"))
        assert [t.symbol for t in tables] == ["IF2601", "IF2602"]
        second = tables[0].data[1]
        assert second.rank == 2
        assert (second.vol_party_name, second.vol, second.vol_chg) == ("国泰君安", 10000, -50)
        assert second.short_open_interest == 7000
        assert second.variety == "IF"

    def test_header_only_is_no_data(self, upstream):
        from market_service.adapters.rank import CffexRankAdapter
        text = CFFEX_RANK_CSV.splitlines()[0]
        with pytest.raises(ParseError) as exc_info:
            CffexRankAdapter(upstream).parse(_payload(text, date="20260105", variety="TL"))
        assert exc_info.value.no_data is True


CZCE_RANK_ROWS = [
    ["品种：棉花CF     日期：2026-01-05"] + [""] * 9,
    ["名次", "会员简称", "成交量", "增减", "会员简称", "持买仓量", "增减", "会员简称", "持卖仓量", "增减"],
    ["1", "中信期货", "9000", "100", "中信期货", "7000", "50", "国泰君安", "6500", "-20"],
    ["合约：CF605     日期：2026-01-05"] + [""] * 9,
    ["名次", "会员简称", "成交量", "增减", "会员简称", "持买仓量", "增减", "会员简称", "持卖仓量", "增减"],
    ["1", "中信期货", "5,000", "120", "国泰君安", "3000", "-10", "中信期货", "3200", "15"],
    ["2", "海通期货", "4000", "-30", "中信期货", "2500", "8", "永安期货", "2100", "-3"],
    ["合计", "", "9000", "90", "", "5500", "-2", "", "5300", "12"],
    ["合约：SR605     日期：2026-01-05"] + [""] * 9,
    ["1", "华泰期货", "800", "5", "华泰期货", "600", "1", "华泰期货", "700", "2"],
]


class TestCzceRank:
    def test_rows_grouped_by_contract(self):
        from market_service.adapters.rank import parse_czce_rank_rows
        tables = parse_czce_rank_rows(CZCE_RANK_ROWS)
        assert [t.symbol for t in tables] == ["CF605", "SR605"]
        cf = tables[0].data
        # 品种汇总块的数据行不归入任何合约
        assert [r.rank for r in cf] == [1, 2]
        assert cf[0].vol == 5000
        assert cf[1].long_party_name == "中信期货"
        assert cf[0].variety == "CF"

    def test_parse_xlsx(self, upstream):
        from market_service.adapters.rank import CzceRankAdapter
        payload = _payload("", content=_xlsx(CZCE_RANK_ROWS), date="20260105")
        tables = CzceRankAdapter(upstream).parse(payload)
        assert [t.symbol for t in tables] == ["CF605", "SR605"]
        assert tables[1].data[0].short_open_interest == 700

    def test_file_url_switches_to_xlsx(self):
        from market_service.adapters.rank import czce_file_url
        assert czce_file_url("20251031", "FutureDataHolding").endswith("/2025/20251031/FutureDataHolding.xls")
        assert czce_file_url("20260105", "FutureDataHolding").endswith("/2026/20260105/FutureDataHolding.xlsx")

    def test_broken_file_is_shape_error(self, upstream):
        from market_service.adapters.rank import CzceRankAdapter
        with pytest.raises(ParseError) as exc_info:
            CzceRankAdapter(upstream).parse(_payload("", content=b"not a workbook", date="20260105"))
        assert exc_info.value.no_data is False


DCE_M2605 = """大连商品交易所 成交持仓排名
合约代码：m2605    日期：2026-01-05
名次   会员简称   成交量   增减
1   中信期货   5000   100
2   国泰君安   4000   -20
总计      9000   80
名次   会员简称   持买单量   增减
1   永安期货   3000   10
总计      3000   10
名次   会员简称   持卖单量   增减
1   中信期货   2800   -5
2   海通期货   1000   7
"""


def _dce_zip(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, text in files.items():
            archive.writestr(name, text.encode("gbk"))
    return buffer.getvalue()


class TestDceRank:
    def test_parse_zip(self, upstream):
        from market_service.adapters.rank import DceRankAdapter
        content = _dce_zip({
            "20260105_m2605_成交持仓排名.txt": DCE_M2605,
            "20260105_y2605_成交持仓排名.txt": DCE_M2605.replace("m2605", "y2605"),
            "说明.txt": "无关文件",
        })
        tables = DceRankAdapter(upstream).parse(_payload("", content=content, date="20260105", vars=["M"]))
        assert [t.symbol for t in tables] == ["M2605"]
        records = tables[0].data
        assert [r.rank for r in records] == [1, 2]
        assert (records[0].vol_party_name, records[0].vol) == ("中信期货", 5000)
        assert (records[0].long_party_name, records[0].long_open_interest_chg) == ("永安期货", 10)
        # 持买单只有一名，第二名补空
        assert (records[1].long_party_name, records[1].long_open_interest) == ("", 0)
        assert (records[1].short_party_name, records[1].short_open_interest) == ("海通期货", 1000)

    def test_not_a_zip(self, upstream):
        from market_service.adapters.rank import DceRankAdapter
        with pytest.raises(ParseError) as exc_info:
            DceRankAdapter(upstream).parse(_payload("", content=b"<html>error</html>", date="20260105"))
        assert exc_info.value.no_data is False

    def test_file_without_three_sections(self):
        from market_service.adapters.rank import parse_dce_rank_file
        assert parse_dce_rank_file("名次 会员 成交量 增减\n1 中信期货 10 1\n", "M2605") == []


class TestGfexRank:
    def test_contract_list_shapes(self, upstream):
        from market_service.adapters.rank import GfexContractsAdapter
        text = json.dumps({"data": [["si2605"], {"contractId": "si2607"}, "si2609", [], None]})
        contracts = GfexContractsAdapter(upstream).parse(_payload(text, variety="si", date="20260105"))
        assert contracts == ["si2605", "si2607", "si2609"]

    def test_three_sections_merged(self, upstream):
        from market_service.adapters.rank import GfexRankAdapter
        text = json.dumps([
            {"data": [{"abbr": "中信期货", "todayQty": 500, "qtySub": 20},
                      {"abbr": "合计", "todayQty": 500, "qtySub": 20}]},
            {"data": [{"abbr": "国泰君安", "todayQty": 300, "todayQtyChg": -5},
                      {"abbr": "永安期货", "todayQty": 200, "qtySub": 1}]},
            {"data": []},
        ], ensure_ascii=False)
        records = GfexRankAdapter(upstream).parse(
            _payload(text, variety="si", contract="si2605", date="20260105")
        )
        assert [r.rank for r in records] == [1, 2]
        assert records[0].symbol == "SI2605"
        assert records[0].variety == "SI"
        assert (records[0].vol_party_name, records[0].vol, records[0].vol_chg) == ("中信期货", 500, 20)
        assert records[0].long_open_interest_chg == -5
        assert (records[1].vol_party_name, records[1].long_party_name) == ("", "永安期货")
        assert records[1].short_party_name == ""

    def test_wrong_section_count(self, upstream):
        from market_service.adapters.rank import GfexRankAdapter
        with pytest.raises(ParseError) as exc_info:
            GfexRankAdapter(upstream).parse(
                _payload('[{"data": []}]', variety="si", contract="si2605", date="20260105")
            )
        assert exc_info.value.no_data is False


# ─────────────────────────────────────────────────────────
# 2. 仓单日报
# ─────────────────────────────────────────────────────────

class TestWarehouseReceipts:
    def test_czce_blocks(self, upstream):
        from market_service.adapters.warehouse import CzceWarehouseAdapter
        rows = [
            ["品种：苹果AP     单位：张", "", "", ""],
            ["仓库简称", "仓单数量", "有效预报", "增减"],
            ["万邦物流", "1,200", "300", "-50"],
            ["华鲁仓储", "800", "", "20"],
            ["小计", "2000", "300", "-30"],
            ["品种：白糖SR     单位：张", "", "", ""],
            ["仓库简称", "仓单数量", "有效预报", "增减"],
            ["合计", "0", "0", "0"],
        ]
        groups = CzceWarehouseAdapter(upstream).parse(_payload("", content=_xlsx(rows), date="20260105"))
        assert [g.symbol for g in groups] == ["AP"]
        first, second = groups[0].data
        assert (first.warehouse, first.warehouse_receipt, first.valid_forecast, first.change) == (
            "万邦物流", 1200, 300, -50,
        )
        assert second.valid_forecast is None

    def test_czce_no_blocks_is_no_data(self, upstream):
        from market_service.adapters.warehouse import CzceWarehouseAdapter
        content = _xlsx([["郑州商品交易所仓单日报", ""]])
        with pytest.raises(ParseError) as exc_info:
            CzceWarehouseAdapter(upstream).parse(_payload("", content=content, date="20260103"))
        assert exc_info.value.no_data is True

    def test_dce_entity_list(self, upstream):
        from market_service.adapters.warehouse import DceWarehouseAdapter
        text = json.dumps({"data": {"entityList": [
            {"varietyOrder": "m", "variety": "豆粕", "whAbbr": "中储粮镇江", "deliveryAbbr": "",
             "lastWbillQty": "1,000", "wbillQty": "1,200", "diff": "200"},
        ]}}, ensure_ascii=False)
        records = DceWarehouseAdapter(upstream).parse(_payload(text, date="20260105"))
        assert len(records) == 1
        record = records[0]
        assert (record.variety_code, record.variety_name, record.warehouse) == ("M", "豆粕", "中储粮镇江")
        assert record.delivery_location is None
        assert (record.last_receipt, record.today_receipt, record.change) == (1000, 1200, 200)

    def test_dce_missing_entity_list(self, upstream):
        from market_service.adapters.warehouse import DceWarehouseAdapter
        with pytest.raises(ParseError) as exc_info:
            DceWarehouseAdapter(upstream).parse(_payload('{"data": null}', date="20260105"))
        assert exc_info.value.no_data is False

    def test_shfe_grouped_by_variety(self, upstream):
        from market_service.adapters.warehouse import ShfeWarehouseAdapter
        groups = ShfeWarehouseAdapter(upstream).parse(_payload(SHFE_STOCK_JSON, date="20260105"))
        assert [g.symbol for g in groups] == sorted(["铜", "铝"])
        copper = next(g for g in groups if g.symbol == "铜")
        assert [r.warehouse for r in copper.data] == ["中储吴淞", "国储837"]
        assert copper.data[1].change == -100
        assert copper.data[0].region == "上海"
        assert copper.data[0].unit == "吨"

    def test_shfe_empty_is_no_data(self, upstream):
        from market_service.adapters.warehouse import ShfeWarehouseAdapter
        with pytest.raises(ParseError) as exc_info:
            ShfeWarehouseAdapter(upstream).parse(_payload('{"o_cursor": []}', date="20260103"))
        assert exc_info.value.no_data is True

    def test_gfex_skips_rows_without_type(self, upstream):
        from market_service.adapters.warehouse import GfexWarehouseAdapter
        text = json.dumps({"data": [
            {"varietyOrder": "si", "variety": "工业硅", "whAbbr": "中储广州", "whType": "1",
             "lastWbillQty": 100, "wbillQty": 120, "regWbillQty": 20},
            {"varietyOrder": "si", "variety": "工业硅", "whAbbr": "小计", "whType": None,
             "lastWbillQty": 100, "wbillQty": 120, "regWbillQty": 20},
            {"varietyOrder": "lc", "variety": "碳酸锂", "whAbbr": "建发物流", "whType": "2",
             "lastWbillQty": 50, "wbillQty": 40, "regWbillQty": -10},
        ]}, ensure_ascii=False)
        groups = GfexWarehouseAdapter(upstream).parse(_payload(text, date="20260105"))
        assert [g.symbol for g in groups] == ["LC", "SI"]
        assert [r.warehouse for r in groups[1].data] == ["中储广州"]
        assert groups[0].data[0].change == -10


# ─────────────────────────────────────────────────────────
# 3. 前 N 名汇总
# ─────────────────────────────────────────────────────────

def _table(symbol, volume, long=(), short=()):
    from market_service.adapters.common import extract_variety
    from market_service.adapters.rank import merge_rank_sections
    from market_service.models import RankTable
    records = merge_rank_sections(symbol, extract_variety(symbol), volume, long, short)
    return RankTable(symbol=symbol, data=records)


class TestSummarizeRank:
    def setup_method(self):
        from market_service.layers.processing import ProcessingLayer
        self.proc = ProcessingLayer()

    def test_top_n_and_variety_totals(self):
        tables = [
            _table("CU2602", [(f"会员{i}", 10, 1) for i in range(7)], long=[("甲", 100, 2)]),
            _table("CU2603", [("乙", 999, 0)]),
            # 同一合约出现两次时以最后一份为准
            _table("CU2603", [("乙", 5, 1)]),
            _table("CF605", [("丙", 30, 3)]),
        ]
        summary = self.proc.summarize_rank(tables, "20260105", variety_totals=("CU",))
        assert [s.symbol for s in summary] == ["CF605", "CU", "CU2602", "CU2603"]

        by_symbol = {s.symbol: s for s in summary}
        cu2602 = by_symbol["CU2602"]
        assert (cu2602.vol_top5, cu2602.vol_top10, cu2602.vol_top20) == (50, 70, 70)
        assert cu2602.vol_chg_top5 == 5
        assert cu2602.long_open_interest_top5 == 100
        assert cu2602.short_open_interest_top20 == 0
        assert cu2602.variety == "CU"
        assert cu2602.date == "20260105"

        total = by_symbol["CU"]
        assert total.variety == "CU"
        assert (total.vol_top5, total.vol_top10) == (55, 75)
        assert by_symbol["CF605"].vol_top15 == 30

    def test_empty_tables(self):
        assert self.proc.summarize_rank([], "20260105") == []
        assert self.proc.summarize_rank([_table("CU2602", [])], "20260105") == []


# ─────────────────────────────────────────────────────────
# 4. 服务层与路由
# ─────────────────────────────────────────────────────────

class TestRankService:
    def test_rank_sum_across_exchanges(self):
        svc = _service()
        summary = asyncio.run(svc.get_rank_sum("20260105", "CU,IF"))
        assert [s.symbol for s in summary] == ["CU", "CU2602", "IF", "IF2601", "IF2602"]
        by_symbol = {s.symbol: s for s in summary}
        assert by_symbol["CU2602"].vol_top5 == 21000
        assert by_symbol["IF2601"].vol_top5 == 22000
        assert by_symbol["IF2601"].short_open_interest_chg_top5 == -150
        assert by_symbol["IF"].vol_top5 == 25000

    def test_rank_sum_daily_skips_days_without_data(self):
        svc = _service()
        summary = asyncio.run(svc.get_rank_sum_daily("20260104", "20260105", "CU"))
        assert [(s.date, s.symbol) for s in summary] == [("20260105", "CU"), ("20260105", "CU2602")]

    def test_rank_sum_daily_range_checked(self):
        svc = _service()
        with pytest.raises(InvalidRequest):
            asyncio.run(svc.get_rank_sum_daily("20260101", "20260201"))
        with pytest.raises(InvalidRequest):
            asyncio.run(svc.get_rank_sum_daily("20260105", "20260104"))

    def test_cffex_skips_missing_varieties(self):
        svc = _service()
        tables = asyncio.run(svc.get_cffex_rank_table("2026-01-05"))
        assert [t.symbol for t in tables] == ["IF2601", "IF2602"]


class TestExchangeRoutes:
    def test_shfe_rank(self, client):
        resp = client.get("/futures/rank/shfe", params={"date": "20260105", "vars": "CU"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [t["symbol"] for t in data] == ["CU2602"]
        assert data[0]["data"][0]["vol_party_name"] == "中信期货"

    def test_shfe_rank_no_file_is_502(self, client):
        resp = client.get("/futures/rank/shfe", params={"date": "20260103"})
        assert resp.status_code == 502
        assert resp.json()["success"] is False

    def test_rank_requires_date(self, client):
        assert client.get("/futures/rank/shfe").status_code == 400

    def test_rank_bad_date(self, client):
        resp = client.get("/futures/rank/czce", params={"date": "2026-13-01"})
        assert resp.status_code == 400

    def test_rank_sum(self, client):
        resp = client.get("/futures/rank/sum", params={"date": "20260105", "vars": "CU"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [s["symbol"] for s in data] == ["CU", "CU2602"]
        assert data[1]["long_open_interest_top5"] == 9000

    def test_rank_sum_daily_too_long(self, client):
        resp = client.get(
            "/futures/rank/sum_daily", params={"start_date": "20260101", "end_date": "20260301"}
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_rank_sum_daily_reversed(self, client):
        resp = client.get(
            "/futures/rank/sum_daily", params={"start_date": "20260110", "end_date": "20260101"}
        )
        assert resp.status_code == 400

    def test_shfe_warehouse(self, client):
        resp = client.get("/futures/warehouse/shfe", params={"date": "2026-01-05"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert {g["symbol"] for g in data} == {"铜", "铝"}

    def test_dce_warehouse_upstream_error(self, client):
        resp = client.get("/futures/warehouse/dce", params={"date": "20260105"})
        assert resp.status_code == 502
