"""
Layer 3 – 数据处理层
对适配器解析出的 K 线记录做时间格式统一、去重、排序与截断；
对会员持仓排名做前 N 名汇总。
"""

import logging
from typing import Iterable, List, Optional, Sequence, TypeVar

import pandas as pd
from pydantic import BaseModel

from market_service.models import Bar, MainContractPoint, RankSum, RankTable

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)

# 粒度 → 时间戳格式
TIMESTAMP_FORMATS = {
    "daily": "%Y-%m-%d",
    "minute": "%Y-%m-%d %H:%M:%S",
}

# 排名汇总的档位与字段
RANK_TOPS = (5, 10, 15, 20)
RANK_VALUE_FIELDS = (
    "vol", "vol_chg",
    "long_open_interest", "long_open_interest_chg",
    "short_open_interest", "short_open_interest_chg",
)


class ProcessingLayer:
    """数据处理层：清洗 + 格式化 + 排序"""

    def _normalize(
        self,
        records: Sequence[R],
        field: str,
        fmt: str,
        *,
        descending: bool,
        limit: Optional[int] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> List[R]:
        if not records:
            return []

        df = pd.DataFrame({
            "pos": range(len(records)),
            "ts": pd.to_datetime(
                [getattr(r, field) for r in records], errors="coerce", format="mixed"
            ),
        })
        # 无法识别的时间戳直接丢弃
        df = df.dropna(subset=["ts"])
        df["text"] = df["ts"].dt.strftime(fmt)

        # 同一时间点保留上游最后出现的一条
        df = df.drop_duplicates(subset=["text"], keep="last")
        if start:
            df = df[df["text"] >= start]
        if end:
            df = df[df["text"] <= end]
        df = df.sort_values("ts", ascending=not descending, kind="stable")
        if limit is not None:
            df = df.head(limit)

        return [
            records[int(pos)].model_copy(update={field: text})
            for pos, text in zip(df["pos"], df["text"])
        ]

    def normalize_bars(
        self,
        bars: Sequence[Bar],
        granularity: str = "daily",
        limit: Optional[int] = None,
    ) -> List[Bar]:
        """
        日线 / 分钟线统一处理：按时间倒序（最新在前），截取最近 limit 条

        Args:
            bars: 适配器输出的原始 K 线
            granularity: daily → YYYY-MM-DD；minute → YYYY-MM-DD HH:MM:SS
            limit: 最多返回条数，None 表示不截断
        """
        fmt = TIMESTAMP_FORMATS[granularity]
        return self._normalize(bars, "timestamp", fmt, descending=True, limit=limit)

    def normalize_main_series(
        self,
        points: Sequence[MainContractPoint],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[MainContractPoint]:
        """主力连续日线：按日期正序，按 [start_date, end_date]（YYYY-MM-DD，含端点）过滤"""
        return self._normalize(
            points, "date", TIMESTAMP_FORMATS["daily"],
            descending=False, start=start_date, end=end_date,
        )

    def summarize_rank(
        self,
        tables: Sequence[RankTable],
        trade_date: str,
        variety_totals: Iterable[str] = (),
    ) -> List[RankSum]:
        """
        前 5 / 10 / 15 / 20 名会员的成交与持仓合计

        Args:
            tables: 各交易所的排名表，同一合约出现多次时以最后一份为准
            trade_date: YYYYMMDD，写入每条结果
            variety_totals: 需要额外给出品种合计行的品种代码

        Returns:
            合约行与品种合计行，按 symbol 升序
        """
        latest = {table.symbol: table for table in tables if table.data}
        if not latest:
            return []

        df = pd.DataFrame([
            {**record.model_dump(include={"rank", *RANK_VALUE_FIELDS}), "symbol": symbol}
            for symbol, table in latest.items()
            for record in table.data
        ])
        parts = []
        for top in RANK_TOPS:
            part = df[df["rank"] <= top].groupby("symbol")[list(RANK_VALUE_FIELDS)].sum()
            part.columns = [f"{field}_top{top}" for field in RANK_VALUE_FIELDS]
            parts.append(part)

        summary = pd.concat(parts, axis=1).reindex(sorted(latest)).fillna(0).astype("int64")
        value_columns = list(summary.columns)
        summary.index.name = "symbol"
        summary = summary.reset_index()
        summary["variety"] = (
            summary["symbol"].str.extract(r"^([A-Za-z]+)", expand=False).fillna("").str.upper()
        )

        wanted = {v.upper() for v in variety_totals}
        totals = (
            summary[summary["variety"].isin(wanted)]
            .groupby("variety", as_index=False)[value_columns]
            .sum()
        )
        totals["symbol"] = totals["variety"]

        combined = pd.concat([summary, totals], ignore_index=True)
        combined = combined.sort_values("symbol", kind="stable")
        return [
            RankSum(
                symbol=row["symbol"],
                variety=row["variety"],
                date=trade_date,
                **{column: int(row[column]) for column in value_columns},
            )
            for row in combined.to_dict("records")
        ]


# ── 模块级别单例 ──────────────────────────────────────────
_processor: Optional[ProcessingLayer] = None


def get_processing_layer() -> ProcessingLayer:
    global _processor
    if _processor is None:
        _processor = ProcessingLayer()
    return _processor
