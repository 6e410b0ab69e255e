"""
数据源公共常量与解析辅助函数
"""

import io
import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

import pandas as pd

from market_service.config import settings
from market_service.errors import ParseError

# ── 新浪期货 ──────────────────────────────────────────────
SINA_REALTIME_API = "https://hq.sinajs.cn"
SINA_NODE_LIST_API = (
    "https://vip.stock.finance.sina.com.cn/quotes_service/api/json_v2.php/"
    "Market_Center.getHQFuturesData"
)
SINA_SYMBOL_SCRIPT_URL = (
    "https://vip.stock.finance.sina.com.cn/quotes_service/view/js/qihuohangqing.js"
)
SINA_DAILY_API = (
    "https://stock2.finance.sina.com.cn/futures/api/jsonp.php/"
    "var%20_temp=/InnerFuturesNewService.getDailyKLine"
)
SINA_MINUTE_API = (
    "https://stock2.finance.sina.com.cn/futures/api/jsonp.php/"
    "=/InnerFuturesNewService.getFewMinLine"
)
SINA_JSONP_API = "https://stock2.finance.sina.com.cn/futures/api/jsonp.php"
SINA_CONTRACT_PAGE = "https://finance.sina.com.cn/futures/quotes"
SINA_HOLD_POS_API = "https://vip.stock.finance.sina.com.cn/q/view/vFutures_Positions_cjcc.php"

# ── 新浪股票 ──────────────────────────────────────────────
SINA_STOCK_KLINE_API = (
    "https://quotes.sina.cn/cn/api/jsonp_v2.php/=/CN_MarketDataService.getKLineData"
)
SINA_STOCK_LIST_API = (
    "https://vip.stock.finance.sina.com.cn/quotes_service/api/json_v2.php/"
    "Market_Center.getHQNodeData"
)

# ── 其他数据源 ────────────────────────────────────────────
OPENCTP_FEES_URL = "http://openctp.cn/fees.html"
QIHUO_COMM_URL = "https://www.9qihuo.com/qihuoshouxufei"
GTJA_CALENDAR_URL = "https://www.gtjaqh.com/pc/calendar"
QH99_STOCK_URL = "https://www.99qh.com/data/stockIn"
SPOT_PRICE_URL = "https://www.100ppi.com/sf"
SPOT_PRICE_PREVIOUS_URL = "https://www.100ppi.com/sf2"

# ── 交易所官网 ────────────────────────────────────────────
SHFE_DAILY_DATA_URL = "https://www.shfe.com.cn/data/tradedata/future/dailydata"
CFFEX_RANK_URL = "http://www.cffex.com.cn/sj/ccpm"
CZCE_DATA_URL = "https://www.czce.com.cn/cn/DFSStaticFiles/Future"
DCE_RANK_URL = "http://www.dce.com.cn/dcereport/publicweb/dailystat/memberDealPosi/batchDownload"
DCE_RANK_PAGE = "http://www.dce.com.cn/dalianshangpin/xqsj/tjsj26/rtj/rcjccpm/index.html"
DCE_WAREHOUSE_URL = "http://www.dce.com.cn/dcereport/publicweb/dailystat/wbillWeeklyQuotes"
DCE_WAREHOUSE_PAGE = "http://www.dce.com.cn/dalianshangpin/xqsj/tjsj26/rtj/cdrb/index.html"
GFEX_API_URL = "http://www.gfex.com.cn/u"


SINA_HEADERS = {
    "Accept": "*/*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Referer": "https://finance.sina.com.cn/",
}
HTML_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
}

# ── 交易所 ────────────────────────────────────────────────
EXCHANGES: List[Tuple[str, str, str]] = [
    ("DCE", "大连商品交易所", "Dalian Commodity Exchange"),
    ("CZCE", "郑州商品交易所", "Zhengzhou Commodity Exchange"),
    ("SHFE", "上海期货交易所", "Shanghai Futures Exchange"),
    ("INE", "上海国际能源交易中心", "Shanghai International Energy Exchange"),
    ("CFFEX", "中国金融期货交易所", "China Financial Futures Exchange"),
    ("GFEX", "广州期货交易所", "Guangzhou Futures Exchange"),
]
EXCHANGE_NAMES: Dict[str, str] = {code: name for code, name, _ in EXCHANGES}

# ── 品种表：代码 → (中文名, 交易所) ──────────────────────────
VARIETIES: Dict[str, Tuple[str, str]] = {
    # 上海期货交易所
    "CU": ("铜", "SHFE"), "RB": ("螺纹钢", "SHFE"), "ZN": ("锌", "SHFE"),
    "AL": ("铝", "SHFE"), "AU": ("黄金", "SHFE"), "WR": ("线材", "SHFE"),
    "RU": ("天然橡胶", "SHFE"), "PB": ("铅", "SHFE"), "AG": ("白银", "SHFE"),
    "BU": ("沥青", "SHFE"), "HC": ("热轧卷板", "SHFE"), "NI": ("镍", "SHFE"),
    "SN": ("锡", "SHFE"), "FU": ("燃料油", "SHFE"), "SS": ("不锈钢", "SHFE"),
    "SP": ("纸浆", "SHFE"), "AO": ("氧化铝", "SHFE"), "BR": ("丁二烯橡胶", "SHFE"),
    # 大连商品交易所
    "A": ("豆一", "DCE"), "B": ("豆二", "DCE"), "M": ("豆粕", "DCE"),
    "Y": ("豆油", "DCE"), "C": ("玉米", "DCE"), "CS": ("玉米淀粉", "DCE"),
    "P": ("棕榈油", "DCE"), "JD": ("鸡蛋", "DCE"), "L": ("聚乙烯", "DCE"),
    "V": ("聚氯乙烯", "DCE"), "PP": ("聚丙烯", "DCE"), "J": ("焦炭", "DCE"),
    "JM": ("焦煤", "DCE"), "I": ("铁矿石", "DCE"), "EG": ("乙二醇", "DCE"),
    "EB": ("苯乙烯", "DCE"), "PG": ("液化石油气", "DCE"), "LH": ("生猪", "DCE"),
    # 郑州商品交易所
    "SR": ("白糖", "CZCE"), "CF": ("棉花", "CZCE"), "TA": ("PTA", "CZCE"),
    "OI": ("菜籽油", "CZCE"), "RM": ("菜籽粕", "CZCE"), "MA": ("甲醇", "CZCE"),
    "FG": ("玻璃", "CZCE"), "ZC": ("动力煤", "CZCE"), "SF": ("硅铁", "CZCE"),
    "SM": ("锰硅", "CZCE"), "AP": ("苹果", "CZCE"), "CJ": ("红枣", "CZCE"),
    "UR": ("尿素", "CZCE"), "SA": ("纯碱", "CZCE"), "PF": ("短纤", "CZCE"),
    "PK": ("花生", "CZCE"), "RS": ("菜籽", "CZCE"), "CY": ("棉纱", "CZCE"),
    "JR": ("粳稻", "CZCE"), "LR": ("晚籼稻", "CZCE"), "RI": ("早籼稻", "CZCE"),
    "WH": ("强麦", "CZCE"), "PM": ("普麦", "CZCE"), "SH": ("烧碱", "CZCE"),
    "PX": ("对二甲苯", "CZCE"),
    # 上海国际能源交易中心
    "SC": ("原油", "INE"), "NR": ("20号胶", "INE"), "LU": ("低硫燃料油", "INE"),
    "BC": ("国际铜", "INE"), "EC": ("集运指数", "INE"),
    # 广州期货交易所
    "SI": ("工业硅", "GFEX"), "LC": ("碳酸锂", "GFEX"), "PS": ("多晶硅", "GFEX"),
    # 中国金融期货交易所
    "IF": ("沪深300", "CFFEX"), "IH": ("上证50", "CFFEX"), "IC": ("中证500", "CFFEX"),
    "IM": ("中证1000", "CFFEX"), "TS": ("2年期国债", "CFFEX"), "TF": ("5年期国债", "CFFEX"),
    "T": ("10年期国债", "CFFEX"), "TL": ("30年期国债", "CFFEX"),
}

# 现货页面上出现的别名
_NAME_ALIASES: Dict[str, str] = {
    "石油沥青": "BU", "LLDPE": "L", "PVC": "V", "PP": "PP", "LPG": "PG",
    "菜油": "OI", "菜籽油OI": "OI", "菜粕": "RM", "甲醇MA": "MA",
    "涤纶短纤": "PF", "强麦WH": "WH", "PX": "PX",
}
_NAME_TO_CODE: Dict[str, str] = {name: code for code, (name, _) in VARIETIES.items()}
_NAME_TO_CODE.update(_NAME_ALIASES)
_FUZZY_NAMES = [("菜籽油", "OI"), ("甲醇", "MA"), ("强麦", "WH"), ("棉纱", "CY")]

_VARIETY_RE = re.compile(r"^([A-Za-z]+)")
_JSONP_RE = re.compile(r"\(\s*(\[[\s\S]*\])\s*\)")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_NUMBER_CLEAN = str.maketrans("", "", ",  ")


def name_to_code(name: str) -> Optional[str]:
    """中文品种名 → 品种代码，未知返回 None"""
    name = name.strip()
    if name in _NAME_TO_CODE:
        return _NAME_TO_CODE[name]
    for needle, code in _FUZZY_NAMES:
        if needle in name:
            return code
    return None


def extract_variety(symbol: str) -> str:
    """从合约代码中提取品种代码: rb2510 → RB"""
    match = _VARIETY_RE.match(symbol.strip())
    return match.group(1).upper() if match else ""


def extract_contract_month(contract: str) -> str:
    """合约代码中最后 4 位数字: RB2510 → 2510"""
    digits = "".join(ch for ch in contract if ch.isdigit())
    return digits[-4:] if len(digits) >= 4 else digits


def parse_basis_string(text: str) -> Tuple[float, float]:
    """
    解析 100ppi 基差单元格，返回 (基差, 基差率%)

    "-176-0.22%" → (-176.0, -0.22)；"80.03%" → (0.0, 80.03)；"-176" → (-176.0, 0.0)
    """
    text = text.replace(" ", "").strip()
    if not text:
        return 0.0, 0.0
    if not text.endswith("%"):
        return to_float(text) or 0.0, 0.0

    body = text[:-1]
    rate = to_float(body)
    if rate is not None:
        return 0.0, rate
    # 基差与基差率直接相连，从右向左找到紧跟数字之后的正负号
    for i in range(len(body) - 1, 0, -1):
        if body[i] in "+-" and body[i - 1].isdigit():
            return to_float(body[:i]) or 0.0, to_float(body[i:]) or 0.0
    return 0.0, 0.0


def to_float(value: Any) -> Optional[float]:
    """宽松数值解析：去掉千分位、空格，无法解析返回 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).translate(_NUMBER_CLEAN)
    if not text or text in ("-", "--"):
        return None
    try:
        return float(text)
    except ValueError:
        return None


def to_int(value: Any) -> Optional[int]:
    number = to_float(value)
    return int(number) if number is not None else None


def beijing_now(fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    return datetime.now(ZoneInfo(settings.TZ)).strftime(fmt)


def extract_jsonp_array(text: str, source: str) -> List[Any]:
    """
    从 JSONP 包装（var x=([...]); 或 =([...]);）中取出数组

    部分新浪接口的键不带引号（{day:"2024-01-02"}），解析前补齐引号
    """
    if not text or not text.strip():
        raise ParseError.empty("上游返回空内容", source=source)
    match = _JSONP_RE.search(text)
    if match is None:
        if re.search(r"\(\s*(null)?\s*\)", text):
            raise ParseError.empty("上游未返回数据", source=source)
        raise ParseError.shape("未找到有效的 JSONP 数据边界", source=source)

    body = match.group(1)
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        try:
            data = json.loads(_BARE_KEY_RE.sub(r'\1"\2":', body))
        except json.JSONDecodeError as exc:
            raise ParseError.shape(f"JSON 解析失败: {exc}", source=source) from exc
    if not isinstance(data, list):
        raise ParseError.shape("JSONP 内容不是数组", source=source)
    return data


def split_js_assignments(text: str) -> List[Tuple[str, str]]:
    """
    拆分 hq.sinajs.cn 的返回：var hq_str_nf_CU2602="铜2602,...";

    返回 [(变量名, 引号内内容)]，保持上游顺序
    """
    results = []
    for match in re.finditer(r'var\s+hq_str_([\w$]+)\s*=\s*"([^"]*)"', text):
        results.append((match.group(1), match.group(2)))
    return results


def parse_json_object(text: str, source: str) -> Dict[str, Any]:
    """交易所接口返回的 JSON 对象，空内容视为无数据"""
    if not text or not text.strip():
        raise ParseError.empty("上游返回空内容", source=source)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError.shape(f"JSON 解析失败: {exc}", source=source) from exc
    if not isinstance(data, dict):
        raise ParseError.shape("返回内容不是 JSON 对象", source=source)
    return data


def read_sheet_rows(content: bytes, source: str) -> List[List[str]]:
    """
    Excel 第一个工作表 → 字符串二维表，空单元格为 ""

    .xlsx 由 openpyxl 读取，旧版 .xls 由 xlrd 读取，pandas 按文件头自动选择
    """
    if not content:
        raise ParseError.empty("上游返回空文件", source=source)
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=str)
    except Exception as exc:
        # openpyxl / xlrd 对损坏文件抛出的异常类型各不相同
        raise ParseError.shape(f"Excel 文件无法读取: {exc}", source=source) from exc
    return [[str(cell).strip() for cell in row] for row in df.fillna("").values.tolist()]
