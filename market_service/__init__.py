"""
期货 / 股票行情聚合服务
将多个互不兼容的上游数据源（新浪财经、100ppi、99期货网、OpenCTP、九期网、国泰君安）
统一封装为一套 REST 接口

架构分层：
  符号注册表 (Registry)      → 交易所 / 品种 / 新浪 node 映射，定时刷新
  数据源适配器 (Adapters)    → 每种上游格式一个 fetch / parse 实现
  获取编排层 (Orchestrator)  → 单次 / 批量并发请求，超时与部分失败处理
  标准化层 (Processing)      → K 线时间戳规整、排序、截断
"""

__version__ = "1.0.0"
