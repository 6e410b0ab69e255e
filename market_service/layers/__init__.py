"""
数据流分层架构
  Layer 1 – Acquisition  : 上游 HTTP 请求（超时控制、传输错误归类）
  Layer 2 – Orchestrator : 单次 / 批量调度（并发上限、按输入顺序返回）
  Layer 3 – Processing   : K 线清洗、排序与截断
  Registry / Scheduler   : 品种映射注册表及其后台刷新
"""
