"""
数据源适配器基类

每个适配器只认识一种上游格式，对外暴露两个步骤：
  - fetch(request)  一次上游调用，返回原始文本（或二进制文件）
  - parse(payload)  纯函数，同一份 payload 总是得到相同的记录
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from market_service.adapters.common import beijing_now
from market_service.layers.acquisition import UpstreamClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawPayload:
    """一次上游调用的原始返回；Excel / ZIP 等二进制内容放在 content"""
    text: str
    request: Dict[str, Any] = field(default_factory=dict)
    received_at: str = ""
    content: bytes = b""


class SourceAdapter(ABC):
    """所有数据源适配器的公共契约"""

    #: 数据源名称，出现在日志与 ParseError.source 中
    source: str = ""

    def __init__(self, client: UpstreamClient):
        self.client = client

    @abstractmethod
    async def fetch(self, request: Dict[str, Any]) -> RawPayload:
        ...

    @abstractmethod
    def parse(self, payload: RawPayload) -> List[Any]:
        ...

    async def run(self, request: Dict[str, Any]) -> List[Any]:
        """fetch + parse"""
        payload = await self.fetch(request)
        return self.parse(payload)

    def _payload(self, text: str, request: Dict[str, Any], content: bytes = b"") -> RawPayload:
        return RawPayload(
            text=text, request=dict(request), received_at=beijing_now(), content=content
        )
