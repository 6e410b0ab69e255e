"""
Layer 1 – 数据获取层
对上游数据源发起 HTTP 请求，负责超时控制与传输错误归类，不做任何解析。

每次调用同时受两个独立的超时约束：
  - 建连超时（httpx.Timeout.connect）
  - 总耗时上限（asyncio.wait_for）
任一超出都会抛出 UpstreamTimeout，本层不做自动重试。
"""

import asyncio
import logging
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from market_service.config import settings
from market_service.errors import UpstreamTimeout, UpstreamUnavailable

logger = logging.getLogger(__name__)

# 上游在 IP 被限流时返回的状态码（新浪 403 / 456，大商所 412）
_BANNED_STATUS = (403, 412, 456)


class UpstreamClient:
    """共享的异步 HTTP 客户端，一个服务实例只持有一个"""

    def __init__(
        self,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: Optional[str] = None,
        verify: Optional[bool] = None,
    ):
        self.timeout = timeout or settings.UPSTREAM_TIMEOUT
        self.connect_timeout = min(
            connect_timeout or settings.UPSTREAM_CONNECT_TIMEOUT, self.timeout
        )
        self._user_agent = user_agent or settings.UPSTREAM_USER_AGENT
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            headers={"User-Agent": self._user_agent},
            follow_redirects=True,
            verify=settings.UPSTREAM_VERIFY_SSL if verify is None else verify,
            transport=transport,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Mapping[str, str]] = None,
        json: Any = None,
    ) -> httpx.Response:
        logger.debug(f"📡 请求上游: {method} {url} params={dict(params or {})}")
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.request(
                    method, url, params=params, headers=headers, data=data, json=json
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            elapsed = time.monotonic() - started
            logger.warning(f"上游请求超时（{elapsed:.1f}s）: {url}")
            raise UpstreamTimeout(f"上游请求超时: {url}") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"上游请求失败: {url}: {exc}")
            raise UpstreamUnavailable(f"上游请求失败: {exc}") from exc

        if response.status_code in _BANNED_STATUS:
            raise UpstreamUnavailable(
                f"上游拒绝访问（HTTP {response.status_code}），IP 可能被限流，请稍后重试"
            )
        if not response.is_success:
            raise UpstreamUnavailable(f"上游返回异常状态: HTTP {response.status_code}")
        return response

    @staticmethod
    def _decode(response: httpx.Response, encoding: Optional[str]) -> str:
        if encoding:
            return response.content.decode(encoding, errors="replace")
        return response.text

    async def get_text(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        encoding: Optional[str] = None,
    ) -> str:
        """
        发起 GET 请求并返回解码后的文本

        Args:
            url: 上游地址
            params: 查询参数
            headers: 额外请求头（Referer 等）
            encoding: 强制解码（新浪 JS / HTML 页面为 GBK）
        """
        response = await self._send("GET", url, params=params, headers=headers)
        return self._decode(response, encoding)

    async def get_bytes(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> bytes:
        """GET 二进制内容（交易所发布的 Excel 文件）"""
        response = await self._send("GET", url, params=params, headers=headers)
        return response.content

    async def post_text(
        self,
        url: str,
        *,
        data: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        encoding: Optional[str] = None,
    ) -> str:
        """POST 表单（data）或 JSON（json），返回解码后的文本"""
        response = await self._send("POST", url, data=data, json=json, headers=headers)
        return self._decode(response, encoding)

    async def post_bytes(
        self,
        url: str,
        *,
        data: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> bytes:
        """POST 并返回二进制内容（大商所批量下载的 ZIP）"""
        response = await self._send("POST", url, data=data, json=json, headers=headers)
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()


# ── 模块级别单例 ──────────────────────────────────────────
_client: Optional[UpstreamClient] = None


def get_upstream_client() -> UpstreamClient:
    global _client
    if _client is None:
        _client = UpstreamClient()
    return _client


async def close_upstream_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
