"""
API Key 认证
除 /health 外的所有路由都要求 Authorization: Bearer <API_KEY>；API_KEY 为空时不做校验
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from market_service.config import settings


async def verify_api_key(
    authorization: Optional[str] = Header(default=None),
) -> None:
    expected = settings.API_KEY
    if not expected:
        return
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="未提供认证令牌")
    token = authorization[7:].strip()
    if not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API Key 无效")
