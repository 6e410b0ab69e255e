"""统一 API 响应模型"""

from typing import Any, Optional

from pydantic import BaseModel, model_validator


class ApiResponse(BaseModel):
    """
    标准 API 响应封装

    success=True 时 error 必为 None；success=False 时 data 必为 None 且 error 非空
    """
    success: bool = True
    data: Optional[Any] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "ApiResponse":
        if self.success and self.error is not None:
            raise ValueError("成功响应不能携带 error")
        if not self.success:
            if self.data is not None:
                raise ValueError("失败响应不能携带 data")
            if not self.error:
                raise ValueError("失败响应必须提供 error 信息")
        return self

    @classmethod
    def ok(cls, data: Any = None) -> "ApiResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ApiResponse":
        return cls(success=False, error=error or "未知错误")
