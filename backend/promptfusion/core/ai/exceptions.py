"""
远程阶段异常定义
分析与生成阶段失败时抛出的异常类型，队列引擎按条目捕获
"""

from typing import Any, Dict, Optional


class StageError(Exception):
    """
    远程阶段调用基础异常

    Attributes:
        message: 面向用户的错误消息
        code: 错误分类（MissingCredential / StageRequestFailed / MalformedStageResponse）
        details: 错误详情
    """

    code = "StageError"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class MissingCredentialError(StageError):
    """阶段配置和环境变量中都没有可用的API Key"""

    code = "MissingCredential"


class StageRequestError(StageError):
    """网络错误、超时或远程服务返回非成功状态"""

    code = "StageRequestFailed"


class MalformedStageResponseError(StageError):
    """收到响应，但结构不符合预期"""

    code = "MalformedStageResponse"
