"""
OpenAI兼容Provider工具函数

提供所有OpenAI兼容Provider共享的工具函数
"""

from typing import Optional
import openai

from promptfusion.core.log_utils import get_logger

logger = get_logger(__name__)


def create_openai_client(api_key: str, base_url: Optional[str]) -> openai.AsyncOpenAI:
    """创建OpenAI异步客户端

    Args:
        api_key: API密钥
        base_url: API基础URL，为空时使用官方地址

    Returns:
        OpenAI异步客户端实例
    """
    return openai.AsyncOpenAI(
        api_key=api_key,
        base_url=base_url or None
    )


def handle_openai_exception(exception, base_url: Optional[str] = None) -> str:
    """统一处理OpenAI异常

    子类异常需要先于父类判断（AuthenticationError/RateLimitError 都是 APIStatusError）

    Args:
        exception: 异常对象
        base_url: API基础URL (可选)

    Returns:
        格式化的错误消息
    """
    error_message = f"API调用失败 ({type(exception).__name__}): {str(exception)}"

    if isinstance(exception, openai.AuthenticationError):
        logger.error(f"OpenAI API认证失败: {str(exception)}")
        error_message = f"API认证失败，请检查API密钥: {str(exception)}"

    elif isinstance(exception, openai.RateLimitError):
        logger.error(f"OpenAI API速率限制: {str(exception)}")
        error_message = f"API速率限制: {str(exception)}"

    elif isinstance(exception, openai.APIConnectionError):
        logger.error(f"OpenAI API连接错误: {str(exception)}")
        connection_info = f" ({base_url})" if base_url else ""
        error_message = f"无法连接到API{connection_info}: {str(exception)}"

    elif isinstance(exception, openai.APIError):
        status_code = getattr(exception, 'status_code', 'unknown')
        logger.error(f"OpenAI API错误 (状态码: {status_code}): {str(exception)}")
        error_message = f"API调用失败 (状态码: {status_code}): {str(exception)}"

    return error_message
