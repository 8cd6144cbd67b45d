"""
远程阶段客户端接口

队列引擎只依赖 StageClient 约定：
- analyze(image, config, on_partial) -> 描述文本
- generate(image, description, config) -> 结果图片引用
失败时抛出 StageError 子类。ProviderStageClient 是基于 Provider 的生产实现。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar

from promptfusion.core.ai.config import StageConfig
from promptfusion.core.ai.exceptions import (
    MissingCredentialError,
    StageError,
    StageRequestError,
)
from promptfusion.core.ai.factory import AIProviderFactory
from promptfusion.core.ai.models import ModelCapability
from promptfusion.core.ai.providers.base import PartialCallback
from promptfusion.core.ai.registry import register_all_providers
from promptfusion.core.config import settings
from promptfusion.core.log_utils import get_logger
from promptfusion.models.work_item import SourceImage

logger = get_logger(__name__)

T = TypeVar("T")


class StageClient(ABC):
    """远程阶段客户端抽象"""

    @abstractmethod
    async def analyze(
        self,
        image: SourceImage,
        config: StageConfig,
        on_partial: Optional[PartialCallback] = None
    ) -> str:
        """
        视觉分析阶段

        Args:
            image: 源图片
            config: 分析阶段配置
            on_partial: 可多次调用，每次传入截至目前的完整文本

        Returns:
            str: 最终描述（以此为准覆盖流式文本）
        """

    @abstractmethod
    async def generate(
        self,
        image: SourceImage,
        description: str,
        config: StageConfig
    ) -> str:
        """
        图片生成阶段

        Args:
            image: 源图片
            description: 分析阶段产出的最终描述
            config: 生成阶段配置

        Returns:
            str: 结果图片引用（URL 或 data URL）
        """


def resolve_api_key(config: StageConfig) -> Optional[str]:
    """阶段配置优先，其次环境变量 API_KEY；返回去除空白后的值"""
    api_key = (config.api_key or "").strip() or (settings.api_key or "").strip()
    return api_key or None


class ProviderStageClient(StageClient):
    """
    基于 AIProviderFactory 的阶段客户端

    负责凭证解析、每次调用的超时控制，并把所有失败统一映射为 StageError。
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else settings.workflow_stage_timeout
        register_all_providers()

    async def analyze(
        self,
        image: SourceImage,
        config: StageConfig,
        on_partial: Optional[PartialCallback] = None
    ) -> str:
        api_key = resolve_api_key(config)
        if not api_key:
            raise MissingCredentialError(
                "API Key for Analysis step is missing. Please check Settings."
            )

        logger.info(f"[Vision] Connecting to model: {config.model}", provider=config.provider)
        provider = self._create(config, ModelCapability.VISION, api_key, "Analysis failed")

        return await self._call(
            provider,
            lambda: provider.describe_image(image, on_partial),
            error_prefix="Analysis failed"
        )

    async def generate(
        self,
        image: SourceImage,
        description: str,
        config: StageConfig
    ) -> str:
        api_key = resolve_api_key(config)
        if not api_key:
            raise MissingCredentialError("API Key for Generation step is missing.")

        provider = self._create(config, ModelCapability.IMAGE_GEN, api_key, "Generation failed")

        prompt = provider.build_prompt(description)
        result = await self._call(
            provider,
            lambda: provider.generate_image(prompt),
            error_prefix="Generation failed"
        )
        return result.image_url

    @staticmethod
    def _create(config: StageConfig, capability: ModelCapability, api_key: str, error_prefix: str):
        """创建Provider，配置错误按请求失败处理"""
        try:
            return AIProviderFactory.create(config, capability, api_key)
        except Exception as e:
            raise StageRequestError(f"{error_prefix}: {e}") from e

    async def _call(
        self,
        provider,
        call: Callable[[], Awaitable[T]],
        error_prefix: str
    ) -> T:
        """带超时执行Provider调用，并确保释放资源"""
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StageRequestError(
                f"{error_prefix}: request timed out after {self.timeout:.0f}s"
            ) from e
        except StageError:
            raise
        except Exception as e:
            logger.error(
                "远程阶段调用出现未预期的异常",
                exception=e,
                provider=provider.get_provider_name()
            )
            raise StageRequestError(f"{error_prefix}: {str(e) or type(e).__name__}") from e
        finally:
            try:
                await provider.close()
            except Exception as e:
                logger.warning(f"关闭Provider失败: {e}")
