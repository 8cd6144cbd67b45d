"""
视觉分析能力Provider基类
"""

from abc import abstractmethod
from typing import Callable, Optional, Set

from promptfusion.core.ai.base import BaseAIProvider
from promptfusion.core.ai.models import ModelCapability
from promptfusion.core.config import settings
from promptfusion.models.work_item import SourceImage

# 每次回调传入截至目前的完整文本（累积值，而非增量）
PartialCallback = Callable[[str], None]


class BaseVisionProvider(BaseAIProvider):
    """视觉分析Provider基类"""

    def get_capabilities(self) -> Set[ModelCapability]:
        """获取支持的能力"""
        return {ModelCapability.VISION}

    @property
    def prompt_text(self) -> str:
        """随图片一起发送的用户提示"""
        return self.stage_config.parameters.get("prompt_text") or settings.analysis_prompt_text

    @abstractmethod
    async def describe_image(
        self,
        image: SourceImage,
        on_partial: Optional[PartialCallback] = None
    ) -> str:
        """
        流式分析图片，返回最终描述

        Args:
            image: 源图片
            on_partial: 流式回调，每收到一块内容即传入累积文本

        Returns:
            完整的图片描述

        Raises:
            StageError: 调用失败
        """
        pass

    @staticmethod
    def _emit(on_partial: Optional[PartialCallback], text: str) -> None:
        """向调用方推送累积文本"""
        if on_partial is not None:
            on_partial(text)

    @staticmethod
    def _finalize(text: str) -> str:
        """空结果使用占位描述"""
        return text or settings.analysis_empty_description
