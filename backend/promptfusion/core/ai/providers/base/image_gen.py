"""
文生图能力Provider基类
"""

from abc import abstractmethod
from typing import Set

from promptfusion.core.ai.base import BaseAIProvider
from promptfusion.core.ai.models import ModelCapability, ImageGenerationResult
from promptfusion.core.config import settings


class BaseImageGenProvider(BaseAIProvider):
    """文生图Provider基类"""

    def get_capabilities(self) -> Set[ModelCapability]:
        """获取支持的能力"""
        return {ModelCapability.IMAGE_GEN}

    @property
    def aspect_ratio(self) -> str:
        """输出比例，未配置时使用默认值"""
        return self.stage_config.aspect_ratio or settings.generation_default_aspect_ratio

    def build_prompt(self, description: str) -> str:
        """把风格指令拼接到描述前面"""
        instruction = (self.stage_config.system_instruction or "").strip()
        if instruction:
            return f"{instruction}\n\nPositive Prompt: {description}"
        return description

    @abstractmethod
    async def generate_image(
        self,
        prompt: str,
        **kwargs
    ) -> ImageGenerationResult:
        """
        生成图片接口

        Args:
            prompt: 已拼接风格指令的完整提示词
            **kwargs: 其他参数（如 ref_images）

        Returns:
            ImageGenerationResult: 图片生成结果

        Raises:
            StageRequestError: 请求失败
            MalformedStageResponseError: 响应中既没有URL也没有内联图片数据
        """
        pass
