"""
Google GenAI (Gemini) 图片生成提供商
基于 Google GenAI SDK 实现，从响应的 inline_data 中提取图片
"""

import base64

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from promptfusion.core.ai.config import clean_base_url
from promptfusion.core.ai.exceptions import MalformedStageResponseError, StageRequestError
from promptfusion.core.ai.models import ImageGenerationResult
from promptfusion.core.ai.providers.base.image_gen import BaseImageGenProvider
from promptfusion.core.ai.tracker import MLflowTracingMixin
from promptfusion.core.config import settings
from promptfusion.core.log_utils import get_logger

logger = get_logger(__name__)


class GenAIImageProvider(BaseImageGenProvider, MLflowTracingMixin):
    """Google GenAI 图片生成提供商"""

    # 支持的比例
    SUPPORTED_ASPECT_RATIOS = ["1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9"]

    # 支持的分辨率
    SUPPORTED_RESOLUTIONS = ["1K", "2K", "4K"]

    def __init__(self, stage_config, api_key: str):
        """
        初始化GenAI提供商

        Args:
            stage_config: 阶段配置
            api_key: API密钥
        """
        BaseImageGenProvider.__init__(self, stage_config, api_key)
        MLflowTracingMixin.__init__(self)

        self.base_url = clean_base_url(stage_config.base_url)
        http_options = {"base_url": self.base_url} if self.base_url else None

        self.client = genai.Client(api_key=api_key, http_options=http_options)
        self.model = stage_config.model or settings.generation_default_model

        logger.info(
            "GenAIImageProvider初始化成功",
            operation="genai_init_success",
            model=self.model,
            has_api_base=bool(self.base_url)
        )

    def get_provider_name(self) -> str:
        """获取Provider名称"""
        return "genai"

    def _resolve_aspect_ratio(self) -> str:
        """校验比例，不支持时回退到 16:9"""
        aspect_ratio = self.aspect_ratio
        if aspect_ratio not in self.SUPPORTED_ASPECT_RATIOS:
            logger.warning(
                f"不支持的比例 {aspect_ratio}，使用默认值 16:9",
                operation="aspect_ratio_fallback"
            )
            return "16:9"
        return aspect_ratio

    def _resolve_resolution(self) -> str:
        """分辨率必须是大写 K，不支持时回退到 2K"""
        resolution = str(self.stage_config.parameters.get("resolution", "2K")).upper()
        if resolution not in self.SUPPORTED_RESOLUTIONS:
            logger.warning(
                f"不支持的分辨率 {resolution}，使用默认值 2K",
                operation="resolution_fallback"
            )
            return "2K"
        return resolution

    async def generate_image(self, prompt: str, **kwargs) -> ImageGenerationResult:
        """
        生成图片

        Args:
            prompt: 图片生成提示词

        Returns:
            ImageGenerationResult: data URL 形式的图片
        """
        aspect_ratio = self._resolve_aspect_ratio()
        resolution = self._resolve_resolution()

        logger.info(
            "调用GenAI API生成图片",
            operation="genai_generate_start",
            model=self.model,
            prompt_length=len(prompt),
            aspect_ratio=aspect_ratio,
            resolution=resolution
        )

        config = types.GenerateContentConfig(
            response_modalities=['TEXT', 'IMAGE'],
            image_config=types.ImageConfig(
                aspect_ratio=aspect_ratio,
                image_size=resolution
            ),
        )

        async def call_api() -> ImageGenerationResult:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config
            )
            return self._extract_image(response, aspect_ratio, resolution)

        try:
            return await self._with_mlflow_trace(
                operation_name="genai_image",
                inputs={"model": self.model, "aspect_ratio": aspect_ratio, "resolution": resolution},
                call_func=call_api
            )
        except genai_errors.APIError as e:
            logger.error("GenAI 图片生成错误", operation="genai_generation_failed", exception=e)
            raise StageRequestError(
                f"GenAI 图片生成错误: {e}",
                details={"status_code": getattr(e, "code", None)}
            ) from e

    def _extract_image(self, response, aspect_ratio: str, resolution: str) -> ImageGenerationResult:
        """从响应 parts 中提取第一张内联图片"""
        parts = getattr(response, "parts", None) or []
        if not parts:
            raise MalformedStageResponseError("API响应中没有内容")

        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is None or not inline_data.data:
                continue

            mime_type = inline_data.mime_type or "image/png"
            img_base64 = base64.b64encode(inline_data.data).decode()
            logger.info("图片生成成功", operation="genai_image_success")
            return ImageGenerationResult(
                image_url=f"data:{mime_type};base64,{img_base64}",
                metadata={
                    "model": self.model,
                    "aspect_ratio": aspect_ratio,
                    "resolution": resolution
                }
            )

        raise MalformedStageResponseError("响应中未包含图片数据")
