"""
Google GenAI (Gemini) 视觉分析Provider
基于 Google GenAI SDK 的流式 generate_content_stream 实现
"""

from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from promptfusion.core.ai.config import clean_base_url
from promptfusion.core.ai.exceptions import StageRequestError
from promptfusion.core.ai.providers.base.vision import BaseVisionProvider, PartialCallback
from promptfusion.core.ai.tracker import MLflowTracingMixin
from promptfusion.core.log_utils import get_logger
from promptfusion.models.work_item import SourceImage

logger = get_logger(__name__)

OFFICIAL_ENDPOINT_HINT = (
    " \n\n[HINT] You are hitting Google Official. If you are using a proxy Key "
    "(like Apicore), you MUST set the Base URL in Settings -> Step 1."
)
CUSTOM_ENDPOINT_HINT = (
    " \n\n[HINT] Key rejected by your custom endpoint. Check if the key is correct."
)


class GenAIVisionProvider(BaseVisionProvider, MLflowTracingMixin):
    """Google GenAI 视觉分析Provider"""

    def __init__(self, stage_config, api_key: str):
        """初始化Provider"""
        BaseVisionProvider.__init__(self, stage_config, api_key)
        MLflowTracingMixin.__init__(self)

        # 自定义网关时通过 http_options 覆盖 base_url
        self.base_url = clean_base_url(stage_config.base_url)
        http_options = {"base_url": self.base_url} if self.base_url else None

        self.client = genai.Client(api_key=api_key, http_options=http_options)
        self.model = stage_config.model or "gemini-3-flash-preview"

        logger.info(
            "GenAI Vision Provider初始化成功",
            operation="genai_vision_init",
            model=self.model,
            has_api_base=bool(self.base_url)
        )

    def get_provider_name(self) -> str:
        """获取Provider名称"""
        return "genai"

    async def describe_image(
        self,
        image: SourceImage,
        on_partial: Optional[PartialCallback] = None
    ) -> str:
        """
        流式分析图片

        Args:
            image: 源图片
            on_partial: 流式回调（累积文本）

        Returns:
            str: 完整描述；流为空时返回占位描述
        """
        if self.base_url:
            logger.info(f"[Vision] Using Custom Base URL: {self.base_url}", model=self.model)
        else:
            logger.info("[Vision] Using Official Google Endpoint", model=self.model)

        async def call_api() -> str:
            return await self._stream_description(image, on_partial)

        try:
            return await self._with_mlflow_trace(
                operation_name="genai_vision",
                inputs={
                    "model": self.model,
                    "base_url": self.base_url,
                    "content_type": image.content_type,
                    "image_size": image.size
                },
                call_func=call_api
            )
        except genai_errors.APIError as e:
            message = self._with_hint(str(e) or "Unknown error")
            logger.error(
                "GenAI视觉分析失败",
                operation="genai_vision_error",
                error=str(e),
                status_code=getattr(e, "code", None)
            )
            raise StageRequestError(
                f"Analysis failed: {message}",
                details={"status_code": getattr(e, "code", None)}
            ) from e

    async def _stream_description(
        self,
        image: SourceImage,
        on_partial: Optional[PartialCallback]
    ) -> str:
        """消费流式响应并累积文本"""
        contents = [
            types.Part.from_bytes(data=image.data, mime_type=image.content_type),
            self.prompt_text,
        ]
        config = types.GenerateContentConfig(
            system_instruction=self.stage_config.system_instruction or None
        )

        stream = await self.client.aio.models.generate_content_stream(
            model=self.model,
            contents=contents,
            config=config
        )

        full_text = ""
        chunk_count = 0
        async for chunk in stream:
            chunk_count += 1
            text = chunk.text
            if text:
                full_text += text
                self._emit(on_partial, full_text)

        if not full_text:
            logger.warning("流式分析完成但没有收到任何内容", model=self.model)
        else:
            logger.debug(f"流式分析完成，共处理 {chunk_count} 个chunks")

        return self._finalize(full_text)

    def _with_hint(self, message: str) -> str:
        """常见的400/密钥错误附加排查提示"""
        if "400" in message or "API_KEY_INVALID" in message:
            if self.stage_config.has_custom_base_url:
                return message + CUSTOM_ENDPOINT_HINT
            return message + OFFICIAL_ENDPOINT_HINT
        return message
