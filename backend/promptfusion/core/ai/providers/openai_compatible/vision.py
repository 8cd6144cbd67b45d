"""
OpenAI兼容视觉分析Provider（流式Chat Completions，支持多模态）
"""

from typing import List, Dict, Any, Optional
import openai

from promptfusion.core.ai.config import clean_base_url
from promptfusion.core.ai.exceptions import StageRequestError
from promptfusion.core.ai.providers.base.vision import BaseVisionProvider, PartialCallback
from promptfusion.core.ai.tracker import MLflowTracingMixin
from promptfusion.core.log_utils import get_logger
from promptfusion.models.work_item import SourceImage
from .utils import create_openai_client, handle_openai_exception

logger = get_logger(__name__)


class OpenAICompatibleVisionProvider(BaseVisionProvider, MLflowTracingMixin):
    """OpenAI兼容视觉分析Provider

    支持所有兼容OpenAI Vision API的提供商
    """

    def __init__(self, stage_config, api_key: str):
        """初始化Provider"""
        BaseVisionProvider.__init__(self, stage_config, api_key)
        MLflowTracingMixin.__init__(self)

        self.base_url = clean_base_url(stage_config.base_url)
        self.client = create_openai_client(api_key=api_key, base_url=self.base_url)
        self.model = stage_config.model

        logger.info(
            "OpenAI兼容Vision客户端初始化完成",
            operation="openai_compatible_vision_init",
            base_url=self.base_url,
            model=self.model
        )

    def get_provider_name(self) -> str:
        """获取Provider名称"""
        return "openai_compatible"

    async def close(self):
        """关闭 OpenAI 客户端"""
        if getattr(self, 'client', None):
            await self.client.close()

    def _build_messages(self, image: SourceImage) -> List[Dict[str, Any]]:
        """构建包含图片的多模态消息"""
        messages: List[Dict[str, Any]] = []
        if self.stage_config.system_instruction:
            messages.append({"role": "system", "content": self.stage_config.system_instruction})
        messages.append({
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": image.to_data_url()}},
                {"type": "text", "text": self.prompt_text},
            ]
        })
        return messages

    async def describe_image(
        self,
        image: SourceImage,
        on_partial: Optional[PartialCallback] = None
    ) -> str:
        """
        OpenAI兼容流式分析接口

        Args:
            image: 源图片
            on_partial: 流式回调（累积文本）

        Returns:
            str: 完整描述
        """
        messages = self._build_messages(image)

        logger.info(
            "OpenAI兼容Vision请求",
            operation="openai_compatible_vision",
            model=self.model,
            base_url=self.base_url,
            message_count=len(messages)
        )

        async def call_api() -> str:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                stream=True,
                **self.stage_config.parameters.get("chat_kwargs", {})
            )
            return await self._process_stream(stream, on_partial)

        try:
            return await self._with_mlflow_trace(
                operation_name="openai_compatible_vision",
                inputs={"model": self.model, "base_url": self.base_url, "image_size": image.size},
                call_func=call_api
            )
        except openai.OpenAIError as e:
            error_message = handle_openai_exception(e, self.base_url)
            logger.error(
                "OpenAI兼容Vision调用失败",
                operation="openai_compatible_vision_error",
                error=str(e),
                error_type=type(e).__name__
            )
            raise StageRequestError(
                f"Analysis failed: {error_message}",
                details={"status_code": getattr(e, "status_code", None)}
            ) from e

    async def _process_stream(self, stream, on_partial: Optional[PartialCallback]) -> str:
        """处理流式响应，回调传入累积文本"""
        full_text = ""
        chunk_count = 0

        async for chunk in stream:
            chunk_count += 1
            content = self._extract_chunk_content(chunk)
            if content:
                full_text += content
                self._emit(on_partial, full_text)

        if not full_text:
            logger.warning("流式分析完成但没有收到任何内容")
        else:
            logger.info(f"流式分析完成，共处理 {chunk_count} 个chunks")

        return self._finalize(full_text)

    def _extract_chunk_content(self, chunk) -> Optional[str]:
        """
        从流式响应chunk中提取内容

        Args:
            chunk: OpenAI流式响应的单个chunk

        Returns:
            提取到的内容字符串，如果无内容则返回None
        """
        if not getattr(chunk, 'choices', None):
            return None

        choice = chunk.choices[0]

        if getattr(choice, 'finish_reason', None):
            logger.debug(f"流结束原因: {choice.finish_reason}")

        delta = getattr(choice, 'delta', None)
        if delta and getattr(delta, 'content', None):
            return delta.content

        return None
