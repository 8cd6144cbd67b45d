"""
OpenAI兼容图片生成Provider
通过标准的 /images/generations 接口生成图片
"""

import json
from typing import Any, Dict, Optional

import httpx

from promptfusion.core.ai.config import clean_base_url
from promptfusion.core.ai.exceptions import MalformedStageResponseError, StageRequestError
from promptfusion.core.ai.models import ImageGenerationResult
from promptfusion.core.ai.providers.base.image_gen import BaseImageGenProvider
from promptfusion.core.ai.tracker import MLflowTracingMixin
from promptfusion.core.config import settings
from promptfusion.core.log_utils import get_logger

logger = get_logger(__name__)


class OpenAICompatibleImageProvider(BaseImageGenProvider, MLflowTracingMixin):
    """OpenAI兼容图片生成Provider"""

    def __init__(self, stage_config, api_key: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        初始化Provider

        Args:
            stage_config: 阶段配置
            api_key: API密钥
            transport: 自定义httpx传输层（测试时注入MockTransport）
        """
        BaseImageGenProvider.__init__(self, stage_config, api_key)
        MLflowTracingMixin.__init__(self)

        self.base_url = clean_base_url(stage_config.base_url) or settings.generation_fallback_base_url
        self.model = (stage_config.model or "").strip() or settings.generation_default_model
        self.timeout = float(stage_config.parameters.get("timeout", settings.workflow_stage_timeout))
        self._transport = transport

        logger.info(
            "OpenAI兼容图片生成客户端初始化完成",
            operation="openai_compatible_image_init",
            base_url=self.base_url,
            model=self.model
        )

    def get_provider_name(self) -> str:
        """获取Provider名称"""
        return "openai_compatible"

    def _prepare_request_payload(self, prompt: str) -> Dict[str, Any]:
        """准备API请求参数"""
        return {
            "model": self.model,
            "prompt": prompt,
            "size": self.aspect_ratio,
            "n": 1
        }

    async def generate_image(self, prompt: str, **kwargs) -> ImageGenerationResult:
        """
        生成图片

        Args:
            prompt: 完整提示词

        Returns:
            ImageGenerationResult: 图片URL或data URL
        """
        payload = self._prepare_request_payload(prompt)
        url = f"{self.base_url}/images/generations"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }

        logger.info(
            f"[Generation] Posting to {self.base_url} with model {self.model}",
            operation="openai_standard_image_start",
            size=payload["size"]
        )

        async def call_api() -> ImageGenerationResult:
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(url, json=payload, headers=headers)
            except httpx.TimeoutException as e:
                raise StageRequestError(f"Request timed out after {self.timeout:.0f}s: {url}") from e
            except httpx.HTTPError as e:
                raise StageRequestError(f"Request failed ({type(e).__name__}): {e}") from e

            if not response.is_success:
                raise StageRequestError(
                    self._describe_http_error(response),
                    details={"status_code": response.status_code}
                )

            return self._parse_response(response)

        try:
            return await self._with_mlflow_trace(
                operation_name="openai_standard_image",
                inputs={"model": self.model, "base_url": self.base_url, "size": payload["size"]},
                call_func=call_api
            )
        except (StageRequestError, MalformedStageResponseError) as e:
            logger.error(
                "标准API生成图片失败",
                operation="openai_standard_image_error",
                error=str(e),
                error_type=e.code
            )
            raise

    @staticmethod
    def _describe_http_error(response: httpx.Response) -> str:
        """从非成功响应中提取尽可能详细的错误描述"""
        err_text = response.text
        detailed_error = f"API Error {response.status_code}: {response.reason_phrase}"
        try:
            json_err = json.loads(err_text)
        except ValueError:
            json_err = None

        error_obj = json_err.get("error") if isinstance(json_err, dict) else None
        if isinstance(error_obj, dict) and error_obj.get("message"):
            detailed_error += f" - {error_obj['message']}"
        else:
            detailed_error += f"\nRaw: {err_text[:300]}"
        return detailed_error

    def _parse_response(self, response: httpx.Response) -> ImageGenerationResult:
        """解析响应：优先使用URL，其次使用内联base64数据"""
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedStageResponseError(
                f"Invalid Response Structure: {response.text[:200]}..."
            ) from e

        first = None
        items = data.get("data") if isinstance(data, dict) else None
        if isinstance(items, list) and items and isinstance(items[0], dict):
            first = items[0]

        if first and first.get("url"):
            return ImageGenerationResult(
                image_url=first["url"],
                metadata={"model": self.model, "method": "standard_api_url"}
            )

        if first and first.get("b64_json"):
            return ImageGenerationResult(
                image_url=f"data:image/png;base64,{first['b64_json']}",
                metadata={"model": self.model, "method": "standard_api_b64"}
            )

        raise MalformedStageResponseError(
            f"Invalid Response Structure: {json.dumps(data)[:200]}..."
        )
