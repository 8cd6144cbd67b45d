"""
远程阶段客户端单元测试
使用注册到工厂的假Provider，覆盖凭证解析、超时与异常映射
"""

import asyncio

import pytest

from promptfusion.core.ai.config import StageConfig
from promptfusion.core.ai.exceptions import (
    MalformedStageResponseError,
    MissingCredentialError,
    StageRequestError,
)
from promptfusion.core.ai.factory import AIProviderFactory
from promptfusion.core.ai.models import ImageGenerationResult, ModelCapability
from promptfusion.core.ai.providers.base import BaseImageGenProvider, BaseVisionProvider
from promptfusion.services.workflow import stage_client as stage_client_module
from promptfusion.services.workflow.stage_client import ProviderStageClient, resolve_api_key
from tests.utils.mock_utils import make_source_image


class FakeVisionProvider(BaseVisionProvider):
    """按 parameters 中的 behavior 决定行为"""

    instances = []

    def __init__(self, stage_config, api_key: str):
        super().__init__(stage_config, api_key)
        self.closed = False
        FakeVisionProvider.instances.append(self)

    def get_provider_name(self) -> str:
        return "fake"

    async def describe_image(self, image, on_partial=None) -> str:
        behavior = self.stage_config.parameters.get("behavior", "ok")
        if behavior == "slow":
            await asyncio.sleep(10)
        if behavior == "crash":
            raise KeyError("choices")
        if behavior == "malformed":
            raise MalformedStageResponseError("bad body")
        self._emit(on_partial, "partial")
        return self._finalize(self.stage_config.parameters.get("text", ""))

    async def close(self):
        self.closed = True


class FakeImageProvider(BaseImageGenProvider):
    prompts = []

    def get_provider_name(self) -> str:
        return "fake"

    async def generate_image(self, prompt: str, **kwargs) -> ImageGenerationResult:
        FakeImageProvider.prompts.append(prompt)
        return ImageGenerationResult(image_url="https://images.example.com/out.png")


AIProviderFactory.register(ModelCapability.VISION, "fake", FakeVisionProvider)
AIProviderFactory.register(ModelCapability.IMAGE_GEN, "fake", FakeImageProvider)


def _config(**kwargs) -> StageConfig:
    values = {"provider": "fake", "model": "fake-model", "api_key": "secret-key"}
    values.update(kwargs)
    return StageConfig(**values)


@pytest.fixture
def no_env_key(monkeypatch):
    monkeypatch.setattr(stage_client_module.settings, "api_key", None)


@pytest.mark.unit
@pytest.mark.providers
class TestProviderStageClient:
    """ProviderStageClient 单元测试类"""

    def setup_method(self):
        self.client = ProviderStageClient(timeout=60)
        self.image = make_source_image("a.png")
        FakeVisionProvider.instances.clear()
        FakeImageProvider.prompts.clear()

    def test_resolve_api_key_prefers_stage_config(self, monkeypatch):
        monkeypatch.setattr(stage_client_module.settings, "api_key", "env-key")
        assert resolve_api_key(_config(api_key="  stage-key ")) == "stage-key"
        assert resolve_api_key(_config(api_key="   ")) == "env-key"

    def test_resolve_api_key_missing(self, no_env_key):
        assert resolve_api_key(_config(api_key="")) is None

    @pytest.mark.asyncio
    async def test_analyze_missing_key(self, no_env_key):
        with pytest.raises(MissingCredentialError) as exc_info:
            await self.client.analyze(self.image, _config(api_key=""))
        assert str(exc_info.value) == "API Key for Analysis step is missing. Please check Settings."

    @pytest.mark.asyncio
    async def test_generate_missing_key(self, no_env_key):
        with pytest.raises(MissingCredentialError) as exc_info:
            await self.client.generate(self.image, "desc", _config(api_key=""))
        assert str(exc_info.value) == "API Key for Generation step is missing."

    @pytest.mark.asyncio
    async def test_analyze_streams_and_closes_provider(self):
        partials = []
        result = await self.client.analyze(
            self.image, _config(parameters={"text": "final"}), on_partial=partials.append
        )
        assert result == "final"
        assert partials == ["partial"]
        assert FakeVisionProvider.instances[0].closed is True

    @pytest.mark.asyncio
    async def test_analyze_empty_text_uses_placeholder(self):
        result = await self.client.analyze(self.image, _config())
        assert result == "No description generated."

    @pytest.mark.asyncio
    async def test_analyze_timeout(self):
        client = ProviderStageClient(timeout=0.01)
        with pytest.raises(StageRequestError) as exc_info:
            await client.analyze(self.image, _config(parameters={"behavior": "slow"}))
        assert "timed out" in str(exc_info.value)
        assert FakeVisionProvider.instances[0].closed is True

    @pytest.mark.asyncio
    async def test_unexpected_exception_mapped(self):
        with pytest.raises(StageRequestError) as exc_info:
            await self.client.analyze(self.image, _config(parameters={"behavior": "crash"}))
        assert str(exc_info.value).startswith("Analysis failed:")

    @pytest.mark.asyncio
    async def test_stage_error_passes_through(self):
        with pytest.raises(MalformedStageResponseError):
            await self.client.analyze(self.image, _config(parameters={"behavior": "malformed"}))

    @pytest.mark.asyncio
    async def test_unknown_provider_is_request_failure(self):
        with pytest.raises(StageRequestError) as exc_info:
            await self.client.analyze(self.image, _config(provider="nope"))
        assert "nope" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_generate_builds_prompt(self):
        result = await self.client.generate(
            self.image,
            "a red fox",
            _config(system_instruction="Watercolor style.", aspect_ratio="1:1")
        )
        assert result == "https://images.example.com/out.png"
        assert FakeImageProvider.prompts == ["Watercolor style.\n\nPositive Prompt: a red fox"]

    @pytest.mark.asyncio
    async def test_generate_without_instruction_uses_description(self):
        await self.client.generate(self.image, "a red fox", _config())
        assert FakeImageProvider.prompts == ["a red fox"]
