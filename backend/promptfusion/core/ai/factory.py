"""
AI Provider工厂
"""

from typing import Dict, List, Type

from promptfusion.core.log_utils import get_logger
from .base import BaseAIProvider
from .config import StageConfig
from .models import ModelCapability

logger = get_logger(__name__)


class AIProviderFactory:
    """AI Provider工厂类"""

    # Provider注册表: {capability: {provider_name: ProviderClass}}
    _providers: Dict[ModelCapability, Dict[str, Type[BaseAIProvider]]] = {}

    @classmethod
    def register(
        cls,
        capability: ModelCapability,
        provider_name: str,
        provider_class: Type[BaseAIProvider]
    ):
        """
        注册Provider

        Args:
            capability: 能力枚举
            provider_name: Provider名称
            provider_class: Provider类
        """
        cls._providers.setdefault(capability, {})[provider_name] = provider_class
        logger.debug(
            f"注册Provider: {capability.value}/{provider_name}",
            operation="register_provider",
            capability=capability.value,
            provider_name=provider_name
        )

    @classmethod
    def create(
        cls,
        stage_config: StageConfig,
        capability: ModelCapability,
        api_key: str
    ) -> BaseAIProvider:
        """
        创建Provider实例

        Args:
            stage_config: 阶段配置
            capability: 需要的能力
            api_key: 已解析的API Key

        Returns:
            Provider实例

        Raises:
            ValueError: 如果能力不支持或Provider未注册
        """
        provider_name = stage_config.provider
        if not provider_name:
            raise ValueError(f"未配置 {capability.value} 的Provider")

        if capability not in cls._providers:
            raise ValueError(f"不支持的能力: {capability.value}")

        if provider_name not in cls._providers[capability]:
            available = list(cls._providers[capability].keys())
            raise ValueError(
                f"未注册的Provider: {capability.value}/{provider_name}, "
                f"可用的Provider: {available}"
            )

        provider_class = cls._providers[capability][provider_name]
        logger.debug(
            f"创建Provider实例: {capability.value}/{provider_name}",
            operation="create_provider",
            model=stage_config.model
        )
        return provider_class(stage_config, api_key)

    @classmethod
    def get_available_providers(cls, capability: ModelCapability) -> List[str]:
        """获取某种能力的所有可用Provider"""
        return list(cls._providers.get(capability, {}).keys())

    @classmethod
    def is_registered(cls, capability: ModelCapability, provider_name: str) -> bool:
        """检查Provider是否已注册"""
        return (
            capability in cls._providers and
            provider_name in cls._providers[capability]
        )
