"""
AI Provider注册中心
管理所有Provider的注册
"""

from promptfusion.core.log_utils import get_logger
from .factory import AIProviderFactory
from .models import ModelCapability

logger = get_logger(__name__)

_registered = False


def register_all_providers():
    """注册所有Provider（按提供商组织），重复调用无副作用"""
    global _registered
    if _registered:
        return

    from .providers.genai import GenAIVisionProvider, GenAIImageProvider
    from .providers.openai_compatible import (
        OpenAICompatibleVisionProvider,
        OpenAICompatibleImageProvider,
    )

    # ===== Google GenAI =====
    AIProviderFactory.register(ModelCapability.VISION, "genai", GenAIVisionProvider)
    AIProviderFactory.register(ModelCapability.IMAGE_GEN, "genai", GenAIImageProvider)

    # ===== OpenAI兼容（跨提供商） =====
    AIProviderFactory.register(ModelCapability.VISION, "openai_compatible", OpenAICompatibleVisionProvider)
    AIProviderFactory.register(ModelCapability.IMAGE_GEN, "openai_compatible", OpenAICompatibleImageProvider)

    _registered = True
    logger.info(
        "所有AI Provider注册完成",
        operation="register_all_providers_complete",
        total_capabilities=len(AIProviderFactory._providers)
    )
