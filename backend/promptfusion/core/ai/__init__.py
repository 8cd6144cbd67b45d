"""
AI模型交互统一模块
提供远程阶段（视觉分析、图片生成）的Provider接口和实现
"""

from .base import BaseAIProvider
from .config import StageConfig, WorkflowSettings
from .exceptions import (
    StageError,
    MissingCredentialError,
    StageRequestError,
    MalformedStageResponseError,
)
from .models import ModelCapability, ImageGenerationResult
from .factory import AIProviderFactory
from .registry import register_all_providers

__all__ = [
    "BaseAIProvider",
    "StageConfig",
    "WorkflowSettings",
    "StageError",
    "MissingCredentialError",
    "StageRequestError",
    "MalformedStageResponseError",
    "ModelCapability",
    "ImageGenerationResult",
    "AIProviderFactory",
    "register_all_providers",
]
