"""
OpenAI兼容Provider（任何实现 OpenAI 接口的网关）
"""

from .vision import OpenAICompatibleVisionProvider
from .image import OpenAICompatibleImageProvider

__all__ = [
    "OpenAICompatibleVisionProvider",
    "OpenAICompatibleImageProvider",
]
