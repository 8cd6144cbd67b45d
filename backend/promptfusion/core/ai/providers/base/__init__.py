"""
AI能力基类定义
"""

from .vision import BaseVisionProvider, PartialCallback
from .image_gen import BaseImageGenProvider

__all__ = [
    "BaseVisionProvider",
    "BaseImageGenProvider",
    "PartialCallback",
]
