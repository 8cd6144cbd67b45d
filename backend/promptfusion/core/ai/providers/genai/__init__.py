"""
Google GenAI Provider
"""

from .vision import GenAIVisionProvider
from .image import GenAIImageProvider

__all__ = [
    "GenAIVisionProvider",
    "GenAIImageProvider",
]
