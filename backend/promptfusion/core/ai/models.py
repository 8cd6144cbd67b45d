"""
AI模型交互的数据模型
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Any


class ModelCapability(str, Enum):
    """模型能力枚举"""
    VISION = "vision"
    IMAGE_GEN = "image_gen"


@dataclass
class ImageGenerationResult:
    """图片生成结果"""
    image_url: str  # http(s) URL 或 data:image/...;base64 URL
    metadata: Optional[Dict[str, Any]] = None
