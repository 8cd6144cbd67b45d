"""
AI Provider统一抽象基类
"""

from abc import ABC, abstractmethod
from typing import Set, TYPE_CHECKING

from .models import ModelCapability

if TYPE_CHECKING:
    from promptfusion.core.ai.config import StageConfig


class BaseAIProvider(ABC):
    """所有AI Provider的统一抽象基类"""

    def __init__(self, stage_config: 'StageConfig', api_key: str):
        """
        初始化Provider

        Args:
            stage_config: 阶段配置对象
            api_key: 已解析并去除空白的API Key
        """
        self.stage_config = stage_config
        self.api_key = api_key

    @abstractmethod
    def get_capabilities(self) -> Set[ModelCapability]:
        """获取Provider支持的能力"""
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """获取Provider名称（如 "openai_compatible", "genai"）"""
        pass

    async def close(self):
        """关闭Provider，释放资源"""
        pass
