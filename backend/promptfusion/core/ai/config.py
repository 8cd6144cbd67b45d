"""
阶段配置管理
分析阶段与生成阶段各自持有一份 StageConfig，队列引擎只负责透传
"""

from dataclasses import dataclass, field, asdict, replace
from typing import Optional, Dict, Any

from promptfusion.core.config import settings


def clean_base_url(url: Optional[str]) -> str:
    """去除首尾空白和末尾的斜杠"""
    if not url:
        return ""
    return url.strip().rstrip("/")


def mask_secret(value: Optional[str]) -> str:
    """遮蔽凭证，仅保留末尾4位"""
    if not value:
        return ""
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


@dataclass(frozen=True)
class StageConfig:
    """单个远程阶段的配置"""
    provider: str
    model: str
    api_key: str = ""
    base_url: str = ""
    system_instruction: str = ""
    aspect_ratio: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_custom_base_url(self) -> bool:
        """是否配置了自定义网关"""
        return bool(clean_base_url(self.base_url))

    def to_dict(self, mask_credentials: bool = False) -> Dict[str, Any]:
        """转换为字典"""
        data = asdict(self)
        if mask_credentials:
            data["api_key"] = mask_secret(self.api_key)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StageConfig':
        """
        从字典创建配置对象

        Args:
            data: 配置数据字典

        Returns:
            StageConfig实例
        """
        return cls(
            provider=data.get('provider', ''),
            model=data.get('model', ''),
            api_key=data.get('api_key') or '',
            base_url=data.get('base_url') or '',
            system_instruction=data.get('system_instruction') or '',
            aspect_ratio=data.get('aspect_ratio'),
            parameters=dict(data.get('parameters') or {})
        )


@dataclass(frozen=True)
class WorkflowSettings:
    """工作流设置：分析阶段 + 生成阶段"""
    analysis: StageConfig
    generation: StageConfig

    @classmethod
    def default(cls) -> 'WorkflowSettings':
        """根据应用配置构建默认设置"""
        return cls(
            analysis=StageConfig(
                provider=settings.analysis_default_provider,
                model=settings.analysis_default_model,
                base_url=settings.analysis_default_base_url,
                system_instruction=settings.analysis_default_instruction,
            ),
            generation=StageConfig(
                provider=settings.generation_default_provider,
                model=settings.generation_default_model,
                base_url=settings.generation_default_base_url,
                system_instruction=settings.generation_default_instruction,
                aspect_ratio=settings.generation_default_aspect_ratio,
            ),
        )

    def with_aspect_ratio(self, aspect_ratio: str) -> 'WorkflowSettings':
        """返回替换了生成比例的新设置"""
        return replace(self, generation=replace(self.generation, aspect_ratio=aspect_ratio))

    def to_dict(self, mask_credentials: bool = False) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "analysis": self.analysis.to_dict(mask_credentials),
            "generation": self.generation.to_dict(mask_credentials),
        }
