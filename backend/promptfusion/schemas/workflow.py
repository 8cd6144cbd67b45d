"""
批处理工作流相关的Pydantic模型
用于请求验证和响应序列化
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from promptfusion.core.ai.config import StageConfig, WorkflowSettings
from promptfusion.core.config import settings


class StageConfigSchema(BaseModel):
    """单个阶段的配置"""
    provider: str = Field(..., min_length=1, description="Provider名称，如 genai / openai_compatible")
    model: str = Field(..., min_length=1, description="模型名称")
    api_key: Optional[str] = Field(None, description="API Key；为空或遮蔽值时保留当前值")
    base_url: str = Field("", description="自定义接口地址，为空时使用默认地址")
    system_instruction: str = Field("", description="系统指令/风格描述")
    aspect_ratio: Optional[str] = Field(None, description="生成比例，仅生成阶段使用")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Provider附加参数")

    @field_validator("provider", "model")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("不能为空")
        return value

    def to_stage_config(self, current: Optional[StageConfig] = None) -> StageConfig:
        """转换为阶段配置；未提供新密钥时沿用 current 中的密钥"""
        api_key = (self.api_key or "").strip()
        if current is not None and (not api_key or api_key.startswith("****")):
            api_key = current.api_key
        return StageConfig(
            provider=self.provider,
            model=self.model,
            api_key=api_key,
            base_url=self.base_url.strip(),
            system_instruction=self.system_instruction,
            aspect_ratio=self.aspect_ratio,
            parameters=dict(self.parameters)
        )


class WorkflowSettingsRequest(BaseModel):
    """更新工作流设置请求"""
    analysis: StageConfigSchema
    generation: StageConfigSchema

    @field_validator("generation")
    @classmethod
    def validate_generation_ratio(cls, value: StageConfigSchema) -> StageConfigSchema:
        if value.aspect_ratio is None:
            value.aspect_ratio = settings.generation_default_aspect_ratio
        elif value.aspect_ratio not in settings.generation_aspect_ratios:
            raise ValueError(f"不支持的宽高比: {value.aspect_ratio}")
        return value

    def to_settings(self, current: WorkflowSettings) -> WorkflowSettings:
        return WorkflowSettings(
            analysis=self.analysis.to_stage_config(current.analysis),
            generation=self.generation.to_stage_config(current.generation),
        )


class AspectRatioRequest(BaseModel):
    """修改生成比例请求"""
    aspect_ratio: str = Field(..., description="目标宽高比，如 16:9")


class WorkItemResponse(BaseModel):
    """工作条目响应模型"""
    id: str
    source_image: Dict[str, Any]
    status: str
    description: Optional[str] = None
    result_image: Optional[str] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    progress_log: List[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


class ProcessingStatsResponse(BaseModel):
    """队列统计响应模型"""
    total: int
    completed: int
    failed: int
    pending: int
    analyzing: int
    generating: int
    is_running: bool


class SystemLogResponse(BaseModel):
    """系统日志响应模型"""
    id: str
    timestamp: str
    severity: str
    message: str
    details: Optional[Any] = None


class DownloadEntryResponse(BaseModel):
    """下载条目响应模型"""
    item_id: str
    file_name: str
    download_name: str
    image_url: str
