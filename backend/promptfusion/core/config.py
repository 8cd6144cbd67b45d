"""
应用配置管理模块
统一管理所有配置信息，包括环境变量和文件配置
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator, ConfigDict

from promptfusion.utils.config_utils import (
    get_workspace_path, get_config_path, parse_list_config, parse_json_config
)


class Settings(BaseSettings):
    """应用配置类 - 统一管理所有配置信息"""

    # ==================== 基础配置 ====================
    app_name: str = "PromptFusion Canvas"
    app_version: str = "1.0.0"
    app_debug: bool = False
    app_env: str = "development"

    # ==================== API配置 ====================
    api_v1_str: str = "/api/v1"
    project_name: str = "PromptFusion Workflow API"

    # ==================== 日志配置 ====================
    log_level: str = "INFO"
    log_dir: str = "log"
    log_file: str = "backend.log"
    log_to_file: bool = False
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ==================== MLflow配置 ====================
    enable_mlflow: bool = False
    mlflow_tracking_uri: str = "http://localhost:5001"
    mlflow_experiment_name: str = "promptfusion-workflow"

    # ==================== 应用服务配置 ====================
    app_port: int = 8080
    app_host: str = "0.0.0.0"

    # ==================== CORS配置 ====================
    cors_origins: str = '["*"]'

    # ==================== 凭证回退配置 ====================
    # 阶段配置未提供API Key时使用（环境变量 API_KEY）
    api_key: Optional[str] = None

    # ==================== 工作流队列配置 ====================
    workflow_pacing_delay: float = 0.5
    workflow_stage_timeout: float = 120.0
    workflow_log_capacity: int = 0  # 0 表示不限制，否则至少为2
    workflow_max_upload_size: int = 20971520  # 20MB

    # ==================== 分析阶段默认配置 ====================
    analysis_default_provider: str = "genai"
    analysis_default_base_url: str = ""
    analysis_default_model: str = "gemini-3-flash-preview"
    analysis_default_instruction: str = (
        "Analyze the image and write a high-quality stable diffusion style prompt "
        "(tags or natural language) to recreate it. Focus on subject, medium, lighting, and style."
    )
    analysis_prompt_text: str = (
        "Describe this image in detail to generate a similar image. Do not use conversational filler."
    )
    analysis_empty_description: str = "No description generated."

    # ==================== 生成阶段默认配置 ====================
    generation_default_provider: str = "openai_compatible"
    generation_default_base_url: str = ""
    generation_fallback_base_url: str = "https://api.apicore.ai/v1"
    generation_default_model: str = "gemini-3-pro-image-preview"
    generation_default_instruction: str = (
        "Generate a high-fidelity image based on the provided description."
    )
    generation_default_aspect_ratio: str = "16:9"
    generation_aspect_ratios: str = "16:9,1:1,9:16,4:3,3:4,21:9"

    # ==================== 验证器 ====================
    @field_validator("generation_aspect_ratios")
    @classmethod
    def split_aspect_ratios(cls, value: str) -> List[str]:
        """将支持的比例字符串转换为列表"""
        return parse_list_config(value)

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, value: str) -> List[str]:
        """解析CORS origins配置"""
        return parse_json_config(value)

    @field_validator("workflow_stage_timeout")
    @classmethod
    def validate_stage_timeout(cls, value: float) -> float:
        """远程阶段超时不得低于60秒"""
        if value < 60:
            raise ValueError("workflow_stage_timeout 不能小于60秒")
        return value

    @field_validator("workflow_log_capacity")
    @classmethod
    def validate_log_capacity(cls, value: int) -> int:
        """日志容量为0（不限制）或至少2条（一条丢弃说明加一条新记录）"""
        if value < 0 or value == 1:
            raise ValueError("workflow_log_capacity 必须为0或不小于2")
        return value

    # ==================== 计算属性 ====================
    @property
    def workspace_dir(self) -> str:
        """获取workspace目录路径"""
        return str(get_workspace_path())

    @property
    def absolute_log_file(self) -> str:
        """获取绝对日志文件路径"""
        return str(get_workspace_path(self.log_dir) / self.log_file)

    model_config = ConfigDict(
        env_file=get_config_path(".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        validate_default=True
    )


def get_settings() -> Settings:
    """获取应用配置实例"""
    return Settings()


# 全局配置实例
settings = get_settings()
