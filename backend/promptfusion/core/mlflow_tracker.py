"""
MLflow追踪器模块
为远程阶段调用（视觉分析、图片生成）提供可选的MLflow追踪
"""

import mlflow

from promptfusion.core.config import settings
from promptfusion.core.log_utils import get_logger

logger = get_logger(__name__)


class MLflowTracker:
    """MLflow追踪器"""

    def __init__(self):
        self.is_initialized = False
        self.autolog_enabled = False

    def initialize(self) -> bool:
        """初始化MLflow追踪器"""
        if self.is_initialized:
            return True

        # 检查是否启用MLflow
        if not settings.enable_mlflow:
            logger.debug("MLflow追踪已被禁用")
            return False

        try:
            mlflow.set_tracking_uri(settings.mlflow_tracking_uri)

            try:
                experiment = mlflow.get_experiment_by_name(settings.mlflow_experiment_name)
                if experiment is None:
                    mlflow.create_experiment(settings.mlflow_experiment_name)
                mlflow.set_experiment(settings.mlflow_experiment_name)
                logger.info(f"MLflow实验已设置: {settings.mlflow_experiment_name}")
            except Exception as e:
                logger.warning(f"MLflow实验设置失败: {e}")

            self.is_initialized = True
            logger.info(f"MLflow追踪器初始化成功: {settings.mlflow_tracking_uri}")
            return True

        except Exception as e:
            logger.error(f"MLflow追踪器初始化失败: {e}")
            return False

    def enable_openai_autolog(self) -> bool:
        """启用OpenAI自动追踪"""
        if not self.is_initialized:
            if not self.initialize():
                return False

        try:
            mlflow.openai.autolog(log_traces=True)
            self.autolog_enabled = True
            logger.info("OpenAI自动追踪已启用")
            return True

        except Exception as e:
            logger.error(f"启用OpenAI自动追踪失败: {e}")
            return False


# 全局MLflow追踪器实例
mlflow_tracker = MLflowTracker()


def get_mlflow_tracker() -> MLflowTracker:
    """获取MLflow追踪器实例"""
    return mlflow_tracker


def ensure_mlflow_initialized() -> bool:
    """确保MLflow已初始化并启用自动追踪"""
    tracker = get_mlflow_tracker()
    if not tracker.is_initialized:
        tracker.initialize()
    if tracker.is_initialized and not tracker.autolog_enabled:
        tracker.enable_openai_autolog()
    return tracker.is_initialized and tracker.autolog_enabled
