"""
统一的MLflow追踪Mixin
为所有AI Provider提供MLflow追踪功能
"""

from typing import Dict, Any, Callable, Awaitable
import time
import mlflow

from promptfusion.core.log_utils import get_logger
from promptfusion.core.mlflow_tracker import get_mlflow_tracker

logger = get_logger(__name__)


class MLflowTracingMixin:
    """MLflow追踪Mixin类

    需要子类提供 stage_config 属性
    """

    def __init__(self):
        """初始化MLflow追踪"""
        self.mlflow_tracker = get_mlflow_tracker()

    def _get_model_name(self) -> str:
        """获取模型名称"""
        stage_config = getattr(self, 'stage_config', None)
        return getattr(stage_config, 'model', None) or "unknown"

    async def _with_mlflow_trace(
        self,
        operation_name: str,
        inputs: Dict[str, Any],
        call_func: Callable[[], Awaitable[Any]],
    ) -> Any:
        """使用MLflow trace API进行追踪

        Args:
            operation_name: 操作名称
            inputs: 输入参数
            call_func: 实际执行函数

        Returns:
            执行结果
        """
        model_name = self._get_model_name()
        start_time = time.time()

        try:
            if not self.mlflow_tracker.is_initialized:
                return await call_func()

            trace_name = f"{self.__class__.__name__}_{model_name}_{operation_name}"
            with mlflow.start_span(name=trace_name, span_type="CHAIN") as span:
                span.set_inputs(inputs)
                try:
                    result = await call_func()
                except Exception as e:
                    span.set_attribute("success", False)
                    span.set_attribute("error_message", str(e))
                    span.set_attribute("error_type", type(e).__name__)
                    raise

                # 图片数据可能很大，只记录长度
                span.set_outputs({"result_length": len(result) if isinstance(result, str) else None})
                span.set_attribute("success", True)
                return result
        finally:
            duration = time.time() - start_time
            logger.info(
                f"{operation_name}完成",
                operation=f"ai_provider_{operation_name}",
                provider=self.__class__.__name__,
                model=model_name,
                duration_seconds=round(duration, 3)
            )
