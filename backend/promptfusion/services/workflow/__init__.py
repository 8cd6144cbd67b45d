"""
批处理工作流服务
"""

from typing import Optional

from .batch_controller import BatchController, DownloadEntry, ProcessingStats, compute_stats
from .event_log import EventLog
from .exceptions import WorkflowInvariantError
from .item_store import WorkItemStore
from .queue_engine import QueueEngine
from .stage_client import ProviderStageClient, StageClient

_controller: Optional[BatchController] = None


def get_batch_controller() -> BatchController:
    """获取进程内唯一的批处理控制器（首次调用时创建）"""
    global _controller
    if _controller is None:
        _controller = BatchController()
    return _controller


async def shutdown_batch_controller() -> None:
    """关闭并释放全局控制器"""
    global _controller
    if _controller is not None:
        await _controller.shutdown()
        _controller = None


__all__ = [
    "BatchController",
    "DownloadEntry",
    "EventLog",
    "ProcessingStats",
    "ProviderStageClient",
    "QueueEngine",
    "StageClient",
    "WorkItemStore",
    "WorkflowInvariantError",
    "compute_stats",
    "get_batch_controller",
    "shutdown_batch_controller",
]
