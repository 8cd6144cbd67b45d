"""
工作流数据模型
"""

from .work_item import (
    WorkflowStatus,
    LogSeverity,
    SourceImage,
    WorkItem,
    SystemLog,
    ACTIVE_STATUSES,
    FINISHED_STATUSES,
)

__all__ = [
    "WorkflowStatus",
    "LogSeverity",
    "SourceImage",
    "WorkItem",
    "SystemLog",
    "ACTIVE_STATUSES",
    "FINISHED_STATUSES",
]
