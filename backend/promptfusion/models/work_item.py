"""
工作条目与系统日志数据模型
"""

import base64
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, List, Optional


class WorkflowStatus(str, Enum):
    """工作条目状态枚举"""
    PENDING = "pending"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class LogSeverity(str, Enum):
    """系统日志级别"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# 正在占用远程阶段的状态
ACTIVE_STATUSES = frozenset({WorkflowStatus.ANALYZING, WorkflowStatus.GENERATING})
# 等待用户命令（重试/删除）的终态
FINISHED_STATUSES = frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.ERROR})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SourceImage:
    """源图片句柄，创建后不可变"""
    file_name: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def stem(self) -> str:
        """不含扩展名的文件名"""
        return PurePath(self.file_name).stem or self.file_name

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode()

    def to_data_url(self) -> str:
        return f"data:{self.content_type};base64,{self.to_base64()}"


@dataclass
class WorkItem:
    """
    一张输入图片在流水线中的处理单元

    不变量：result_image 仅在 completed 时存在，error_message 仅在 error 时存在。
    """
    id: str
    source_image: SourceImage
    status: WorkflowStatus = WorkflowStatus.PENDING
    description: Optional[str] = None
    result_image: Optional[str] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    progress_log: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def file_name(self) -> str:
        return self.source_image.file_name

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def check_consistency(self) -> bool:
        """校验结果/错误字段与状态是否一致"""
        if self.result_image is not None and self.error_message is not None:
            return False
        if self.result_image is not None:
            return self.status == WorkflowStatus.COMPLETED
        if self.error_message is not None:
            return self.status == WorkflowStatus.ERROR
        return self.status not in FINISHED_STATUSES

    def to_dict(self, include_image_data: bool = False) -> Dict[str, Any]:
        """转换为字典（源图片默认只输出元数据）"""
        source: Dict[str, Any] = {
            "file_name": self.source_image.file_name,
            "content_type": self.source_image.content_type,
            "size": self.source_image.size,
        }
        if include_image_data:
            source["data_url"] = self.source_image.to_data_url()
        return {
            "id": self.id,
            "source_image": source,
            "status": self.status.value,
            "description": self.description,
            "result_image": self.result_image,
            "error_message": self.error_message,
            "error_type": self.error_type,
            "progress_log": list(self.progress_log),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class SystemLog:
    """系统事件日志记录，写入后不可修改"""
    id: str
    timestamp: datetime
    severity: LogSeverity
    message: str
    details: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
        }
