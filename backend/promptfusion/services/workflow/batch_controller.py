"""
批处理控制器

面向用户的命令入口：添加文件、启动/停止队列、重试、删除、重置、统计、
设置管理与下载清单。命令被拒绝时返回 False 并写入一条 warning 日志。
"""

import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from promptfusion.core.ai.config import WorkflowSettings
from promptfusion.core.config import settings
from promptfusion.core.log_messages import log_messages
from promptfusion.core.log_utils import get_logger
from promptfusion.models.work_item import (
    FINISHED_STATUSES,
    SourceImage,
    SystemLog,
    WorkflowStatus,
    WorkItem,
)
from promptfusion.services.workflow.event_log import EventLog
from promptfusion.services.workflow.item_store import WorkItemStore
from promptfusion.services.workflow.queue_engine import QueueEngine
from promptfusion.services.workflow.stage_client import ProviderStageClient, StageClient
from promptfusion.utils.file_utils import build_download_name
from promptfusion.utils.id_utils import generate_uuid

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessingStats:
    """队列统计"""
    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    analyzing: int = 0
    generating: int = 0

    @property
    def processing(self) -> int:
        return self.analyzing + self.generating

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class DownloadEntry:
    """已完成条目的下载信息"""
    item_id: str
    file_name: str
    download_name: str
    image_url: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def compute_stats(items: Iterable[WorkItem]) -> ProcessingStats:
    """按状态统计条目数量"""
    counts = {status: 0 for status in WorkflowStatus}
    total = 0
    for item in items:
        counts[item.status] += 1
        total += 1
    return ProcessingStats(
        total=total,
        completed=counts[WorkflowStatus.COMPLETED],
        failed=counts[WorkflowStatus.ERROR],
        pending=counts[WorkflowStatus.PENDING],
        analyzing=counts[WorkflowStatus.ANALYZING],
        generating=counts[WorkflowStatus.GENERATING],
    )


class BatchController:
    """批处理工作流控制器"""

    def __init__(
        self,
        stage_client: Optional[StageClient] = None,
        workflow_settings: Optional[WorkflowSettings] = None,
        store: Optional[WorkItemStore] = None,
        event_log: Optional[EventLog] = None,
        pacing_delay: Optional[float] = None
    ):
        """
        初始化控制器

        Args:
            stage_client: 远程阶段客户端，默认使用 ProviderStageClient
            workflow_settings: 初始阶段配置，默认从全局配置构建
            store: 条目存储
            event_log: 事件日志
            pacing_delay: 条目之间的间隔秒数，默认取配置值
        """
        self.store = store if store is not None else WorkItemStore()
        self.event_log = (
            event_log if event_log is not None
            else EventLog(capacity=settings.workflow_log_capacity)
        )
        self._settings_lock = threading.Lock()
        self._workflow_settings = workflow_settings or WorkflowSettings.default()
        self.engine = QueueEngine(
            store=self.store,
            event_log=self.event_log,
            stage_client=stage_client if stage_client is not None else ProviderStageClient(),
            settings_provider=self.get_settings,
            pacing_delay=pacing_delay
        )

    # ==================== 队列命令 ====================

    @property
    def is_running(self) -> bool:
        return self.engine.is_running

    def add_files(self, files: Iterable[SourceImage]) -> List[WorkItem]:
        """
        为每个源图片创建一个 pending 条目，按给定顺序追加到队尾

        Returns:
            List[WorkItem]: 新建的条目
        """
        items = [
            WorkItem(
                id=generate_uuid(),
                source_image=source,
                progress_log=["Queued for processing..."]
            )
            for source in files
        ]
        if not items:
            return []

        self.store.append(items)
        self.event_log.info(
            log_messages.format_message(log_messages.FILES_ADDED, count=len(items)),
            details={"item_ids": [item.id for item in items]}
        )
        return items

    def start(self) -> bool:
        """启动队列；已在运行时为空操作"""
        return self.engine.start()

    def stop(self) -> bool:
        """请求在当前条目结束后停止"""
        if not self.engine.request_stop():
            logger.debug("队列未运行，忽略停止请求")
            return False
        self.event_log.warning(log_messages.QUEUE_STOP_REQUESTED)
        return True

    async def wait_idle(self) -> None:
        """等待当前运行结束"""
        await self.engine.wait()

    async def shutdown(self) -> None:
        """硬取消驱动任务（应用关闭时调用）"""
        if self.engine.is_running:
            logger.info("正在关闭工作队列")
        await self.engine.cancel()

    def retry(self, item_id: str) -> bool:
        """
        将 error 条目重置为 pending

        Returns:
            bool: 条目存在且处于 error 时为 True
        """
        item = self.store.get(item_id)
        if item is None:
            return False

        accepted = self.store.update(
            item_id,
            expected_status=WorkflowStatus.ERROR,
            status=WorkflowStatus.PENDING,
            error_message=None,
            error_type=None,
            result_image=None,
            description=None,
            progress_log=[*item.progress_log, "Retrying..."]
        )
        if not accepted:
            self.event_log.warning(
                log_messages.format_message(
                    log_messages.ITEM_RETRY_REJECTED, item_id=item_id, status=item.status.value
                ),
                details={"item_id": item_id}
            )
            return False

        self.event_log.info(
            log_messages.format_message(log_messages.ITEM_RETRY, item_id=item_id),
            details={"item_id": item_id}
        )
        return True

    def remove(self, item_id: str) -> bool:
        """删除条目；处理中的条目不允许删除"""
        item = self.store.get(item_id)
        if item is None:
            return False

        removed = self.store.remove_where(lambda i: i.id == item_id and not i.is_active)
        if not removed:
            current = self.store.get(item_id)
            status = current.status.value if current else item.status.value
            self.event_log.warning(
                log_messages.format_message(
                    log_messages.ITEM_REMOVE_REJECTED, item_id=item_id, status=status
                ),
                details={"item_id": item_id}
            )
            return False

        self.event_log.info(
            log_messages.format_message(log_messages.ITEM_REMOVED, item_id=item_id),
            details={"item_id": item_id}
        )
        return True

    def reset_all(self) -> bool:
        """删除全部条目；运行中拒绝"""
        if self._reject_while_running("Reset"):
            return False
        count = self.store.clear()
        self.event_log.warning(log_messages.ALL_RESET, details={"removed": count})
        return True

    def clear_finished(self) -> bool:
        """删除 completed/error 条目；运行中拒绝"""
        if self._reject_while_running("Clear finished"):
            return False
        count = self.store.remove_where(lambda i: i.status in FINISHED_STATUSES)
        self.event_log.info(log_messages.FINISHED_CLEARED, details={"removed": count})
        return True

    def _reject_while_running(self, command: str) -> bool:
        if not self.engine.is_running:
            return False
        self.event_log.warning(
            log_messages.format_message(log_messages.COMMAND_REJECTED_RUNNING, command=command)
        )
        return True

    # ==================== 查询 ====================

    def stats(self) -> ProcessingStats:
        return compute_stats(self.store.all())

    def items(self) -> List[WorkItem]:
        return self.store.all()

    def get_item(self, item_id: str) -> Optional[WorkItem]:
        return self.store.get(item_id)

    def logs(self) -> List[SystemLog]:
        return self.event_log.all()

    def clear_logs(self) -> None:
        self.event_log.clear()

    def subscribe(self, on_change: Callable[[], Any]) -> Callable[[], None]:
        """
        订阅条目和日志的变更通知

        Returns:
            取消订阅的函数
        """
        remove_store = self.store.add_listener(on_change)
        remove_log = self.event_log.add_listener(on_change)

        def unsubscribe() -> None:
            remove_store()
            remove_log()

        return unsubscribe

    # ==================== 设置 ====================

    def get_settings(self) -> WorkflowSettings:
        with self._settings_lock:
            return self._workflow_settings

    def update_settings(self, workflow_settings: WorkflowSettings) -> None:
        """整体替换阶段配置，下一个条目开始时生效"""
        with self._settings_lock:
            self._workflow_settings = workflow_settings
        self.event_log.info(log_messages.SETTINGS_UPDATED)

    def set_aspect_ratio(self, aspect_ratio: str) -> None:
        """
        修改生成阶段的宽高比

        Raises:
            ValueError: 不支持的宽高比
        """
        if aspect_ratio not in settings.generation_aspect_ratios:
            raise ValueError(
                f"不支持的宽高比: {aspect_ratio}，可选值: {settings.generation_aspect_ratios}"
            )
        with self._settings_lock:
            self._workflow_settings = self._workflow_settings.with_aspect_ratio(aspect_ratio)
        self.event_log.info(
            log_messages.format_message(log_messages.ASPECT_RATIO_CHANGED, aspect_ratio=aspect_ratio)
        )

    # ==================== 下载 ====================

    def completed_results(self) -> List[DownloadEntry]:
        """按存储顺序列出已完成条目的下载信息"""
        completed = self.store.filter_by_status(WorkflowStatus.COMPLETED)
        if not completed:
            self.event_log.warning(log_messages.DOWNLOAD_EMPTY)
            return []

        self.event_log.info(
            log_messages.format_message(log_messages.DOWNLOAD_START, count=len(completed))
        )
        return [
            DownloadEntry(
                item_id=item.id,
                file_name=item.file_name,
                download_name=build_download_name(index, item.source_image.stem),
                image_url=item.result_image
            )
            for index, item in enumerate(completed, start=1)
        ]
