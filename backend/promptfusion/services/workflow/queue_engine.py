"""
队列引擎

单个 asyncio 驱动任务按插入顺序逐个处理 pending 条目：
pending -> analyzing -> generating -> completed，任一阶段失败则进入 error，
并继续处理下一条。取消是协作式的，只在条目之间检查。
"""

import asyncio
from typing import Callable, List, Optional

from promptfusion.core.ai.config import WorkflowSettings
from promptfusion.core.ai.exceptions import (
    MalformedStageResponseError,
    StageError,
    StageRequestError,
)
from promptfusion.core.config import settings
from promptfusion.core.log_messages import log_messages
from promptfusion.core.log_utils import get_logger
from promptfusion.models.work_item import WorkflowStatus, WorkItem
from promptfusion.services.workflow.event_log import EventLog
from promptfusion.services.workflow.exceptions import WorkflowInvariantError
from promptfusion.services.workflow.item_store import WorkItemStore
from promptfusion.services.workflow.stage_client import StageClient

logger = get_logger(__name__)

SettingsProvider = Callable[[], WorkflowSettings]


class QueueEngine:
    """
    工作队列驱动器

    运行标志在创建任务之前同步置位，因此并发的 start() 只会产生一个驱动循环。
    设置通过注入的 settings_provider 在每个条目开始时读取。
    """

    def __init__(
        self,
        store: WorkItemStore,
        event_log: EventLog,
        stage_client: StageClient,
        settings_provider: SettingsProvider,
        pacing_delay: Optional[float] = None
    ):
        self.store = store
        self.event_log = event_log
        self.stage_client = stage_client
        self._settings_provider = settings_provider
        self.pacing_delay = (
            pacing_delay if pacing_delay is not None else settings.workflow_pacing_delay
        )

        self._running = False
        self._stop_requested = False
        self._active_item_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def active_item_id(self) -> Optional[str]:
        """当前占用远程阶段的条目ID"""
        return self._active_item_id

    def start(self) -> bool:
        """
        启动驱动循环（必须在事件循环中调用）

        Returns:
            bool: 是否新建了驱动任务；已在运行时为 False
        """
        if self._running:
            if self._stop_requested:
                # 当前条目尚未结束，撤回停止请求即可继续处理
                self._stop_requested = False
                logger.info("撤回停止请求，队列继续运行")
            else:
                logger.debug(log_messages.QUEUE_ALREADY_RUNNING)
            return False

        self._running = True
        self._stop_requested = False
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    def request_stop(self) -> bool:
        """
        请求在当前条目结束后停止

        Returns:
            bool: 队列在运行且请求已登记时为 True
        """
        if not self._running:
            return False
        self._stop_requested = True
        return True

    async def wait(self) -> None:
        """等待当前驱动任务结束；驱动任务的致命错误在此处抛出"""
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def cancel(self) -> None:
        """硬取消驱动任务，正在处理的条目会被标记为 error"""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        # 任务在首次调度前被取消时 _run 的 finally 不会执行
        self._running = False
        self._stop_requested = False
        self._active_item_id = None

    async def _run(self) -> None:
        self.event_log.info(log_messages.QUEUE_STARTED)
        try:
            while True:
                if self._stop_requested:
                    break

                item = self.store.find_first(lambda i: i.status == WorkflowStatus.PENDING)
                if item is None:
                    break

                await self._process_item(item)
                await asyncio.sleep(self.pacing_delay)
        except WorkflowInvariantError as e:
            logger.error("队列引擎遇到不变量错误，驱动循环终止", exception=e)
            raise
        finally:
            self._running = False
            self._stop_requested = False
            self._active_item_id = None
            self.event_log.info(log_messages.QUEUE_FINISHED)

    async def _process_item(self, item: WorkItem) -> None:
        """处理单个条目的两个阶段；阶段失败只影响本条目"""
        workflow_settings = self._settings_provider()
        item_id = item.id
        progress: List[str] = list(item.progress_log)

        progress.append("Analyzing image...")
        claimed = self.store.update(
            item_id,
            expected_status=WorkflowStatus.PENDING,
            status=WorkflowStatus.ANALYZING,
            description="",
            progress_log=list(progress)
        )
        if not claimed:
            # 条目在选中后被删除或修改
            logger.debug(f"条目 {item_id} 已不再处于 pending，跳过")
            return

        self._active_item_id = item_id
        self.event_log.info(
            log_messages.format_message(
                log_messages.ITEM_PROCESSING, file_name=item.file_name, item_id=item_id
            )
        )

        try:
            self.event_log.info(log_messages.ANALYSIS_START)
            description = await self.stage_client.analyze(
                item.source_image,
                workflow_settings.analysis,
                on_partial=self._partial_writer(item_id)
            )

            progress.append("Analysis complete. Generating image...")
            self.store.update(
                item_id,
                status=WorkflowStatus.GENERATING,
                description=description,
                progress_log=list(progress)
            )
            self.event_log.success(log_messages.ANALYSIS_SUCCESS)

            self.event_log.info(
                log_messages.format_message(
                    log_messages.GENERATION_START,
                    aspect_ratio=workflow_settings.generation.aspect_ratio
                )
            )
            result_image = await self.stage_client.generate(
                item.source_image,
                description,
                workflow_settings.generation
            )
            if not result_image:
                raise MalformedStageResponseError("Generation returned no image reference.")

            progress.append("Completed.")
            self.store.update(
                item_id,
                status=WorkflowStatus.COMPLETED,
                result_image=result_image,
                progress_log=list(progress)
            )
            self.event_log.success(log_messages.GENERATION_SUCCESS)

        except WorkflowInvariantError:
            raise
        except asyncio.CancelledError:
            self._fail(item, progress, StageRequestError(log_messages.ITEM_INTERRUPTED))
            raise
        except StageError as e:
            self._fail(item, progress, e)
        except Exception as e:
            logger.error(f"阶段客户端抛出未预期的异常: {item_id}", exception=e)
            self._fail(item, progress, StageRequestError(str(e) or type(e).__name__))
        finally:
            self._active_item_id = None

    def _partial_writer(self, item_id: str) -> Callable[[str], None]:
        """只接受当前活动条目、且仍处于 analyzing 时的流式片段"""
        def write(text: str) -> None:
            if self._active_item_id != item_id:
                return
            self.store.update(
                item_id,
                expected_status=WorkflowStatus.ANALYZING,
                description=str(text)
            )

        return write

    def _fail(self, item: WorkItem, progress: List[str], error: StageError) -> None:
        """标记条目失败并记录一条 error 日志"""
        progress.append(f"Failed: {error.message}")
        self.store.update(
            item.id,
            status=WorkflowStatus.ERROR,
            result_image=None,
            error_message=error.message,
            error_type=error.code,
            progress_log=list(progress)
        )
        self.event_log.error(
            log_messages.format_message(
                log_messages.ITEM_FAILED,
                file_name=item.file_name,
                error_message=error.message
            ),
            details={
                "item_id": item.id,
                "file_name": item.file_name,
                "error_type": error.code,
                **(error.details or {})
            }
        )
