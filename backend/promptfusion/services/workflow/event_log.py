"""
系统事件日志

只追加的日志序列，由引擎和控制器写入、观察者读取。每条记录同时
镜像到进程日志（UnifiedLogger）。
"""

import threading
from typing import Any, Callable, List, Optional

from promptfusion.core.log_messages import log_messages
from promptfusion.core.log_utils import get_logger
from promptfusion.models.work_item import LogSeverity, SystemLog, utc_now
from promptfusion.utils.id_utils import generate_uuid

logger = get_logger(__name__)

ChangeListener = Callable[[], None]


class EventLog:
    """线程安全的只追加事件日志"""

    def __init__(self, capacity: int = 0):
        """
        Args:
            capacity: 最大记录数，0 表示不限制，否则至少为2。超出时丢弃最旧的记录，
                      并在末尾追加一条说明累计丢弃数量的 warning 记录

        Raises:
            ValueError: capacity 为负数或等于1
        """
        if capacity < 0 or capacity == 1:
            raise ValueError("capacity 必须为0（不限制）或不小于2")
        self.capacity = capacity
        self._lock = threading.RLock()
        self._records: List[SystemLog] = []
        self._listeners: List[ChangeListener] = []
        self._dropped_total = 0
        self._notice_id: Optional[str] = None

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """注册变更监听器，返回取消注册的函数"""
        with self._lock:
            self._listeners.append(listener)

        def remove():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.error("日志变更监听器执行失败", exception=e)

    @property
    def dropped_count(self) -> int:
        """因容量限制累计丢弃的记录数"""
        with self._lock:
            return self._dropped_total

    def append(
        self,
        severity: LogSeverity,
        message: str,
        details: Optional[Any] = None
    ) -> SystemLog:
        """
        追加一条记录

        Args:
            severity: 日志级别
            message: 消息
            details: 可选的结构化详情

        Returns:
            SystemLog: 新记录
        """
        severity = LogSeverity(severity)
        with self._lock:
            # 在锁内生成时间戳，保证记录顺序与时间顺序一致
            record = SystemLog(
                id=generate_uuid(),
                timestamp=utc_now(),
                severity=severity,
                message=message,
                details=details
            )
            self._records.append(record)
            notice = self._enforce_capacity()

        self._mirror(record)
        if notice is not None:
            self._mirror(notice)
        self._notify()
        return record

    def _enforce_capacity(self) -> Optional[SystemLog]:
        """
        超出容量时丢弃最旧记录，并在末尾追加新的丢弃说明（调用方持有锁）

        旧的丢弃说明被新说明替换，不计入丢弃数量。

        Returns:
            Optional[SystemLog]: 新的丢弃说明，未超出容量时为 None
        """
        if not self.capacity or len(self._records) <= self.capacity:
            return None

        if self._notice_id is not None:
            self._records = [r for r in self._records if r.id != self._notice_id]
            self._notice_id = None

        # 为丢弃说明预留一个位置
        overflow = len(self._records) - (self.capacity - 1)
        if overflow > 0:
            del self._records[:overflow]
            self._dropped_total += overflow

        notice = SystemLog(
            id=generate_uuid(),
            timestamp=utc_now(),
            severity=LogSeverity.WARNING,
            message=log_messages.format_message(
                log_messages.LOG_RECORDS_DROPPED, count=self._dropped_total
            ),
            details={"dropped": self._dropped_total}
        )
        self._records.append(notice)
        self._notice_id = notice.id
        return notice

    @staticmethod
    def _mirror(record: SystemLog) -> None:
        """镜像到进程日志"""
        if record.severity == LogSeverity.ERROR:
            logger.error(record.message, log_record_id=record.id)
        elif record.severity == LogSeverity.WARNING:
            logger.warning(record.message, log_record_id=record.id)
        else:
            logger.info(record.message, log_record_id=record.id, severity=record.severity.value)

    def info(self, message: str, details: Optional[Any] = None) -> SystemLog:
        return self.append(LogSeverity.INFO, message, details)

    def success(self, message: str, details: Optional[Any] = None) -> SystemLog:
        return self.append(LogSeverity.SUCCESS, message, details)

    def warning(self, message: str, details: Optional[Any] = None) -> SystemLog:
        return self.append(LogSeverity.WARNING, message, details)

    def error(self, message: str, details: Optional[Any] = None) -> SystemLog:
        return self.append(LogSeverity.ERROR, message, details)

    def all(self) -> List[SystemLog]:
        """按追加顺序返回所有记录"""
        with self._lock:
            return list(self._records)

    def has_errors(self) -> bool:
        """是否存在 error 级别的记录"""
        with self._lock:
            return any(r.severity == LogSeverity.ERROR for r in self._records)

    def clear(self) -> None:
        """清空日志，同时重置丢弃计数"""
        with self._lock:
            self._records.clear()
            self._dropped_total = 0
            self._notice_id = None
        self._notify()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
