"""
工作条目存储

按插入顺序保存工作条目，支持按ID原地局部更新。所有读写都经过同一把
可重入锁，引擎写入时其它线程（如渲染层）读取到的总是完整的值。
"""

import copy
import threading
from dataclasses import fields, replace
from typing import Callable, Dict, Iterable, List, Optional

from promptfusion.core.log_utils import get_logger
from promptfusion.models.work_item import WorkItem, WorkflowStatus, utc_now
from .exceptions import WorkflowInvariantError

logger = get_logger(__name__)

ItemPredicate = Callable[[WorkItem], bool]
ChangeListener = Callable[[], None]

_UPDATABLE_FIELDS = frozenset(f.name for f in fields(WorkItem)) - {"id", "source_image", "created_at"}


class WorkItemStore:
    """线程安全的有序工作条目存储"""

    def __init__(self):
        self._lock = threading.RLock()
        # dict 保持插入顺序，更新不会改变位置
        self._items: Dict[str, WorkItem] = {}
        self._listeners: List[ChangeListener] = []

    # ==================== 监听 ====================

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
                logger.error("条目变更监听器执行失败", exception=e)

    # ==================== 写操作 ====================

    def append(self, items: Iterable[WorkItem]) -> None:
        """按顺序追加条目；ID重复视为编程错误"""
        items = list(items)
        with self._lock:
            for item in items:
                if item.id in self._items:
                    raise WorkflowInvariantError(f"重复的条目ID: {item.id}")
            for item in items:
                self._items[item.id] = item
        if items:
            self._notify()

    def update(
        self,
        item_id: str,
        expected_status: Optional[WorkflowStatus] = None,
        **changes
    ) -> bool:
        """
        原地合并更新指定条目

        Args:
            item_id: 条目ID，不存在时不做任何操作
            expected_status: 给定时仅当条目处于该状态才更新（比较并设置）
            **changes: 要修改的字段

        Returns:
            bool: 条目是否存在并已更新

        Raises:
            WorkflowInvariantError: 字段名未知或试图修改不可变字段
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise WorkflowInvariantError(f"不允许更新的字段: {sorted(unknown)}")

        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            if expected_status is not None and item.status != expected_status:
                return False
            changes.setdefault("updated_at", utc_now())
            updated = replace(item, **changes)
            if not updated.check_consistency():
                raise WorkflowInvariantError(
                    f"条目 {item_id} 状态与结果字段不一致: status={updated.status.value}"
                )
            # 整体替换，键位置不变
            self._items[item_id] = updated
        self._notify()
        return True

    def remove(self, item_id: str) -> Optional[WorkItem]:
        """删除条目，不存在时返回None"""
        with self._lock:
            removed = self._items.pop(item_id, None)
        if removed is not None:
            self._notify()
        return removed

    def remove_where(self, predicate: ItemPredicate) -> int:
        """删除所有满足条件的条目，返回删除数量"""
        with self._lock:
            doomed = [item_id for item_id, item in self._items.items() if predicate(item)]
            for item_id in doomed:
                del self._items[item_id]
        if doomed:
            self._notify()
        return len(doomed)

    def clear(self) -> int:
        """清空所有条目"""
        with self._lock:
            count = len(self._items)
            self._items.clear()
        if count:
            self._notify()
        return count

    # ==================== 读操作 ====================

    def get(self, item_id: str) -> Optional[WorkItem]:
        """获取条目快照"""
        with self._lock:
            item = self._items.get(item_id)
            return copy.deepcopy(item) if item is not None else None

    def all(self) -> List[WorkItem]:
        """按插入顺序返回所有条目的快照"""
        with self._lock:
            return [copy.deepcopy(item) for item in self._items.values()]

    def find_first(self, predicate: ItemPredicate) -> Optional[WorkItem]:
        """按插入顺序返回第一个满足条件的条目快照"""
        with self._lock:
            for item in self._items.values():
                if predicate(item):
                    return copy.deepcopy(item)
        return None

    def filter_by_status(self, *statuses: WorkflowStatus) -> List[WorkItem]:
        """按状态过滤，保持插入顺序"""
        wanted = set(statuses)
        with self._lock:
            return [copy.deepcopy(item) for item in self._items.values() if item.status in wanted]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        with self._lock:
            return item_id in self._items
