"""
日志消息模板模块
统一管理所有业务日志消息模板，便于维护和国际化
"""

from typing import Dict, Any


class LogMessages:
    """日志消息模板类"""

    # ==================== 通用日志消息 ====================
    OPERATION_SUCCESS = "操作成功完成: {operation_name}"

    # ==================== 工作队列相关 ====================
    QUEUE_STARTED = "Queue processing started."
    QUEUE_FINISHED = "Queue processing finished or stopped."
    QUEUE_STOP_REQUESTED = "Processing stopped by user."
    QUEUE_ALREADY_RUNNING = "队列已在运行，忽略重复启动请求"

    ITEM_PROCESSING = "Processing Item: {file_name} ({item_id})"
    ITEM_FAILED = "Failed processing {file_name}: {error_message}"
    ITEM_INTERRUPTED = "Processing interrupted before the item could finish."

    ANALYSIS_START = "[Step 1] Sending to Vision API..."
    ANALYSIS_SUCCESS = "[Step 1] Analysis complete."
    GENERATION_START = "[Step 2] Sending to Image Gen API (Ratio: {aspect_ratio})..."
    GENERATION_SUCCESS = "[Step 2] Image generation successful."

    # ==================== 批处理命令相关 ====================
    FILES_ADDED = "Added {count} files to queue."
    ITEM_RETRY = "Retrying item {item_id}"
    ITEM_RETRY_REJECTED = "Retry rejected for item {item_id}: status is {status}"
    ITEM_REMOVED = "Removed item {item_id}"
    ITEM_REMOVE_REJECTED = "Cannot remove item {item_id} while it is {status}"
    FINISHED_CLEARED = "Cleared completed/error items."
    ALL_RESET = "All items reset."
    COMMAND_REJECTED_RUNNING = "{command} is not allowed while the queue is running."
    SETTINGS_UPDATED = "Settings updated."
    ASPECT_RATIO_CHANGED = "Aspect Ratio changed to {aspect_ratio}"
    DOWNLOAD_EMPTY = "No completed images to download."
    DOWNLOAD_START = "Starting batch download for {count} images..."
    LOG_RECORDS_DROPPED = "Event log capacity reached, dropped {count} oldest records."

    @classmethod
    def format_message(cls, message_template: str, **kwargs: Any) -> str:
        """格式化日志消息模板"""
        return message_template.format(**kwargs)

    @classmethod
    def get_structured_data(cls, **kwargs: Any) -> Dict[str, Any]:
        """获取结构化日志数据"""
        return kwargs


# 全局实例
log_messages = LogMessages()
