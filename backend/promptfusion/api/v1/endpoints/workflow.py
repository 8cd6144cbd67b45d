"""
批处理工作流API端点
上传图片、控制队列、查看进度与日志、管理阶段设置
采用薄路由、重服务的架构设计
"""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from promptfusion.schemas.common import StandardResponse
from promptfusion.schemas.workflow import AspectRatioRequest, WorkflowSettingsRequest
from promptfusion.services.workflow import BatchController, get_batch_controller
from promptfusion.services.workflow.handler import WorkflowHandler
from promptfusion.core.log_utils import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["批处理工作流"])


def get_workflow_handler(
    controller: BatchController = Depends(get_batch_controller)
) -> WorkflowHandler:
    return WorkflowHandler(controller)


# ==================== 队列命令 ====================

@router.post(
    "/files",
    response_model=StandardResponse,
    summary="添加图片到队列",
    description="上传一张或多张图片，每张图片创建一个 pending 条目"
)
async def add_files(
    files: List[UploadFile] = File(..., description="要处理的图片文件列表"),
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    items = await handler.handle_add_files(files)
    return StandardResponse(
        status="success",
        message=f"已添加 {len(items)} 个文件",
        data={"items": items}
    )


@router.post(
    "/start",
    response_model=StandardResponse,
    summary="启动队列",
    description="开始按顺序处理 pending 条目；已在运行时为空操作"
)
async def start_queue(
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    started = handler.handle_start()
    return StandardResponse(
        status="success",
        message="队列已启动" if started else "队列已在运行",
        data={"started": started, "is_running": handler.controller.is_running}
    )


@router.post(
    "/stop",
    response_model=StandardResponse,
    summary="停止队列",
    description="当前条目处理完成后停止，后续条目保持 pending"
)
async def stop_queue(
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    handler.handle_stop()
    return StandardResponse(status="success", message="已请求停止队列")


@router.post(
    "/items/{item_id}/retry",
    response_model=StandardResponse,
    summary="重试失败条目"
)
async def retry_item(
    item_id: str,
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    item = handler.handle_retry(item_id)
    return StandardResponse(status="success", message="条目已重新排队", data=item)


@router.delete(
    "/items/{item_id}",
    response_model=StandardResponse,
    summary="删除条目",
    description="处理中的条目不允许删除"
)
async def remove_item(
    item_id: str,
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    handler.handle_remove(item_id)
    return StandardResponse(status="success", message="条目已删除", data={"item_id": item_id})


@router.post(
    "/reset",
    response_model=StandardResponse,
    summary="重置全部条目",
    description="删除所有条目，队列运行中时拒绝"
)
async def reset_all(
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    handler.handle_reset()
    return StandardResponse(status="success", message="所有条目已重置")


@router.post(
    "/clear-finished",
    response_model=StandardResponse,
    summary="清理已结束条目",
    description="删除 completed 和 error 条目，队列运行中时拒绝"
)
async def clear_finished(
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    handler.handle_clear_finished()
    return StandardResponse(status="success", message="已清理完成和失败的条目")


# ==================== 查询 ====================

@router.get(
    "/items",
    response_model=StandardResponse,
    summary="获取条目列表",
    description="按加入顺序返回所有条目"
)
async def list_items(
    controller: BatchController = Depends(get_batch_controller)
) -> StandardResponse:
    items = [item.to_dict() for item in controller.items()]
    return StandardResponse(
        status="success",
        message="获取条目列表成功",
        data={"items": items, "total": len(items)}
    )


@router.get(
    "/stats",
    response_model=StandardResponse,
    summary="获取队列统计"
)
async def get_stats(
    controller: BatchController = Depends(get_batch_controller)
) -> StandardResponse:
    data = controller.stats().to_dict()
    data["is_running"] = controller.is_running
    return StandardResponse(status="success", message="获取统计成功", data=data)


@router.get(
    "/logs",
    response_model=StandardResponse,
    summary="获取系统日志"
)
async def get_logs(
    controller: BatchController = Depends(get_batch_controller)
) -> StandardResponse:
    logs = controller.logs()
    return StandardResponse(
        status="success",
        message="获取系统日志成功",
        data={
            "logs": [record.to_dict() for record in logs],
            "has_errors": controller.event_log.has_errors()
        }
    )


@router.delete(
    "/logs",
    response_model=StandardResponse,
    summary="清空系统日志"
)
async def clear_logs(
    controller: BatchController = Depends(get_batch_controller)
) -> StandardResponse:
    controller.clear_logs()
    return StandardResponse(status="success", message="系统日志已清空")


# ==================== 设置 ====================

@router.get(
    "/settings",
    response_model=StandardResponse,
    summary="获取阶段设置",
    description="API Key 以遮蔽形式返回"
)
async def get_settings(
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    return StandardResponse(
        status="success",
        message="获取设置成功",
        data=handler.handle_get_settings()
    )


@router.put(
    "/settings",
    response_model=StandardResponse,
    summary="更新阶段设置",
    description="整体替换分析与生成阶段的配置，下一个条目开始时生效"
)
async def update_settings(
    request: WorkflowSettingsRequest,
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    return StandardResponse(
        status="success",
        message="设置已更新",
        data=handler.handle_update_settings(request)
    )


@router.put(
    "/settings/aspect-ratio",
    response_model=StandardResponse,
    summary="修改生成比例"
)
async def set_aspect_ratio(
    request: AspectRatioRequest,
    handler: WorkflowHandler = Depends(get_workflow_handler)
) -> StandardResponse:
    return StandardResponse(
        status="success",
        message=f"宽高比已修改为 {request.aspect_ratio}",
        data=handler.handle_set_aspect_ratio(request.aspect_ratio)
    )


# ==================== 下载 ====================

@router.get(
    "/downloads",
    response_model=StandardResponse,
    summary="获取批量下载清单",
    description="按条目顺序列出已完成的图片，文件名为 batch-{序号}-{原文件名}.png"
)
async def list_downloads(
    controller: BatchController = Depends(get_batch_controller)
) -> StandardResponse:
    entries = [entry.to_dict() for entry in controller.completed_results()]
    return StandardResponse(
        status="success",
        message="获取下载清单成功" if entries else "没有已完成的图片",
        data={"downloads": entries, "total": len(entries)}
    )
