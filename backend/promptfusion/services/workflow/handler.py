"""
批处理工作流业务处理器
把控制器命令的结果映射为HTTP语义：被拒绝 409，未知条目 404，非法输入 400
"""

from typing import Any, Dict, List

from fastapi import HTTPException, UploadFile, status

from promptfusion.core.config import settings
from promptfusion.core.log_utils import get_logger
from promptfusion.schemas.workflow import WorkflowSettingsRequest
from promptfusion.core.ai.factory import AIProviderFactory
from promptfusion.core.ai.models import ModelCapability
from promptfusion.core.ai.registry import register_all_providers
from promptfusion.models.work_item import SourceImage
from promptfusion.services.workflow.batch_controller import BatchController
from promptfusion.utils.file_utils import build_source_image

logger = get_logger(__name__)


class WorkflowHandler:
    """批处理工作流业务处理器"""

    def __init__(self, controller: BatchController):
        self.controller = controller

    async def handle_add_files(self, files: List[UploadFile]) -> List[Dict[str, Any]]:
        """读取上传文件并加入队列；任一文件无效时整批拒绝"""
        if not files:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="未提供文件")

        sources: List[SourceImage] = []
        for upload in files:
            data = await upload.read()
            if len(data) > settings.workflow_max_upload_size:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"文件过大: {upload.filename}"
                )
            try:
                sources.append(build_source_image(upload.filename or "image", data))
            except ValueError as e:
                logger.warning(f"拒绝上传文件: {e}", file_name=upload.filename)
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        items = self.controller.add_files(sources)
        logger.info("文件已加入队列", count=len(items))
        return [item.to_dict() for item in items]

    def handle_start(self) -> bool:
        """启动队列，返回是否新建了运行"""
        return self.controller.start()

    def handle_stop(self) -> None:
        if not self.controller.stop():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="队列未在运行")

    def handle_retry(self, item_id: str) -> Dict[str, Any]:
        self._require_item(item_id)
        if not self.controller.retry(item_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="只有失败的条目可以重试"
            )
        return self.controller.get_item(item_id).to_dict()

    def handle_remove(self, item_id: str) -> None:
        self._require_item(item_id)
        if not self.controller.remove(item_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="条目正在处理中，无法删除"
            )

    def handle_reset(self) -> None:
        if not self.controller.reset_all():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="队列运行中，无法重置")

    def handle_clear_finished(self) -> None:
        if not self.controller.clear_finished():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="队列运行中，无法清理")

    def handle_get_settings(self) -> Dict[str, Any]:
        """返回当前设置，凭证已遮蔽"""
        return self.controller.get_settings().to_dict(mask_credentials=True)

    def handle_update_settings(self, request: WorkflowSettingsRequest) -> Dict[str, Any]:
        """校验Provider是否已注册后整体替换设置"""
        register_all_providers()
        checks = (
            (ModelCapability.VISION, request.analysis.provider),
            (ModelCapability.IMAGE_GEN, request.generation.provider),
        )
        for capability, provider_name in checks:
            if not AIProviderFactory.is_registered(capability, provider_name):
                available = AIProviderFactory.get_available_providers(capability)
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"未注册的Provider: {capability.value}/{provider_name}，可用: {available}"
                )

        new_settings = request.to_settings(self.controller.get_settings())
        self.controller.update_settings(new_settings)
        logger.info(
            "工作流设置已更新",
            analysis_provider=new_settings.analysis.provider,
            generation_provider=new_settings.generation.provider
        )
        return new_settings.to_dict(mask_credentials=True)

    def handle_set_aspect_ratio(self, aspect_ratio: str) -> Dict[str, Any]:
        try:
            self.controller.set_aspect_ratio(aspect_ratio)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        return self.controller.get_settings().to_dict(mask_credentials=True)

    def _require_item(self, item_id: str) -> None:
        if self.controller.get_item(item_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="条目不存在")
