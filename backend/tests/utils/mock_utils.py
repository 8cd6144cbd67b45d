"""
测试专用的 mock 工具和辅助函数
提供假的阶段客户端、测试图片和常用的 mock 对象，供所有测试使用
"""

import asyncio
import io
from typing import Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

from PIL import Image

from promptfusion.core.ai.config import StageConfig
from promptfusion.core.ai.exceptions import StageRequestError
from promptfusion.models.work_item import SourceImage
from promptfusion.services.workflow.stage_client import StageClient


def make_image_bytes(image_format: str = "PNG", size: Tuple[int, int] = (4, 4)) -> bytes:
    """用PIL生成一张小图片"""
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 120, 40)).save(buffer, format=image_format)
    return buffer.getvalue()


def make_source_image(file_name: str = "photo.png") -> SourceImage:
    return SourceImage(file_name=file_name, content_type="image/png", data=make_image_bytes())


class ScriptedStageClient(StageClient):
    """
    按文件名编排行为的假阶段客户端

    - analyze_errors / generate_errors: 文件名 -> 要抛出的异常
    - partials: 文件名 -> 分析时依次推送的流式片段
    - gate: 设置后分析阶段会等待该事件，用于在处理中途发出命令
    """

    def __init__(
        self,
        analyze_errors: Optional[Dict[str, Exception]] = None,
        generate_errors: Optional[Dict[str, Exception]] = None,
        partials: Optional[Dict[str, List[str]]] = None,
        gate: Optional[asyncio.Event] = None
    ):
        self.analyze_errors = analyze_errors or {}
        self.generate_errors = generate_errors or {}
        self.partials = partials or {}
        self.gate = gate
        self.analysis_started = asyncio.Event()
        self.calls: List[Tuple[str, str]] = []
        self.analysis_configs: List[StageConfig] = []
        self.generation_configs: List[StageConfig] = []
        self.late_partials: List[Callable[[str], None]] = []

    async def analyze(self, image, config, on_partial=None) -> str:
        self.calls.append(("analyze", image.file_name))
        self.analysis_configs.append(config)
        self.analysis_started.set()
        if on_partial is not None:
            self.late_partials.append(on_partial)

        text = ""
        for piece in self.partials.get(image.file_name, []):
            text += piece
            if on_partial is not None:
                on_partial(text)
            await asyncio.sleep(0)

        if self.gate is not None:
            await self.gate.wait()

        error = self.analyze_errors.get(image.file_name)
        if error is not None:
            raise error
        return text or f"description of {image.file_name}"

    async def generate(self, image, description, config) -> str:
        self.calls.append(("generate", image.file_name))
        self.generation_configs.append(config)
        error = self.generate_errors.get(image.file_name)
        if error is not None:
            raise error
        return f"https://images.example.com/{image.stem}.png"


class MockBuilder:
    """Mock对象构建器 - 用于创建常用的mock对象"""

    @staticmethod
    def create_failing_stage_client(message: str = "API Error 500: Internal Server Error"):
        """创建每次分析都失败的阶段客户端"""
        mock = MagicMock(spec=StageClient)
        mock.analyze = AsyncMock(side_effect=StageRequestError(message))
        mock.generate = AsyncMock(return_value="https://images.example.com/unused.png")
        return mock

    @staticmethod
    def create_openai_stream(chunks: List[Optional[str]]):
        """创建模拟的 OpenAI 流式响应（异步迭代器）"""
        async def stream():
            for content in chunks:
                chunk = MagicMock()
                chunk.choices = [MagicMock()]
                chunk.choices[0].delta.content = content
                yield chunk

        return stream()

    @staticmethod
    def create_genai_stream(texts: List[Optional[str]]):
        """创建模拟的 GenAI 流式响应（异步迭代器）"""
        async def stream():
            for text in texts:
                chunk = MagicMock()
                chunk.text = text
                yield chunk

        return stream()
