"""
测试配置和fixtures
为所有测试提供共享的配置和fixtures

所有测试都在进程内运行，不依赖外部服务：远程阶段由假客户端替代，
HTTP接口通过 FastAPI TestClient 调用。
"""

import pytest

from promptfusion.core.ai.config import StageConfig, WorkflowSettings
from promptfusion.services.workflow.batch_controller import BatchController
from promptfusion.services.workflow.event_log import EventLog
from promptfusion.services.workflow.item_store import WorkItemStore
from tests.utils.mock_utils import ScriptedStageClient, make_image_bytes, make_source_image


@pytest.fixture
def png_bytes() -> bytes:
    """一张有效的PNG图片"""
    return make_image_bytes()


@pytest.fixture
def source_factory():
    """按文件名创建源图片"""
    return make_source_image


@pytest.fixture
def workflow_settings() -> WorkflowSettings:
    """带测试密钥的阶段设置"""
    return WorkflowSettings(
        analysis=StageConfig(
            provider="genai",
            model="gemini-3-flash-preview",
            api_key="test-analysis-key",
            system_instruction="Describe the image."
        ),
        generation=StageConfig(
            provider="openai_compatible",
            model="gemini-3-pro-image-preview",
            api_key="test-generation-key",
            system_instruction="Generate an image.",
            aspect_ratio="16:9"
        ),
    )


@pytest.fixture
def stage_client() -> ScriptedStageClient:
    return ScriptedStageClient()


@pytest.fixture
def store() -> WorkItemStore:
    return WorkItemStore()


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def controller(stage_client, workflow_settings, store, event_log) -> BatchController:
    """使用假阶段客户端、无间隔的控制器"""
    return BatchController(
        stage_client=stage_client,
        workflow_settings=workflow_settings,
        store=store,
        event_log=event_log,
        pacing_delay=0
    )


# 测试标记配置
def pytest_configure(config):
    """配置pytest标记"""
    config.addinivalue_line("markers", "unit: 单元测试")
    config.addinivalue_line("markers", "integration: 集成测试")
    config.addinivalue_line("markers", "logging: 日志相关测试")
    config.addinivalue_line("markers", "workflow: 工作队列相关测试")
    config.addinivalue_line("markers", "providers: AI Provider相关测试")
    config.addinivalue_line("markers", "api: HTTP接口测试")
