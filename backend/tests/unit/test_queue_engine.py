"""
队列引擎单元测试
覆盖状态机、失败隔离、协作式停止、硬取消与流式描述写入
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from promptfusion.core.ai.exceptions import (
    MalformedStageResponseError,
    MissingCredentialError,
    StageRequestError,
)
from promptfusion.models.work_item import LogSeverity, WorkflowStatus
from promptfusion.services.workflow.batch_controller import BatchController
from promptfusion.services.workflow.exceptions import WorkflowInvariantError
from promptfusion.services.workflow.queue_engine import QueueEngine
from tests.utils.mock_utils import ScriptedStageClient, make_source_image


def _add(controller: BatchController, *names: str):
    return controller.add_files([make_source_image(name) for name in names])


def _messages(controller: BatchController):
    return [record.message for record in controller.logs()]


@pytest.mark.unit
@pytest.mark.workflow
class TestQueueEngine:
    """QueueEngine 单元测试类"""

    @pytest.mark.asyncio
    async def test_processes_all_items_in_order(self, controller, stage_client):
        """所有条目按插入顺序依次完成两个阶段"""
        items = _add(controller, "a.png", "b.png", "c.png")

        assert controller.start() is True
        await controller.wait_idle()

        final = controller.items()
        assert [item.id for item in final] == [item.id for item in items]
        assert all(item.status == WorkflowStatus.COMPLETED for item in final)
        assert final[0].result_image == "https://images.example.com/a.png"
        assert final[0].description == "description of a.png"
        assert final[0].error_message is None
        assert stage_client.calls == [
            ("analyze", "a.png"), ("generate", "a.png"),
            ("analyze", "b.png"), ("generate", "b.png"),
            ("analyze", "c.png"), ("generate", "c.png"),
        ]

        messages = _messages(controller)
        assert "Queue processing started." in messages
        assert messages[-1] == "Queue processing finished or stopped."
        assert f"Processing Item: a.png ({items[0].id})" in messages
        assert "[Step 2] Sending to Image Gen API (Ratio: 16:9)..." in messages
        assert controller.is_running is False

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_one_item(self, controller, stage_client):
        """第2个条目分析失败：其余条目照常完成，且只有一条错误日志"""
        stage_client.analyze_errors["b.png"] = StageRequestError("API Error 500: boom")
        items = _add(controller, "a.png", "b.png", "c.png")

        controller.start()
        await controller.wait_idle()

        statuses = [item.status for item in controller.items()]
        assert statuses == [
            WorkflowStatus.COMPLETED, WorkflowStatus.ERROR, WorkflowStatus.COMPLETED
        ]

        failed = controller.get_item(items[1].id)
        assert failed.error_message == "API Error 500: boom"
        assert failed.error_type == "StageRequestFailed"
        assert failed.result_image is None

        errors = [r for r in controller.logs() if r.severity == LogSeverity.ERROR]
        assert len(errors) == 1
        assert errors[0].details["item_id"] == items[1].id
        assert errors[0].message == "Failed processing b.png: API Error 500: boom"

    @pytest.mark.asyncio
    async def test_concurrent_starts_run_one_loop(self, controller, stage_client):
        _add(controller, "a.png", "b.png")

        assert controller.start() is True
        assert controller.start() is False
        assert controller.is_running is True
        await controller.wait_idle()

        assert _messages(controller).count("Queue processing started.") == 1
        assert [call for call in stage_client.calls if call[0] == "analyze"] == [
            ("analyze", "a.png"), ("analyze", "b.png")
        ]

    @pytest.mark.asyncio
    async def test_stop_finishes_current_item_only(self, controller, stage_client):
        """分析中请求停止：当前条目走完，后续条目保持 pending"""
        gate = asyncio.Event()
        stage_client.gate = gate
        _add(controller, "a.png", "b.png", "c.png")

        controller.start()
        await stage_client.analysis_started.wait()
        assert controller.stats().analyzing == 1

        assert controller.stop() is True
        gate.set()
        await controller.wait_idle()

        statuses = [item.status for item in controller.items()]
        assert statuses == [
            WorkflowStatus.COMPLETED, WorkflowStatus.PENDING, WorkflowStatus.PENDING
        ]
        stop_records = [r for r in controller.logs() if r.message == "Processing stopped by user."]
        assert len(stop_records) == 1
        assert stop_records[0].severity == LogSeverity.WARNING

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self, controller):
        assert controller.stop() is False
        assert controller.logs() == []

    @pytest.mark.asyncio
    async def test_partials_only_reach_active_item(self, controller, stage_client):
        """流式片段只写入当前条目，最终描述以返回值为准"""
        stage_client.partials = {"a.png": ["A sunny ", "beach"], "b.png": ["A dark ", "forest"]}
        items = _add(controller, "a.png", "b.png")

        observed = []

        def record():
            observed.append({item.id: item.description for item in controller.items()})

        controller.subscribe(record)
        controller.start()
        await controller.wait_idle()

        for snapshot in observed:
            assert snapshot.get(items[1].id) not in ("A sunny ", "A sunny beach")
            assert snapshot.get(items[0].id) not in ("A dark ", "A dark forest")
        assert any(s.get(items[0].id) == "A sunny " for s in observed)

        # 条目结束后迟到的片段被忽略
        stage_client.late_partials[0]("late text")
        assert controller.get_item(items[0].id).description == "A sunny beach"
        assert controller.get_item(items[1].id).description == "A dark forest"

    @pytest.mark.asyncio
    async def test_generation_error_keeps_description(self, controller, stage_client):
        stage_client.generate_errors["a.png"] = MalformedStageResponseError(
            "Invalid Response Structure: {}..."
        )
        items = _add(controller, "a.png")

        controller.start()
        await controller.wait_idle()

        item = controller.get_item(items[0].id)
        assert item.status == WorkflowStatus.ERROR
        assert item.error_type == "MalformedStageResponse"
        assert item.description == "description of a.png"

    @pytest.mark.asyncio
    async def test_missing_credential_marks_item_error(self, controller, stage_client):
        stage_client.analyze_errors["a.png"] = MissingCredentialError(
            "API Key for Analysis step is missing. Please check Settings."
        )
        items = _add(controller, "a.png", "b.png")

        controller.start()
        await controller.wait_idle()

        item = controller.get_item(items[0].id)
        assert item.status == WorkflowStatus.ERROR
        assert item.error_type == "MissingCredential"
        assert controller.get_item(items[1].id).status == WorkflowStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unexpected_exception_counts_as_request_failure(self, controller, stage_client):
        stage_client.analyze_errors["a.png"] = RuntimeError("socket closed")
        items = _add(controller, "a.png")

        controller.start()
        await controller.wait_idle()

        item = controller.get_item(items[0].id)
        assert item.status == WorkflowStatus.ERROR
        assert item.error_type == "StageRequestFailed"
        assert item.error_message == "socket closed"

    @pytest.mark.asyncio
    async def test_empty_generation_result_is_malformed(self, store, event_log, workflow_settings):
        client = ScriptedStageClient()
        client.generate = AsyncMock(return_value="")
        engine = QueueEngine(store, event_log, client, lambda: workflow_settings, pacing_delay=0)
        controller = BatchController(
            stage_client=client, workflow_settings=workflow_settings,
            store=store, event_log=event_log, pacing_delay=0
        )
        items = controller.add_files([make_source_image("a.png")])

        engine.start()
        await engine.wait()

        item = store.get(items[0].id)
        assert item.status == WorkflowStatus.ERROR
        assert item.error_type == "MalformedStageResponse"

    @pytest.mark.asyncio
    async def test_settings_read_for_every_item(self, store, event_log, stage_client, workflow_settings):
        """设置在每个条目开始时读取，而不是在循环开始时读取一次"""
        ratios = iter(["16:9", "1:1"])

        def provider():
            return workflow_settings.with_aspect_ratio(next(ratios))

        engine = QueueEngine(store, event_log, stage_client, provider, pacing_delay=0)
        controller = BatchController(
            stage_client=stage_client, workflow_settings=workflow_settings,
            store=store, event_log=event_log, pacing_delay=0
        )
        _add(controller, "a.png", "b.png")

        engine.start()
        await engine.wait()

        assert [c.aspect_ratio for c in stage_client.generation_configs] == ["16:9", "1:1"]

    @pytest.mark.asyncio
    async def test_shutdown_marks_in_flight_item_error(self, controller, stage_client):
        """硬取消时，处理中的条目不会停留在 analyzing"""
        stage_client.gate = asyncio.Event()
        items = _add(controller, "a.png", "b.png")

        controller.start()
        await stage_client.analysis_started.wait()
        await controller.shutdown()

        first = controller.get_item(items[0].id)
        assert first.status == WorkflowStatus.ERROR
        assert first.error_type == "StageRequestFailed"
        assert controller.get_item(items[1].id).status == WorkflowStatus.PENDING
        assert controller.is_running is False
        stats = controller.stats()
        assert stats.analyzing == 0 and stats.generating == 0

    @pytest.mark.asyncio
    async def test_invariant_error_stops_the_loop(self, controller, stage_client):
        stage_client.analyze_errors["a.png"] = WorkflowInvariantError("corrupted store")
        _add(controller, "a.png", "b.png")

        controller.start()
        with pytest.raises(WorkflowInvariantError):
            await controller.wait_idle()
        assert controller.is_running is False

    @pytest.mark.asyncio
    async def test_restart_after_stop_processes_remaining(self, controller, stage_client):
        gate = asyncio.Event()
        stage_client.gate = gate
        _add(controller, "a.png", "b.png")

        controller.start()
        await stage_client.analysis_started.wait()
        controller.stop()
        gate.set()
        await controller.wait_idle()
        assert controller.stats().pending == 1

        assert controller.start() is True
        await controller.wait_idle()
        assert controller.stats().completed == 2

    @pytest.mark.asyncio
    async def test_start_during_pending_stop_withdraws_it(self, controller, stage_client):
        gate = asyncio.Event()
        stage_client.gate = gate
        _add(controller, "a.png", "b.png")

        controller.start()
        await stage_client.analysis_started.wait()
        controller.stop()
        assert controller.start() is False
        gate.set()
        await controller.wait_idle()

        assert controller.stats().completed == 2

    @pytest.mark.asyncio
    async def test_pacing_delay_between_items(self, store, event_log, stage_client, workflow_settings, monkeypatch):
        delays = []
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds, *args, **kwargs):
            delays.append(seconds)
            await real_sleep(0)

        monkeypatch.setattr("promptfusion.services.workflow.queue_engine.asyncio.sleep", fake_sleep)
        engine = QueueEngine(store, event_log, stage_client, lambda: workflow_settings, pacing_delay=0.5)
        controller = BatchController(
            stage_client=stage_client, workflow_settings=workflow_settings,
            store=store, event_log=event_log, pacing_delay=0
        )
        _add(controller, "a.png", "b.png")

        engine.start()
        await engine.wait()

        assert delays == [0.5, 0.5]
