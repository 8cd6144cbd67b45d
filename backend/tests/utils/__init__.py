"""
测试工具包
提供统一的测试工具和辅助函数
"""

from .mock_utils import MockBuilder, ScriptedStageClient, make_image_bytes, make_source_image

__all__ = [
    'MockBuilder',
    'ScriptedStageClient',
    'make_image_bytes',
    'make_source_image'
]
