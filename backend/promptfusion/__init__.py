"""
PromptFusion 工作流后端

批量图片 → 视觉分析（流式描述）→ 图片生成 的单工作者队列引擎
"""

__version__ = "1.0.0"
