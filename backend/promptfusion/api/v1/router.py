"""
API路由聚合模块
将所有v1版本的路由统一注册

路由管理规范：
1. 所有路由文件内部使用相对路径（不以/开头）
2. 所有前缀统一在router.py中管理
"""

from fastapi import APIRouter

from promptfusion.api.v1.endpoints import workflow

api_router = APIRouter()

# ==================== 批处理工作流路由 ====================
api_router.include_router(workflow.router, prefix="/workflow", tags=["批处理工作流"])
