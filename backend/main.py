"""
PromptFusion Canvas - FastAPI主应用
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promptfusion.core.config import settings
from promptfusion.api.v1.router import api_router
from promptfusion.core.log_utils import setup_logging, get_logger
from promptfusion.core.mlflow_tracker import ensure_mlflow_initialized
from promptfusion.core.ai.registry import register_all_providers
from promptfusion.services.workflow import shutdown_batch_controller

# 初始化日志系统
setup_logging()

# 在导入其他模块之前完成日志设置
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """应用生命周期管理"""
    # 启动时执行
    logger.info("应用启动中...")

    register_all_providers()

    # 初始化MLflow追踪
    mlflow_enabled = ensure_mlflow_initialized()
    if mlflow_enabled:
        logger.info("MLflow追踪已启用 - 将自动捕获AI调用的request/response内容")
    else:
        logger.warning("MLflow追踪未启用，AI调用将不会被追踪")

    if not settings.api_key:
        logger.warning("未配置环境变量 API_KEY，需要在设置中为每个阶段提供API Key")

    logger.info("应用启动完成")

    yield

    # 关闭时执行：硬取消队列，处理中的条目标记为 error
    await shutdown_batch_controller()
    logger.info("应用关闭")


# 创建FastAPI应用实例
app = FastAPI(
    title=settings.project_name,
    version=settings.app_version,
    description="图片分析 + 图片生成两阶段批处理工作流",
    openapi_url=f"{settings.api_v1_str}/openapi.json",
    docs_url=f"{settings.api_v1_str}/docs",
    redoc_url=f"{settings.api_v1_str}/redoc",
    lifespan=lifespan
)

# 添加CORS中间件 - 确保在所有路由之前添加
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# 注册API路由
app.include_router(api_router, prefix=settings.api_v1_str)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求参数校验失败统一返回400"""
    logger.warning("请求参数校验失败", path=request.url.path, error_count=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "message": "请求参数无效",
            "data": {
                "errors": [
                    {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
                    for error in exc.errors()
                ]
            }
        }
    )


@app.get("/")
def read_root():
    """根路径"""
    return {
        "message": settings.app_name,
        "version": settings.app_version,
        "docs": f"{settings.api_v1_str}/docs"
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
        log_level=settings.log_level.lower()
    )
