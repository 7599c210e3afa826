"""FastAPI 应用入口"""
import logging
import logging.config

from .config import settings

# 日志配置
# 未设置 LOG_FILE 时只输出到控制台
_handlers = {
    "console": {
        "class": "logging.StreamHandler",
        "formatter": "standard",
    }
}
if settings.LOG_FILE:
    _handlers["file"] = {
        "class": "logging.FileHandler",
        "formatter": "standard",
        "filename": settings.LOG_FILE,
        "mode": "a",
        "encoding": "utf-8"
    }

logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s %(levelname)s:%(name)s:%(message)s"}
    },
    "handlers": _handlers,
    "root": {
        "level": settings.LOG_LEVEL,
        "handlers": list(_handlers.keys())
    },
    "loggers": {
        "magpie": {"level": settings.LOG_LEVEL},
        "httpx": {"level": "WARNING"},
    }
})

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from .database import init_db, AsyncSessionLocal
from .errors import MagpieError
from .api import api_router
from .services.activity import ActivityLogger
from .services.categories import CategoryRegistry
from .services.settings_store import SettingsStore
from .services.tokens import TokenAuthority

logger = logging.getLogger(__name__)


async def bootstrap_data(session_factory=AsyncSessionLocal):
    """写入默认设置、默认分类，没有 token 时创建首个 token"""
    async with session_factory() as db:
        store = SettingsStore(db)
        await store.initialize()
        await CategoryRegistry(db).seed_defaults(store)
        await db.commit()

    if not settings.BOOTSTRAP_TOKEN:
        return None

    async with session_factory() as db:
        token = await TokenAuthority(db, ActivityLogger(db)).bootstrap()
    if token:
        # 明文只在这里出现一次
        logger.warning(f"🔑 已创建首个 API Token（请妥善保存，之后不会再显示）: {token}")
    return token


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时
    await init_db()
    await bootstrap_data()
    logger.info(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} 启动成功")
    yield
    # 关闭时
    logger.info("👋 应用关闭完成")


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="AI 驱动的链接收藏 API",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MagpieError)
async def magpie_error_handler(request: Request, exc: MagpieError):
    """业务异常统一转换为 {detail, code}"""
    content = {"detail": exc.message, "code": exc.code}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


# 注册路由
app.include_router(api_router, prefix="/api")


# 健康检查
@app.get("/health", tags=["系统"], summary="健康检查")
async def health_check():
    """检查服务运行状态"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


# 根路由
@app.get("/", tags=["系统"], summary="欢迎页")
async def root():
    """返回 API 基本信息"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/api/docs"
    }
