"""API 路由"""
from fastapi import APIRouter
from .v1 import auth, links, categories, settings, tokens, activity, stats

api_router = APIRouter()

# 注册路由
api_router.include_router(auth.router, prefix="/auth", tags=["认证"])
api_router.include_router(links.router, prefix="/links", tags=["链接"])
api_router.include_router(categories.router, prefix="/categories", tags=["分类"])
api_router.include_router(settings.router, prefix="/settings", tags=["设置"])
api_router.include_router(tokens.router, prefix="/tokens", tags=["Token"])
api_router.include_router(activity.router, prefix="/activity", tags=["操作日志"])
api_router.include_router(stats.router, tags=["统计"])
