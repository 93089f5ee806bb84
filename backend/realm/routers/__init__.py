"""
API 路由包
"""
from .combat import router as combat_router
from .dungeons import router as dungeons_router

__all__ = ["combat_router", "dungeons_router"]
