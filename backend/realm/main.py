"""
FastAPI 应用入口
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from realm.config import settings, validate_config
from realm.dependencies import get_catalog
from realm.routers import combat_router, dungeons_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# 创建 FastAPI 应用
app = FastAPI(
    title="Realm Combat API",
    description="Encounter sessions and dungeon runs",
    version="0.1.0",
)

# 配置 CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(combat_router, prefix=settings.api_prefix)
app.include_router(dungeons_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def startup_event():
    """应用启动时的初始化"""
    if validate_config():
        logger.info("Configuration OK (storage=%s)", settings.storage_backend)
    else:
        logger.warning("Configuration check failed, see warnings above")
    get_catalog()


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": "Realm Combat API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """健康检查"""
    return {"status": "healthy", "storage": settings.storage_backend}
