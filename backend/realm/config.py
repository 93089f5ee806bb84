"""
配置管理模块
"""
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# 加载环境变量
load_dotenv()

logger = logging.getLogger(__name__)

_DEFAULT_CATALOG = Path(__file__).resolve().parent / "data" / "catalog.json"


class Settings(BaseModel):
    """应用配置"""

    # 存储后端: memory 用于本地开发/测试, firestore 用于部署
    storage_backend: Literal["memory", "firestore"] = os.getenv("STORAGE_BACKEND", "memory")

    # Firebase 配置
    google_application_credentials: str = os.getenv(
        "GOOGLE_APPLICATION_CREDENTIALS",
        "./firebase-credentials.json",
    )
    firestore_database: str = os.getenv("FIRESTORE_DATABASE", "(default)")

    # 静态数据（怪物/物品/地牢）
    catalog_path: str = os.getenv("CATALOG_PATH", str(_DEFAULT_CATALOG))

    # 战斗平衡参数
    combat_energy_cost: int = int(os.getenv("COMBAT_ENERGY_COST", "1"))
    flee_success_chance: int = int(os.getenv("FLEE_SUCCESS_CHANCE", "50"))
    death_energy_percent: int = int(os.getenv("DEATH_ENERGY_PERCENT", "25"))
    xp_per_damage: int = int(os.getenv("XP_PER_DAMAGE", "4"))
    max_dungeon_rounds: int = int(os.getenv("MAX_DUNGEON_ROUNDS", "50"))

    # 医务室 / 地牢战利品仓库
    infirmary_minutes: int = int(os.getenv("INFIRMARY_MINUTES", "10"))
    dungeon_loot_expiry_days: int = int(os.getenv("DUNGEON_LOOT_EXPIRY_DAYS", "14"))

    # 日志
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # API 配置
    api_prefix: str = os.getenv("API_PREFIX", "/api")
    cors_origins: list = os.getenv("CORS_ORIGINS", "*").split(",")

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


# 全局配置实例
settings = Settings()


def validate_config() -> bool:
    """
    验证配置是否完整

    Returns:
        bool: 配置是否有效
    """
    if not Path(settings.catalog_path).exists():
        logger.warning("Catalog file not found: %s", settings.catalog_path)
        return False

    if settings.storage_backend == "firestore" and not Path(settings.google_application_credentials).exists():
        logger.warning("Firebase credentials not found: %s", settings.google_application_credentials)
        return False

    if not 0 <= settings.flee_success_chance <= 100:
        logger.warning("FLEE_SUCCESS_CHANCE out of range: %s", settings.flee_success_chance)
        return False

    if settings.max_dungeon_rounds < 1:
        logger.warning("MAX_DUNGEON_ROUNDS must be >= 1")
        return False

    return True
