"""应用配置"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
from pathlib import Path
import os

# 确定项目根目录（支持本地开发和 Docker 部署）
# 本地开发: backend/magpie/config.py -> 项目根目录是 ../../
# Docker: /app/magpie/config.py -> 数据目录是 /app/data
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent  # backend 目录
_project_root = _backend_dir.parent  # 项目根目录

# 检测运行环境
if os.path.exists("/app/data"):
    # Docker 环境
    _data_dir = Path("/app/data")
    _env_file = Path("/app/.env") if Path("/app/.env").exists() else None
else:
    # 本地开发环境
    _data_dir = _project_root / "data"
    _env_file = _project_root / ".env" if (_project_root / ".env").exists() else None


class Settings(BaseSettings):
    """应用设置（进程级，运行时可编辑的配置放在 settings 表）"""
    # 应用
    APP_NAME: str = "Magpie"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # 数据库（默认使用项目根目录的 data 文件夹）
    DATA_DIR: str = str(_data_dir)
    DATABASE_URL: str = f"sqlite+aiosqlite:///{_data_dir}/magpie.db"

    # 日志
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # 为空时只输出到控制台

    # 管理员 JWT
    JWT_SECRET_KEY: str = "change-this-secret-key-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 天

    # API Token
    API_TOKEN_PREFIX: str = "mgp_"
    BOOTSTRAP_TOKEN: bool = True  # 首次启动且没有 token 时自动创建一个

    # 网页抓取
    SCRAPE_TIMEOUT: float = 10.0
    SCRAPE_MAX_REDIRECTS: int = 5
    SCRAPE_MAX_RESPONSE_SIZE: int = 5 * 1024 * 1024  # 5MB

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    class Config:
        env_file = str(_env_file) if _env_file else ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()


settings = get_settings()
