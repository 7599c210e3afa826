"""数据库配置"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import event
from .config import settings
import os


class Base(DeclarativeBase):
    """模型基类"""
    pass


def set_sqlite_pragma(dbapi_connection, connection_record):
    """SQLite 性能优化"""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA cache_size=-64000")
    cursor.execute("PRAGMA temp_store=MEMORY")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """创建异步引擎，SQLite 文件库会挂上 pragma 优化"""
    engine = create_async_engine(url, echo=echo, future=True)
    if url.startswith("sqlite") and ":memory:" not in url:
        event.listen(engine.sync_engine, "connect", set_sqlite_pragma)
    return engine


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """异步会话工厂"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# 确保数据目录存在
if settings.DATABASE_URL.startswith("sqlite"):
    os.makedirs(settings.DATA_DIR, exist_ok=True)

engine = create_engine_for(settings.DATABASE_URL, echo=settings.DEBUG)
AsyncSessionLocal = create_session_factory(engine)


async def init_db(bind: AsyncEngine = None):
    """初始化数据库表"""
    # 导入模型，确保表注册到 metadata
    from . import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """获取数据库会话"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
