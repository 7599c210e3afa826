"""测试夹具"""
import os
import tempfile

# 导入 magpie 之前指定临时数据目录，避免在项目目录下创建数据库
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="magpie-test-")
os.environ.setdefault("DATA_DIR", _TEST_DATA_DIR)
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DATA_DIR}/default.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from typing import Dict, List, Optional

import httpx
import pytest

from magpie.database import create_engine_for, create_session_factory, get_db, init_db
from magpie.main import app
from magpie.api.deps import get_analyzer, get_scraper
from magpie.models.user import User
from magpie.services.activity import ActivityLogger, Actor
from magpie.services.base import (
    AIAnalysisError,
    AIAnalysisResult,
    ContentAnalyzer,
    ContentScraper,
    ScrapedContent,
    ScrapeError,
)
from magpie.services.categories import CategoryRegistry
from magpie.services.settings_store import SettingsStore
from magpie.services.tokens import TokenAuthority
from magpie.utils.cache import ingest_limiter
from magpie.utils.security import create_access_token, hash_password


class FakeScraper(ContentScraper):
    """按 URL 返回预设页面，未登记的 URL 返回通用页面"""

    def __init__(self, pages: Optional[Dict[str, dict]] = None, fail: bool = False):
        self.pages = pages or {}
        self.fail = fail
        self.calls: List[str] = []

    async def scrape(self, url: str) -> ScrapedContent:
        self.calls.append(url)
        if self.fail:
            raise ScrapeError("连接超时")
        page = self.pages.get(url, {"title": "Example Page", "description": "An example page"})
        return ScrapedContent(url=url, content="hello world " * 50, word_count=100, **page)


class FakeAnalyzer(ContentAnalyzer):
    """返回固定的分析结果"""

    def __init__(self, result: Optional[AIAnalysisResult] = None):
        self.result = result or AIAnalysisResult(
            summary="AI summary",
            category="技术",
            tags=["python", "web"],
            reading_time=3,
            language="en",
            sentiment="neutral",
        )
        self.calls = 0

    async def analyze(self, content: ScrapedContent) -> AIAnalysisResult:
        self.calls += 1
        return self.result


class FailingAnalyzer(ContentAnalyzer):
    """模拟 AI 超时"""

    async def analyze(self, content: ScrapedContent) -> AIAnalysisResult:
        raise AIAnalysisError("AI 请求超时 (30s)")


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path}/magpie.db")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        store = SettingsStore(session)
        await store.initialize()
        await CategoryRegistry(session).seed_defaults(store)
        await session.commit()
        yield session


@pytest.fixture
def actor():
    return Actor(type="token", id=1, name="test", ip="127.0.0.1", user_agent="pytest")


@pytest.fixture
def activity(db, actor):
    return ActivityLogger(db, actor)


@pytest.fixture
def scraper():
    return FakeScraper()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture(autouse=True)
def reset_rate_limit():
    ingest_limiter.reset()
    yield
    ingest_limiter.reset()


@pytest.fixture
async def client(db, session_factory, scraper, analyzer):
    """HTTP 客户端，数据库和外部协作方都替换为测试实现"""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scraper] = lambda: scraper
    app.dependency_overrides[get_analyzer] = lambda: analyzer

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def admin_user(db):
    user = User(username="admin", password_hash=hash_password("password123"), role="admin")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def admin_headers(admin_user):
    token = create_access_token(admin_user.id, admin_user.username)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def api_token(db):
    token = await TokenAuthority(db).issue("test token")
    return token.token


@pytest.fixture
def token_headers(api_token):
    return {"Authorization": f"Bearer {api_token}"}
