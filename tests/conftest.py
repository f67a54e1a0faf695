from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from doc_index import create_engine_for
from doc_index.client import DocIndexClient
from doc_index.config import AuthConfig, DocIndexConfig, PostgresConfig, TelegramConfig
from doc_index.db.base import Base
from doc_index.exceptions import CacheError
from doc_index.models import BlobObject
from doc_index.repositories import CachedResponse, FileRepository, TagRepository
from doc_index.server.main import create_app

TEAM_SECRET = "team-secret"
ADMIN_SECRET = "admin-secret"
COOKIE = "doc_auth"


class FakeMinioRepository:
    """In-memory stand-in for MinioRepository."""

    def __init__(self):
        self.objects: Dict[str, BlobObject] = {}
        self.bucket = "test-bucket"

    async def check_connection(self):
        return None

    async def put_object(self, object_name: str, data: bytes, content_type: str | None = None):
        self.objects[object_name] = BlobObject(
            key=object_name, data=data, content_type=content_type, etag=f'"{len(data)}"'
        )

    async def get_object(self, object_name: str) -> Optional[BlobObject]:
        return self.objects.get(object_name)

    async def remove_object(self, object_name: str):
        self.objects.pop(object_name, None)

    async def list_all(self, prefix: str | None = None, recursive: bool = True) -> List[str]:
        return sorted(k for k in self.objects if not prefix or k.startswith(prefix))


class FakeResponseCache:
    """In-memory stand-in for ResponseCache."""

    def __init__(self, fail: bool = False):
        self.entries: Dict[str, CachedResponse] = {}
        self.by_file: Dict[str, set] = {}
        self.fail = fail

    async def get(self, url: str) -> Optional[CachedResponse]:
        if self.fail:
            raise CacheError("cache down")
        return self.entries.get(url)

    async def put(self, file_id: str, url: str, entry: CachedResponse) -> None:
        if self.fail:
            raise CacheError("cache down")
        self.entries[url] = entry
        self.by_file.setdefault(file_id, set()).add(url)

    async def invalidate(self, file_id: str) -> int:
        if self.fail:
            raise CacheError("cache down")
        urls = self.by_file.pop(file_id, set())
        for url in urls:
            self.entries.pop(url, None)
        return len(urls)

    async def check_connection(self):
        return None

    async def aclose(self):
        return None


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.sent: List[tuple] = []
        self.fail = fail

    async def send_message(self, chat_id, text, parse_mode="HTML"):
        if self.fail:
            raise RuntimeError("telegram unreachable")
        self.sent.append((chat_id, text))


@pytest.fixture
def config() -> DocIndexConfig:
    return DocIndexConfig(
        postgres=PostgresConfig(dsn="sqlite+aiosqlite:///:memory:"),
        auth=AuthConfig(
            team_password=TEAM_SECRET,
            admin_password=ADMIN_SECRET,
            cookie_name=COOKIE,
            cookie_secure=False,
        ),
        telegram=TelegramConfig(bot_token="123:abc"),
        public_base_url="https://docs.example.com",
    )


@pytest_asyncio.fixture
async def db_engine(config):
    """Fresh in-memory index store with all tables, per test."""
    engine = create_engine_for(config.postgres)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def minio():
    return FakeMinioRepository()


@pytest.fixture
def data_client(session_factory, minio) -> DocIndexClient:
    return DocIndexClient(
        file_repo=FileRepository(session_factory),
        tag_repo=TagRepository(session_factory),
        minio_repo=minio,
    )


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def app(config, data_client, notifier):
    return create_app(config=config, client=data_client, notifier=notifier)


def make_http(app, secret: str | None = None) -> AsyncClient:
    cookies = {COOKIE: secret} if secret else None
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver", cookies=cookies)


@pytest_asyncio.fixture
async def guest(app):
    async with make_http(app) as c:
        yield c


@pytest_asyncio.fixture
async def team(app):
    async with make_http(app, TEAM_SECRET) as c:
        yield c


@pytest_asyncio.fixture
async def admin(app):
    async with make_http(app, ADMIN_SECRET) as c:
        yield c
