# Файл: src/doc_index/__init__.py

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .client import DocIndexClient, ConsistencyReport
from .config import get_settings, DocIndexConfig, PostgresConfig, MinioConfig, AuthConfig, CacheConfig, TelegramConfig
from .repositories import FileRepository, TagRepository, MinioRepository, ResponseCache
from .auth import Role, resolve_role
from .exceptions import *


def create_engine_for(config: PostgresConfig) -> AsyncEngine:
    """Async engine for the index store. In-memory SQLite gets a single shared connection."""
    url = config.get_pg_dsn()
    if url.startswith("sqlite"):
        kwargs = {}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, connect_args={"check_same_thread": False}, **kwargs)

    return create_async_engine(
        url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "application_name": config.application_name
            }
        },
    )


def create_doc_index(config: Optional[DocIndexConfig] = None) -> DocIndexClient:
    """
    Builds a configured DocIndexClient.

    :param config: explicit settings; environment / .env when omitted.
    """
    if config is None:
        config = get_settings().to_config()

    engine = create_engine_for(config.postgres)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    cache = ResponseCache(config.cache) if config.cache.url else None

    return DocIndexClient(
        file_repo=FileRepository(session_factory),
        tag_repo=TagRepository(session_factory),
        minio_repo=MinioRepository(config.minio),
        cache=cache,
        engine=engine,
    )


__all__ = [
    "DocIndexClient", "ConsistencyReport", "create_doc_index", "create_engine_for",
    "DocIndexConfig", "PostgresConfig", "MinioConfig", "AuthConfig", "CacheConfig", "TelegramConfig",
    "Role", "resolve_role",
    "DocIndexError", "DatabaseError", "MinioError", "CacheError", "NotFoundError",
    "FileNotFoundInIndexError", "BadRequestError",
]
