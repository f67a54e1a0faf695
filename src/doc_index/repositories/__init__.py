from .minio_repository import MinioRepository
from .pg_repositoryFile import FileRepository
from .tags.pg_repositoryTag import TagRepository
from .cache_repository import ResponseCache, CachedResponse

__all__ = [
    "MinioRepository",
    "FileRepository",
    "TagRepository",
    "ResponseCache",
    "CachedResponse",
]
