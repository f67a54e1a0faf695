import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncEngine

from doc_index.db import FileORM
from doc_index.db.files.file_orm import now_millis
from doc_index.exceptions import CacheError, DatabaseError, FileNotFoundInIndexError, MinioError
from doc_index.models import BlobObject, FileInDB, FileSummary
from doc_index.repositories import (
    CachedResponse,
    FileRepository,
    MinioRepository,
    ResponseCache,
    TagRepository,
)
from doc_index.repositories.pg_repositoryFile import SEARCH_LIMIT
from doc_index.repositories.tags.pg_repositoryTag import normalize_tags

logger = logging.getLogger(__name__)


@dataclass
class ConsistencyReport:
    orphan_blobs: List[str] = field(default_factory=list)      # blob without a row
    missing_blobs: List[str] = field(default_factory=list)     # row (file id) without a blob

    @property
    def ok(self) -> bool:
        return not self.orphan_blobs and not self.missing_blobs


class DocIndexClient:
    """
    Single entry point for the business logic: search, tags, upload,
    delivery and delete over the index store and the blob store.
    """

    def __init__(
        self,
        file_repo: FileRepository,
        tag_repo: TagRepository,
        minio_repo: MinioRepository,
        cache: ResponseCache | None = None,
        engine: AsyncEngine | None = None,
    ):
        self._engine = engine
        self.files = file_repo
        self.tags = tag_repo
        self.minio = minio_repo
        self.cache = cache

    async def check_connections(self) -> dict[str, str]:
        """Connectivity status of every backing service."""
        statuses = {}

        try:
            await self.files.check_connection()
            statuses["postgres"] = "ok"
        except DatabaseError as e:
            statuses["postgres"] = f"failed: {e}"

        try:
            await self.minio.check_connection()
            statuses["minio"] = "ok"
        except MinioError as e:
            statuses["minio"] = f"failed: {e}"

        if self.cache is not None:
            try:
                await self.cache.check_connection()
                statuses["cache"] = "ok"
            except CacheError as e:
                statuses["cache"] = f"failed: {e}"

        return statuses

    # ――― search & tags ――― #

    async def search(self, query: str | None, limit: int = SEARCH_LIMIT) -> List[FileSummary]:
        return await self.files.search(query, limit=min(limit, SEARCH_LIMIT))

    async def replace_tags(self, file_id: str, tags: Iterable[object]) -> List[str]:
        return await self.tags.replace_tags(file_id, tags)

    # ――― upload / delivery / delete ――― #

    async def upload_file(
        self,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
        tags: Iterable[object] = (),
    ) -> FileInDB:
        """
        Stores the blob under a fresh id, then writes the file row and its
        tags in one index transaction. If the index write fails the blob is
        removed again before the error propagates.
        """
        file_id = str(uuid4())
        normalized = normalize_tags(tags)
        logger.info(f"Uploading '{file_name}' as {file_id} ({len(content)} bytes, tags={normalized})")

        await self.minio.put_object(file_id, content, content_type=content_type)

        file_orm = FileORM(
            id=file_id,
            filename=file_name,
            storage_key=file_id,
            size=len(content),
            created_at=now_millis(),
        )
        try:
            return await self.files.save_with_tags(file_orm, normalized)
        except DatabaseError as e:
            logger.error(f"Index write failed for {file_id}: {e}. Removing uploaded blob.")
            try:
                await self.minio.remove_object(file_id)
            except MinioError as cleanup_err:
                logger.error(f"Could not remove blob {file_id}, it is now orphaned: {cleanup_err}")
            raise

    async def get_file(self, file_id: str) -> Tuple[FileInDB, BlobObject]:
        """Row and blob for a file id. Missing at either step is the same NotFound."""
        meta = await self.files.get(file_id)
        if meta is None:
            raise FileNotFoundInIndexError(f"File {file_id} not found.")
        blob = await self.minio.get_object(meta.storage_key)
        if blob is None:
            logger.warning(f"File {file_id} has a row but no blob '{meta.storage_key}'")
            raise FileNotFoundInIndexError(f"Blob for file {file_id} not found.")
        return meta, blob

    async def delete_file(self, file_id: str) -> bool:
        """
        Removes blob, tag rows and file row as separate steps, in that order.
        Returns False when the id is unknown.
        """
        meta = await self.files.get(file_id)
        if meta is None:
            return False

        await self.minio.remove_object(meta.storage_key)
        await self.tags.delete_for_file(file_id)
        await self.files.delete(file_id)
        logger.info(f"Deleted file {file_id} ('{meta.filename}')")

        await self.invalidate_cached(file_id)
        return True

    # ――― shared response cache ――― #

    async def get_cached_response(self, url: str) -> Optional[CachedResponse]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(url)
        except CacheError as e:
            logger.warning(f"Cache read failed: {e}")
            return None

    async def cache_response(self, file_id: str, url: str, entry: CachedResponse) -> None:
        """
        Best effort; runs after the response has been sent, so the file may
        have been deleted in between. The row is checked before the write and
        again after it; a delete that slipped into the gap is purged here.
        """
        if self.cache is None:
            return
        try:
            if await self.files.get(file_id) is None:
                logger.debug(f"File {file_id} deleted before its response was cached")
                return
            await self.cache.put(file_id, url, entry)
            if await self.files.get(file_id) is None:
                await self.cache.invalidate(file_id)
        except (CacheError, DatabaseError) as e:
            logger.warning(f"Cache write failed for file {file_id}: {e}")

    async def invalidate_cached(self, file_id: str) -> None:
        if self.cache is None:
            return
        try:
            dropped = await self.cache.invalidate(file_id)
            logger.debug(f"Dropped {dropped} cached responses for {file_id}")
        except CacheError as e:
            logger.warning(f"Cache invalidation failed for {file_id}: {e}")

    # ――― consistency sweep ――― #

    async def find_inconsistencies(self) -> ConsistencyReport:
        rows = await self.files.list_storage_keys()
        blobs = set(await self.minio.list_all())
        return ConsistencyReport(
            orphan_blobs=sorted(blobs - rows.keys()),
            missing_blobs=sorted(fid for key, fid in rows.items() if key not in blobs),
        )

    async def prune_orphan_blobs(self, report: ConsistencyReport | None = None) -> List[str]:
        report = report or await self.find_inconsistencies()
        removed = []
        for key in report.orphan_blobs:
            await self.minio.remove_object(key)
            removed.append(key)
            logger.info(f"Removed orphan blob '{key}'")
        return removed

    async def aclose(self) -> None:
        if self.cache is not None:
            await self.cache.aclose()
        if self._engine is not None:
            await self._engine.dispose()
