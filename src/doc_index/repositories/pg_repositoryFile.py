import logging
from typing import List, Optional

from sqlalchemy import delete, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from doc_index.db import FileORM, FileTagORM
from doc_index.db.base import get_session, insert_or_ignore
from doc_index.exceptions import DatabaseError
from doc_index.models.file import FileInDB, FileSummary

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50
LIKE_ESCAPE = "\\"


def like_term(query: str | None) -> str:
    """Wraps the query for a literal substring match; LIKE wildcards in it are escaped."""
    q = (query or "")
    q = q.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")
    return f"%{q}%"


class FileRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Runs a trivial query against the index store."""
        logger.debug("Checking index store connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
            except SQLAlchemyError as e:
                logger.error(f"Index store connection failed: {e}")
                raise DatabaseError("Failed to connect to the database.") from e

    async def save_with_tags(self, file: FileORM, tags: List[str]) -> FileInDB:
        """
        Writes the file row and its tag rows in one transaction.
        Tags must already be normalized; duplicate pairs are ignored.
        """
        async with get_session(self._session_factory) as session:
            try:
                session.add(file)
                await session.flush()
                if tags:
                    stmt = insert_or_ignore(session, FileTagORM.__table__, ["file_id", "tag"])
                    await session.execute(stmt, [{"file_id": file.id, "tag": t} for t in tags])
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to save file {file.id}: {e}")
                raise DatabaseError(f"Failed to save file metadata: {e}") from e

        return FileInDB(
            id=file.id,
            filename=file.filename,
            storage_key=file.storage_key,
            size=file.size,
            created_at=file.created_at,
            tags=sorted(set(tags)),
        )

    async def get(self, file_id: str) -> Optional[FileInDB]:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(FileORM).where(FileORM.id == file_id))
                orm = res.scalar_one_or_none()
                return orm.to_pydantic() if orm else None
            except SQLAlchemyError as e:
                raise DatabaseError(str(e)) from e

    async def search(self, query: str | None, limit: int = SEARCH_LIMIT) -> List[FileSummary]:
        """
        Files whose filename or any tag contains `query` (case-insensitive),
        newest first, each once, each with its full tag set.
        """
        term = like_term(query)
        tag_hits = select(FileTagORM.file_id).where(FileTagORM.tag.ilike(term, escape=LIKE_ESCAPE))
        stmt = (
            select(FileORM)
            .where(or_(FileORM.filename.ilike(term, escape=LIKE_ESCAPE), FileORM.id.in_(tag_hits)))
            .order_by(FileORM.created_at.desc(), FileORM.id)
            .limit(limit)
        )
        async with get_session(self._session_factory) as session:
            try:
                rows = await session.execute(stmt)
                orms = rows.scalars().all()
            except SQLAlchemyError as e:
                logger.error(f"Search failed: {e}")
                raise DatabaseError(f"Search failed: {e}") from e
            return [FileSummary.model_validate(o.to_pydantic().model_dump(exclude={"storage_key"})) for o in orms]

    async def delete(self, file_id: str) -> bool:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(delete(FileORM).where(FileORM.id == file_id))
                await session.commit()
                return res.rowcount > 0
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to delete file {file_id}: {e}") from e

    async def list_storage_keys(self) -> dict[str, str]:
        """storage_key -> file id for every row."""
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(FileORM.storage_key, FileORM.id))
                return {key: fid for key, fid in res.all()}
            except SQLAlchemyError as e:
                raise DatabaseError(str(e)) from e
