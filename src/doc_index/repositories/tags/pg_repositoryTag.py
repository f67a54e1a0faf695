# doc_index/repositories/tags/pg_repositoryTag.py

import logging
import re
from typing import Iterable, List

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from doc_index.db import FileORM, FileTagORM
from doc_index.db.base import get_session, insert_or_ignore
from doc_index.exceptions import DatabaseError, FileNotFoundInIndexError

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


def normalize_tags(names: Iterable[object]) -> List[str]:
    """Trim, lowercase, drop empties, dedupe keeping first occurrence."""
    out: list[str] = []
    seen: set[str] = set()
    for n in names or []:
        if n is None:
            continue
        x = str(n).strip().lower()
        if not x or x in seen:
            continue
        seen.add(x)
        out.append(x)
    return out


def split_tag_string(raw: str | None) -> List[str]:
    """'Foo  bar foo' -> ['foo', 'bar']"""
    return normalize_tags(_WS.split(raw or ""))


class TagRepository:
    """
    File tags. Tags have no life of their own: a tag exists only as a
    (file_id, tag) pair.
    """
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def replace_tags(self, file_id: str, tags: Iterable[object]) -> List[str]:
        """
        Replaces the whole tag set of a file: delete all pairs, insert the
        normalized set, one transaction. The file row is locked first so
        concurrent replacements of the same file do not interleave.
        """
        normalized = normalize_tags(tags)
        async with get_session(self._session_factory) as session:
            try:
                found = await session.execute(
                    select(FileORM.id).where(FileORM.id == file_id).with_for_update()
                )
                if found.scalar_one_or_none() is None:
                    raise FileNotFoundInIndexError(f"File {file_id} not found.")

                await session.execute(delete(FileTagORM).where(FileTagORM.file_id == file_id))
                if normalized:
                    stmt = insert_or_ignore(session, FileTagORM.__table__, ["file_id", "tag"])
                    await session.execute(stmt, [{"file_id": file_id, "tag": t} for t in normalized])
                await session.commit()
                logger.info(f"Replaced tags for file {file_id}: {normalized}")
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to replace tags for file {file_id}: {e}")
                raise DatabaseError(f"Failed to replace tags: {e}") from e
        return normalized

    async def get_names_by_file(self, file_id: str) -> List[str]:
        async with get_session(self._session_factory) as session:
            try:
                stmt = select(FileTagORM.tag).where(FileTagORM.file_id == file_id).order_by(FileTagORM.tag)
                res = await session.execute(stmt)
                return list(res.scalars().all())
            except SQLAlchemyError as e:
                raise DatabaseError(str(e)) from e

    async def delete_for_file(self, file_id: str) -> int:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(delete(FileTagORM).where(FileTagORM.file_id == file_id))
                await session.commit()
                return res.rowcount
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to delete tags for file {file_id}: {e}")
                raise DatabaseError(f"Failed to delete tags: {e}") from e
