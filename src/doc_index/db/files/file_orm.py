# doc_index/db/files/file_orm.py

from __future__ import annotations

import time
from typing import List, TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doc_index.db.base import Base
from doc_index.models.file import FileInDB

if TYPE_CHECKING:
    from doc_index.db.tags.file_tag_orm import FileTagORM


def now_millis() -> int:
    return int(time.time() * 1000)


class FileORM(Base):
    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    filename: Mapped[str] = mapped_column(String, nullable=False)
    # Object name in the bucket. Always equal to id: one row, one blob.
    storage_key: Mapped[str] = mapped_column(String, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_millis)

    tags: Mapped[List["FileTagORM"]] = relationship(
        "FileTagORM",
        back_populates="file",
        order_by="FileTagORM.tag",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_files_filename", "filename"),
        Index("idx_files_created_at", "created_at"),
    )

    def to_pydantic(self) -> FileInDB:
        return FileInDB(
            id=self.id,
            filename=self.filename,
            storage_key=self.storage_key,
            size=self.size,
            created_at=self.created_at,
            tags=[t.tag for t in self.tags],
        )
