# doc_index/db/tags/file_tag_orm.py

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doc_index.db.base import Base

if TYPE_CHECKING:
    from doc_index.db.files.file_orm import FileORM


class FileTagORM(Base):
    __tablename__ = "file_tags"

    # Composite primary key: a tag appears at most once per file.
    file_id: Mapped[str] = mapped_column(ForeignKey("files.id", ondelete="CASCADE"), primary_key=True)
    tag: Mapped[str] = mapped_column(Text, primary_key=True)

    file: Mapped["FileORM"] = relationship("FileORM", back_populates="tags")

    __table_args__ = (
        Index("idx_tags_tag", "tag"),
    )
