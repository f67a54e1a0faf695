# doc_index/db/__init__.py

from .base import Base

from .files.file_orm import FileORM
from .tags.file_tag_orm import FileTagORM


__all__ = [
    "Base",
    "FileORM",
    "FileTagORM",
]
