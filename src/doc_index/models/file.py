from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class FileSummary(BaseModel):
    """One search hit: the row plus its full tag set."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    size: int
    created_at: int
    tags: List[str] = Field(default_factory=list)


class FileInDB(FileSummary):
    storage_key: str
