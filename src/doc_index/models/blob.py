from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class BlobObject(BaseModel):
    key: str
    data: bytes
    content_type: Optional[str] = None
    etag: Optional[str] = None

    @property
    def media_type(self) -> str:
        return self.content_type or DEFAULT_CONTENT_TYPE
