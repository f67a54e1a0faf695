from .file import FileSummary, FileInDB
from .blob import BlobObject, DEFAULT_CONTENT_TYPE
from .auth import LoginRequest, LoginResponse

__all__ = [
    "FileSummary", "FileInDB",
    "BlobObject", "DEFAULT_CONTENT_TYPE",
    "LoginRequest", "LoginResponse",
]
