class DocIndexError(Exception):
    """Base class."""


class DatabaseError(DocIndexError):
    pass


class MinioError(DocIndexError):
    pass


class CacheError(DocIndexError):
    pass


class NotFoundError(DocIndexError):
    pass


class FileNotFoundInIndexError(NotFoundError):
    """Unknown file id, or the row exists but its blob is gone."""


class BadRequestError(DocIndexError):
    pass
