import asyncio
import logging
from functools import partial
from io import BytesIO
from typing import Any, Callable, List, Optional

import urllib3
from minio import Minio
from minio.error import S3Error

from doc_index.config import MinioConfig
from doc_index.exceptions import MinioError
from doc_index.models.blob import DEFAULT_CONTENT_TYPE, BlobObject

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchObject"}


class MinioRepository:
    """
    Blob store over one bucket. Object names are file ids.

    The MinIO SDK is blocking; every call goes through the loop's default
    executor.
    """
    def __init__(self, settings: MinioConfig):
        http_client = None
        if settings.secure:
            http_client = urllib3.PoolManager(cert_reqs="CERT_REQUIRED")
        self._client = Minio(
            endpoint=settings.endpoint,
            access_key=settings.accesskey,
            secret_key=settings.secretkey,
            secure=settings.secure,
            http_client=http_client,
        )
        self._bucket = settings.bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _call(self, func: Callable[..., Any], *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def check_connection(self):
        """Reaches the server and creates the bucket if it is missing."""
        logger.debug(f"Checking MinIO bucket '{self._bucket}'...")
        try:
            if not await self._call(self._client.bucket_exists, self._bucket):
                logger.info(f"Creating bucket '{self._bucket}'")
                await self._call(self._client.make_bucket, self._bucket)
        except (S3Error, urllib3.exceptions.HTTPError) as e:
            logger.error(f"MinIO connection failed: {e}")
            raise MinioError(str(e)) from e

    async def put_object(self, object_name: str, data: bytes, content_type: str | None = None):
        try:
            await self._call(
                self._client.put_object,
                self._bucket,
                object_name,
                BytesIO(data),
                len(data),
                content_type=content_type or DEFAULT_CONTENT_TYPE,
            )
        except S3Error as e:
            raise MinioError(str(e)) from e

    async def get_object(self, object_name: str) -> Optional[BlobObject]:
        """The blob with its stored content type and etag, or None if the key is absent."""
        def _read():
            resp = self._client.get_object(self._bucket, object_name)
            try:
                return BlobObject(
                    key=object_name,
                    data=resp.read(),
                    content_type=resp.headers.get("Content-Type"),
                    etag=resp.headers.get("ETag"),
                )
            finally:
                resp.close()
                resp.release_conn()

        try:
            return await self._call(_read)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                return None
            raise MinioError(str(e)) from e

    async def remove_object(self, object_name: str):
        # S3 semantics: removing an absent key succeeds
        try:
            await self._call(self._client.remove_object, self._bucket, object_name)
        except S3Error as e:
            raise MinioError(str(e)) from e

    async def list_all(self, prefix: str | None = None, recursive: bool = True) -> List[str]:
        def _names():
            objects = self._client.list_objects(self._bucket, prefix=prefix, recursive=recursive)
            return [o.object_name for o in objects]

        try:
            return await self._call(_names)
        except S3Error as e:
            raise MinioError(str(e)) from e
