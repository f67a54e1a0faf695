import logging
from typing import Annotated, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import Response
from starlette.datastructures import UploadFile

from doc_index.auth import Role
from doc_index.client import DocIndexClient
from doc_index.config import DocIndexConfig
from doc_index.exceptions import BadRequestError
from doc_index.models import FileSummary
from doc_index.repositories import CachedResponse
from doc_index.repositories.tags.pg_repositoryTag import split_tag_string
from .auth import get_client, get_config, require_admin, require_file_access, require_team

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

CACHE_CONTROL = "public, max-age=14400"


def content_disposition(filename: str) -> str:
    return f'inline; filename="{quote(filename, safe="")}"'


@router.get("/search", response_model=List[FileSummary])
async def search_files(
    client: Annotated[DocIndexClient, Depends(get_client)],
    _: Annotated[Role, Depends(require_team)],
    q: Annotated[Optional[str], Query()] = "",
):
    return await client.search(q or "")


@router.get("/file/{file_id}")
async def get_file(
    file_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    client: Annotated[DocIndexClient, Depends(get_client)],
    config: Annotated[DocIndexConfig, Depends(get_config)],
    _: Annotated[Role, Depends(require_file_access)],
):
    """
    Serves a stored file inline. With a shared cache configured, the
    response is looked up by full request URL and written back after it
    has been sent; bodies above `cache.max_body_bytes` are never cached.
    """
    url = str(request.url)
    cached = await client.get_cached_response(url)
    if cached is not None:
        logger.debug(f"Cache hit for file {file_id}")
        return Response(content=cached.body, headers={**cached.headers, "x-cache": "HIT"})

    meta, blob = await client.get_file(file_id)

    headers = {
        "content-type": blob.media_type,
        "content-disposition": content_disposition(meta.filename),
        "cache-control": CACHE_CONTROL,
    }
    if blob.etag:
        headers["etag"] = blob.etag

    if client.cache is not None and len(blob.data) <= config.cache.max_body_bytes:
        background_tasks.add_task(
            client.cache_response, file_id, url, CachedResponse(body=blob.data, headers=headers)
        )
    return Response(content=blob.data, headers=headers)


@router.post("/upload")
async def upload_file(
    request: Request,
    client: Annotated[DocIndexClient, Depends(get_client)],
    _: Annotated[Role, Depends(require_admin)],
):
    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise BadRequestError("Invalid file")

    tags_raw = form.get("tags")
    tags = split_tag_string(tags_raw if isinstance(tags_raw, str) else "")

    content = await upload.read()
    saved = await client.upload_file(
        file_name=upload.filename or "unnamed",
        content=content,
        content_type=upload.content_type,
        tags=tags,
    )
    return {"success": True, "id": saved.id}


@router.patch("/file/{file_id}/tags")
async def replace_file_tags(
    file_id: str,
    request: Request,
    client: Annotated[DocIndexClient, Depends(get_client)],
    _: Annotated[Role, Depends(require_admin)],
):
    try:
        body = await request.json()
    except ValueError:
        raise BadRequestError("Body must be JSON")

    tags = body.get("tags") if isinstance(body, dict) else None
    if not isinstance(tags, list):
        raise BadRequestError("tags must be an array")

    stored = await client.replace_tags(file_id, tags)
    return {"success": True, "tags": stored}


@router.delete("/file/{file_id}")
async def delete_file(
    file_id: str,
    client: Annotated[DocIndexClient, Depends(get_client)],
    _: Annotated[Role, Depends(require_admin)],
):
    await client.delete_file(file_id)
    return {"success": True}


@router.get("/health")
async def health(client: Annotated[DocIndexClient, Depends(get_client)]):
    return await client.check_connections()
