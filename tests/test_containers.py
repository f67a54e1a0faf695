"""
End-to-end checks against real PostgreSQL and MinIO containers.

Needs a Docker daemon; enabled with DOC_INDEX_CONTAINER_TESTS=1.
"""
import asyncio
import os

import pytest
import pytest_asyncio

from doc_index import create_doc_index, create_engine_for
from doc_index.config import DocIndexConfig, MinioConfig, PostgresConfig
from doc_index.db.base import Base
from doc_index.exceptions import FileNotFoundInIndexError

pytestmark = [
    pytest.mark.skipif(
        os.environ.get("DOC_INDEX_CONTAINER_TESTS") != "1",
        reason="set DOC_INDEX_CONTAINER_TESTS=1 to run against Docker containers",
    ),
    pytest.mark.asyncio,
]


@pytest.fixture(scope="module")
def live_config():
    from testcontainers.minio import MinioContainer
    from testcontainers.postgres import PostgresContainer

    postgres = PostgresContainer("postgres:16")
    minio = MinioContainer("minio/minio:latest", access_key="minioadmin", secret_key="minioadmin")
    postgres.start()
    minio.start()

    minio_config = minio.get_config()
    yield DocIndexConfig(
        postgres=PostgresConfig(
            user=postgres.username,
            password=postgres.password,
            db=postgres.dbname,
            host=postgres.get_container_host_ip(),
            port=int(postgres.get_exposed_port(5432)),
        ),
        minio=MinioConfig(
            endpoint=minio_config["endpoint"].replace("http://", ""),
            accesskey=minio_config["access_key"],
            secretkey=minio_config["secret_key"],
            bucket="test-bucket",
        ),
    )
    postgres.stop()
    minio.stop()


@pytest_asyncio.fixture
async def live_client(live_config):
    engine = create_engine_for(live_config.postgres)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    client = create_doc_index(live_config)
    await client.minio.check_connection()
    yield client
    await client.aclose()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


async def test_lifecycle(live_client):
    saved = await live_client.upload_file("Q1 Report.pdf", b"%PDF", "application/pdf", ["Finance", "q1"])

    hits = await live_client.search("finance")
    assert [h.id for h in hits] == [saved.id]
    assert hits[0].tags == ["finance", "q1"]

    meta, blob = await live_client.get_file(saved.id)
    assert meta.filename == "Q1 Report.pdf"
    assert blob.data == b"%PDF"
    assert blob.media_type == "application/pdf"
    assert blob.etag

    assert await live_client.delete_file(saved.id) is True
    assert await live_client.search("finance") == []
    with pytest.raises(FileNotFoundInIndexError):
        await live_client.get_file(saved.id)
    assert (await live_client.find_inconsistencies()).ok


async def test_wildcards_are_literal(live_client):
    await live_client.upload_file("100%_done.txt", b"x")
    await live_client.upload_file("1000 done.txt", b"x")

    hits = await live_client.search("0%_")
    assert [h.filename for h in hits] == ["100%_done.txt"]


async def test_concurrent_replacements_do_not_interleave(live_client):
    saved = await live_client.upload_file("shared.txt", b"x", tags=["start"])
    sets = [[f"set{i}-a", f"set{i}-b", f"set{i}-c"] for i in range(5)]

    await asyncio.gather(*(live_client.replace_tags(saved.id, s) for s in sets))

    final = await live_client.tags.get_names_by_file(saved.id)
    assert final in [sorted(s) for s in sets]


async def test_long_tags_are_stored(live_client):
    long_tag = "t" * 300
    saved = await live_client.upload_file("long.txt", b"x", tags=[long_tag])
    assert await live_client.tags.get_names_by_file(saved.id) == [long_tag]

    longer = "u" * 1000
    assert await live_client.replace_tags(saved.id, [longer]) == [longer]
    hits = await live_client.search("u" * 900)
    assert [h.id for h in hits] == [saved.id]
