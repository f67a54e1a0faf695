import fakeredis
import pytest

from doc_index.config import CacheConfig
from doc_index.repositories import CachedResponse, ResponseCache

from conftest import FakeResponseCache, TEAM_SECRET

pytestmark = pytest.mark.asyncio


async def _upload(admin, content=b"cached body"):
    res = await admin.post("/api/upload", files={"file": ("notes.txt", content, "text/plain")})
    return res.json()["id"]


async def test_miss_then_hit(admin, team, data_client):
    cache = FakeResponseCache()
    data_client.cache = cache
    file_id = await _upload(admin)

    first = await team.get(f"/api/file/{file_id}")
    assert first.status_code == 200
    assert "x-cache" not in first.headers
    url = f"http://testserver/api/file/{file_id}"
    assert cache.entries[url].body == b"cached body"
    assert cache.by_file[file_id] == {url}

    second = await team.get(f"/api/file/{file_id}")
    assert second.status_code == 200
    assert second.headers["x-cache"] == "HIT"
    assert second.content == b"cached body"
    assert second.headers["content-type"].startswith("text/plain")
    assert second.headers["content-disposition"] == 'inline; filename="notes.txt"'


async def test_hit_is_served_without_blob_store(admin, team, data_client, minio):
    data_client.cache = FakeResponseCache()
    file_id = await _upload(admin)
    await team.get(f"/api/file/{file_id}")

    minio.objects.clear()

    res = await team.get(f"/api/file/{file_id}")
    assert res.status_code == 200
    assert res.headers["x-cache"] == "HIT"


async def test_cache_key_includes_query(admin, guest, data_client):
    cache = FakeResponseCache()
    data_client.cache = cache
    file_id = await _upload(admin)

    await guest.get(f"/api/file/{file_id}", params={"token": TEAM_SECRET})

    assert list(cache.entries) == [f"http://testserver/api/file/{file_id}?token={TEAM_SECRET}"]


async def test_auth_is_checked_before_cache(admin, guest, team, data_client):
    data_client.cache = FakeResponseCache()
    file_id = await _upload(admin)
    await team.get(f"/api/file/{file_id}")

    res = await guest.get(f"/api/file/{file_id}")
    assert res.status_code == 401


async def test_delete_invalidates(admin, team, data_client):
    cache = FakeResponseCache()
    data_client.cache = cache
    file_id = await _upload(admin)
    await team.get(f"/api/file/{file_id}")
    assert cache.entries

    await admin.delete(f"/api/file/{file_id}")

    assert cache.entries == {}
    assert (await team.get(f"/api/file/{file_id}")).status_code == 404


async def test_delete_during_fetch_is_not_cached(admin, team, data_client, monkeypatch):
    cache = FakeResponseCache()
    data_client.cache = cache
    file_id = await _upload(admin)
    read_file = data_client.get_file

    async def read_then_delete(fid):
        found = await read_file(fid)
        await data_client.delete_file(fid)
        return found

    monkeypatch.setattr(data_client, "get_file", read_then_delete)
    res = await team.get(f"/api/file/{file_id}")
    assert res.status_code == 200
    assert res.content == b"cached body"
    monkeypatch.undo()

    assert cache.entries == {}
    assert (await team.get(f"/api/file/{file_id}")).status_code == 404


async def test_delete_during_cache_write_is_purged(data_client, monkeypatch):
    cache = FakeResponseCache()
    data_client.cache = cache
    saved = await data_client.upload_file("notes.txt", b"body")
    put = cache.put

    async def delete_then_put(file_id, url, entry):
        await data_client.delete_file(file_id)
        await put(file_id, url, entry)

    monkeypatch.setattr(cache, "put", delete_then_put)
    url = f"http://testserver/api/file/{saved.id}"
    await data_client.cache_response(saved.id, url, CachedResponse(body=b"body", headers={}))

    assert cache.entries == {}
    assert cache.by_file == {}


async def test_large_bodies_are_not_cached(config, admin, team, data_client):
    cache = FakeResponseCache()
    data_client.cache = cache
    config.cache.max_body_bytes = 4
    file_id = await _upload(admin)

    for _ in range(2):
        res = await team.get(f"/api/file/{file_id}")
        assert res.status_code == 200
        assert res.content == b"cached body"
        assert "x-cache" not in res.headers
    assert cache.entries == {}


async def test_failing_cache_still_serves(admin, team, data_client):
    data_client.cache = FakeResponseCache(fail=True)
    file_id = await _upload(admin)

    res = await team.get(f"/api/file/{file_id}")
    assert res.status_code == 200
    assert res.content == b"cached body"

    assert (await admin.delete(f"/api/file/{file_id}")).status_code == 200


async def test_no_cache_configured(admin, team, data_client):
    assert data_client.cache is None
    file_id = await _upload(admin)
    res = await team.get(f"/api/file/{file_id}")
    assert "x-cache" not in res.headers


async def test_health_reports_cache(guest, data_client):
    data_client.cache = FakeResponseCache()
    res = await guest.get("/api/health")
    assert res.json()["cache"] == "ok"


# --- redis-backed store ---

@pytest.fixture
def redis_cache():
    cache = ResponseCache(CacheConfig(url="redis://localhost:6379/0", ttl=60, namespace="t"))
    cache._pool = fakeredis.FakeAsyncRedis()
    return cache


async def test_redis_round_trip_binary_body(redis_cache):
    body = bytes(range(256))
    await redis_cache.put("f1", "http://x/api/file/f1", CachedResponse(body=body, headers={"content-type": "image/png"}))

    hit = await redis_cache.get("http://x/api/file/f1")
    assert hit.body == body
    assert hit.headers == {"content-type": "image/png"}
    assert await redis_cache.get("http://x/api/file/other") is None
    assert 0 < await redis_cache._pool.ttl("t:resp:http://x/api/file/f1") <= 60


async def test_redis_invalidate_drops_every_url_of_a_file(redis_cache):
    entry = CachedResponse(body=b"x", headers={})
    await redis_cache.put("f1", "http://x/api/file/f1", entry)
    await redis_cache.put("f1", "http://x/api/file/f1?token=a", entry)
    await redis_cache.put("f2", "http://x/api/file/f2", entry)

    assert await redis_cache.invalidate("f1") == 2

    assert await redis_cache.get("http://x/api/file/f1") is None
    assert await redis_cache.get("http://x/api/file/f1?token=a") is None
    assert await redis_cache.get("http://x/api/file/f2") is not None
    assert await redis_cache.invalidate("f1") == 0
