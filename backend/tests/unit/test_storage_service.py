from datetime import datetime, timedelta, timezone

import httpx
import pytest

from orderdocs.services.storage_service import StorageService

pytestmark = [pytest.mark.unit]


@pytest.fixture
def storage(settings, storage_server):
    client = httpx.AsyncClient(transport=httpx.MockTransport(storage_server))
    return StorageService(settings.storage, client=client)


@pytest.mark.asyncio
async def test_upload_file_returns_public_url(storage, storage_server, tmp_path):
    local = tmp_path / "receipt.pdf"
    local.write_bytes(b"%PDF-1.4 test")

    result = await storage.upload_file(str(local), "receipt_TEST-1_1.pdf")

    assert result.success is True
    assert result.storage_path == "documents/receipt_TEST-1_1.pdf"
    assert result.file_url == (
        f"{storage.base_url}/storage/v1/object/public/{storage.bucket}/documents/receipt_TEST-1_1.pdf"
    )
    assert result.metadata.file_size == len(b"%PDF-1.4 test")
    assert "documents/receipt_TEST-1_1.pdf" in storage_server.objects
    upload = storage_server.requests[-1]
    assert upload.headers["x-upsert"] == "false"
    assert upload.headers["content-type"] == "application/pdf"
    assert upload.headers["apikey"] == storage.settings.service_key


@pytest.mark.asyncio
async def test_upload_never_overwrites(storage, storage_server):
    storage_server.put("documents/dup.pdf")
    result = await storage.upload_buffer(b"%PDF", "dup.pdf")
    assert result.success is False
    assert "already exists" in result.error


@pytest.mark.asyncio
async def test_upload_failure_is_a_result(storage, storage_server):
    storage_server.upload_error = "quota exceeded"
    result = await storage.upload_buffer(b"%PDF", "a.pdf")
    assert result.success is False
    assert result.error == "Upload failed: quota exceeded"
    assert result.file_url is None


@pytest.mark.asyncio
async def test_upload_missing_local_file(storage, tmp_path):
    result = await storage.upload_file(str(tmp_path / "nope.pdf"), "nope.pdf")
    assert result.success is False
    assert result.error.startswith("Upload failed")


@pytest.mark.asyncio
async def test_unconfigured_storage_fails_without_network(tmp_path):
    from orderdocs.config.settings import StorageSettings

    def refuse(request):  # pragma: no cover - must not be called
        raise AssertionError("no request expected")

    service = StorageService(StorageSettings(), client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))
    result = await service.upload_buffer(b"%PDF", "a.pdf")
    assert result.success is False
    assert "not configured" in result.error
    assert await service.list_files() == []


@pytest.mark.asyncio
async def test_network_error_is_a_result(settings):
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    service = StorageService(settings.storage, client=httpx.AsyncClient(transport=httpx.MockTransport(broken)))
    result = await service.upload_buffer(b"%PDF", "a.pdf")
    assert result.success is False
    assert "Network error" in result.error


@pytest.mark.asyncio
async def test_list_and_file_info(storage, storage_server):
    storage_server.put("documents/a.pdf", b"12345")
    storage_server.put("documents/b.pdf", b"1")
    storage_server.put("other/c.pdf", b"1")

    files = await storage.list_files()
    assert sorted(f.name for f in files) == ["a.pdf", "b.pdf"]

    info = await storage.get_file_info("documents/a.pdf")
    assert info is not None
    assert info.size == 5
    assert await storage.get_file_info("documents/missing.pdf") is None


@pytest.mark.asyncio
async def test_list_error_returns_empty(storage, storage_server):
    storage_server.list_error = "boom"
    assert await storage.list_files() == []
    stats = await storage.get_storage_stats()
    assert stats.total_files == 0
    assert stats.reachable is False
    assert stats.error == "boom"


@pytest.mark.asyncio
async def test_delete_file(storage, storage_server):
    storage_server.put("documents/a.pdf")
    result = await storage.delete_file("documents/a.pdf")
    assert result.success is True
    assert storage_server.objects == {}


@pytest.mark.asyncio
async def test_cleanup_old_files_removes_only_stale(storage, storage_server):
    now = datetime.now(timezone.utc)
    storage_server.put("documents/old.pdf", last_modified=now - timedelta(hours=200))
    storage_server.put("documents/new.pdf", last_modified=now - timedelta(hours=1))

    removed = await storage.cleanup_old_files("documents", max_age_hours=168)

    assert removed == 1
    assert list(storage_server.objects) == ["documents/new.pdf"]


@pytest.mark.asyncio
async def test_storage_stats(storage, storage_server):
    now = datetime.now(timezone.utc)
    storage_server.put("documents/old.pdf", b"123", last_modified=now - timedelta(hours=10))
    storage_server.put("documents/new.pdf", b"12", last_modified=now - timedelta(hours=1))

    stats = await storage.get_storage_stats()

    assert stats.reachable
    assert stats.total_files == 2
    assert stats.total_size == 5
    assert stats.oldest_file.name == "old.pdf"
    assert stats.newest_file.name == "new.pdf"
    assert stats.oldest_file.age_hours == pytest.approx(10, abs=0.1)


@pytest.mark.asyncio
async def test_empty_bucket_stats_are_reachable(storage):
    stats = await storage.get_storage_stats()
    assert stats.total_files == 0
    assert stats.oldest_file is None
    assert stats.reachable is True


@pytest.mark.asyncio
async def test_ensure_bucket_existing_and_created(storage, storage_server):
    assert (await storage.ensure_bucket()).success is True
    assert len(storage_server.buckets) == 1

    storage_server.buckets.clear()
    assert (await storage.ensure_bucket()).success is True
    assert storage_server.buckets == {storage.bucket}
    create = storage_server.requests[-1]
    assert create.method == "POST"
    assert create.url.path == "/storage/v1/bucket"


def test_public_url_layout(storage):
    assert storage.get_public_url("documents/a.pdf") == (
        "https://storage.test/storage/v1/object/public/order-documents/documents/a.pdf"
    )


def _storage_answering(settings, body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StorageService(settings.storage, client=client)


@pytest.mark.asyncio
async def test_non_list_listing_body_is_an_error(settings):
    storage = _storage_answering(settings, {"message": "weird"})

    assert await storage.list_files() == []
    assert await storage.get_file_info("documents/a.pdf") is None
    assert await storage.cleanup_old_files() == 0
    stats = await storage.get_storage_stats()
    assert stats.total_files == 0
    assert stats.reachable is False
    assert stats.error == "Unexpected listing response"


@pytest.mark.asyncio
async def test_malformed_listing_entries_are_skipped(settings):
    storage = _storage_answering(settings, [
        "not-an-entry",
        {"id": "no-name", "metadata": {"size": 3}},
        {"name": "bad-size.pdf", "updated_at": "yesterday", "metadata": {"size": "n/a"}},
        {"name": "ok.pdf", "updated_at": "2024-01-01T00:00:00Z", "metadata": {"size": 10}},
    ])

    files = await storage.list_files()

    assert [f.name for f in files] == ["bad-size.pdf", "ok.pdf"]
    assert files[0].size == 0
    assert files[0].last_modified_at is None
    stats = await storage.get_storage_stats()
    assert stats.reachable is True
    assert stats.total_files == 2
    assert stats.total_size == 10
    assert stats.oldest_file.name == "ok.pdf"
