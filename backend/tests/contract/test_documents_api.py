import httpx
import pytest
from fastapi import status
from httpx import AsyncClient, ASGITransport

from orderdocs.config.settings import Settings
from orderdocs.context import AppContext
from orderdocs.main import create_application

pytestmark = [pytest.mark.contract]


@pytest.fixture
def disabled_client_factory(env, database, storage_server):
    """Client whose settings have ENABLE_DOCUMENT_GENERATION=false."""
    def build():
        settings = Settings.load({**env, "ENABLE_DOCUMENT_GENERATION": "false"})
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(storage_server))
        ctx = AppContext.create(settings, database=database, http_client=http_client, compress=False)
        return AsyncClient(transport=ASGITransport(app=create_application(ctx)), base_url="http://test")

    return build


@pytest.mark.asyncio
async def test_generate_receipt_contract(async_client: AsyncClient, sample_order):
    resp = await async_client.post("/api/documents/generate", json={"orderId": "o1", "documentType": "receipt"})
    assert resp.status_code == status.HTTP_200_OK, resp.text
    body = resp.json()
    assert body["success"] is True
    receipt = body["documents"]["receipt"]
    assert receipt["status"] == "generated"
    assert receipt["fileUrl"]
    assert receipt["id"]
    assert "pickSlip" not in body["documents"]
    assert "X-Response-Time" in resp.headers
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_generate_both_contract(async_client: AsyncClient, sample_order):
    resp = await async_client.post("/api/documents/generate", json={"orderId": "o1", "documentType": "both"})
    assert resp.status_code == 200, resp.text
    documents = resp.json()["documents"]
    assert documents["receipt"]["status"] == "generated"
    assert documents["pickSlip"]["status"] == "generated"


@pytest.mark.asyncio
async def test_generate_unknown_order_404(async_client: AsyncClient):
    resp = await async_client.post("/api/documents/generate", json={"orderId": "nope", "documentType": "receipt"})
    assert resp.status_code == status.HTTP_404_NOT_FOUND
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Order not found"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"documentType": "receipt"},
    {"orderId": "o1"},
    {"orderId": "o1", "documentType": "invoice"},
    {"orderId": "", "documentType": "receipt"},
])
async def test_generate_validation_errors(async_client: AsyncClient, payload):
    resp = await async_client.post("/api/documents/generate", json=payload)
    assert resp.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    body = resp.json()
    assert body["status"] == "error"
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["path"] == "/api/documents/generate"


@pytest.mark.asyncio
async def test_generate_disabled_503_before_validation(disabled_client_factory):
    async with disabled_client_factory() as client:
        resp = await client.post("/api/documents/generate", json={})
        assert resp.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        body = resp.json()
        assert body["error"]["code"] == "GENERATION_DISABLED"
        assert body["error"]["message"] == "Document generation is currently disabled"

        retry = await client.post("/api/documents/retry/anything")
        assert retry.status_code == 503


@pytest.mark.asyncio
async def test_list_documents_newest_first(async_client: AsyncClient, sample_order):
    first = (await async_client.post("/api/documents/generate",
                                     json={"orderId": "o1", "documentType": "receipt"})).json()
    second = (await async_client.post("/api/documents/generate",
                                      json={"orderId": "o1", "documentType": "pick_slip"})).json()

    resp = await async_client.get("/api/documents/o1")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["orderId"] == "o1"
    assert body["count"] == 2
    ids = [d["id"] for d in body["documents"]]
    assert ids == [second["documents"]["pickSlip"]["id"], first["documents"]["receipt"]["id"]]
    doc = body["documents"][0]
    for field in ["order_id", "document_type", "file_url", "status", "retry_count", "metadata", "created_at"]:
        assert field in doc, f"Missing field '{field}' in document: {doc}"


@pytest.mark.asyncio
async def test_list_documents_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/documents/unknown-order")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "orderId": "unknown-order", "documents": [], "count": 0}


@pytest.mark.asyncio
async def test_retry_contract(async_client: AsyncClient, sample_order, storage_server):
    storage_server.upload_error = "offline"
    failed = await async_client.post("/api/documents/generate", json={"orderId": "o1", "documentType": "receipt"})
    assert failed.status_code == 500
    body = failed.json()
    assert body["success"] is False
    assert body["documents"]["receipt"]["status"] == "failed"
    assert "offline" in body["documents"]["receipt"]["error"]
    document_id = body["documents"]["receipt"]["id"]

    storage_server.upload_error = None
    resp = await async_client.post(f"/api/documents/retry/{document_id}")
    assert resp.status_code == 200, resp.text
    assert resp.json()["documents"]["receipt"]["id"] == document_id

    listing = (await async_client.get("/api/documents/o1")).json()
    assert listing["count"] == 1
    assert listing["documents"][0]["retry_count"] == 1
    assert listing["documents"][0]["status"] == "generated"


@pytest.mark.asyncio
async def test_retry_unknown_document_404(async_client: AsyncClient):
    resp = await async_client.post("/api/documents/retry/missing")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Document record not found"


@pytest.mark.asyncio
async def test_documents_health(async_client: AsyncClient, storage_server):
    resp = await async_client.get("/api/documents/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["service"] == "document-generation"
    assert body["healthy"] is True
    assert body["storageStats"]["total_files"] == 0

    storage_server.list_error = "down"
    resp = await async_client.get("/api/documents/health")
    assert resp.status_code == 503
    assert resp.json()["storage"] is False
