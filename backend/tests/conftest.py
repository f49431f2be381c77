"""Test configuration and fixtures.

Every test gets:
  - a fresh SQLite database file (aiosqlite) with tables created via create_all
  - a fake object storage server served through ``httpx.MockTransport``
  - an ``AppContext`` wired to both, with PDF stream compression off so that
    drawn text can be asserted against the raw PDF bytes

Environment Variables:
    TESTING=true      -> test-oriented defaults in settings
    FAST_TESTS=1      -> skip tracing setup in the application lifespan
"""

import json
import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Flag test mode early
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("FAST_TESTS", "1")

from orderdocs.config.database import Database  # noqa: E402
from orderdocs.config.settings import Settings  # noqa: E402
from orderdocs.context import AppContext  # noqa: E402
from orderdocs.main import create_application  # noqa: E402
from orderdocs.seed import DatabaseSeeder  # noqa: E402

STORAGE_URL = "https://storage.test"
SERVICE_KEY = "test-service-key"
WEBHOOK_SECRET = "test-webhook-secret"
BUCKET = "order-documents"


class FakeStorageServer:
    """In-memory stand-in for the Storage REST API (one bucket)."""

    def __init__(self, bucket: str = BUCKET):
        self.bucket = bucket
        self.buckets = {bucket}
        # path -> (content, last_modified)
        self.objects: Dict[str, tuple] = {}
        self.requests = []
        self.upload_error: Optional[str] = None
        self.list_error: Optional[str] = None

    def put(self, path: str, content: bytes = b"%PDF-1.4", last_modified: Optional[datetime] = None):
        self.objects[path] = (content, last_modified or datetime.now(timezone.utc))

    @staticmethod
    def _error(status: int, message: str) -> httpx.Response:
        return httpx.Response(status, json={"statusCode": str(status), "error": "Error", "message": message})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != f"Bearer {SERVICE_KEY}":
            return self._error(401, "Invalid JWT")
        path = request.url.path
        object_prefix = f"/storage/v1/object/{self.bucket}/"

        if request.method == "POST" and path == f"/storage/v1/object/list/{self.bucket}":
            return self._list(request)
        if request.method == "POST" and path.startswith(object_prefix):
            return self._upload(request, path[len(object_prefix):])
        if request.method == "DELETE" and path == f"/storage/v1/object/{self.bucket}":
            removed = []
            for key in json.loads(request.content)["prefixes"]:
                if self.objects.pop(key, None) is not None:
                    removed.append({"name": key})
            return httpx.Response(200, json=removed)
        if request.method == "GET" and path.startswith("/storage/v1/bucket/"):
            name = path.rsplit("/", 1)[-1]
            if name in self.buckets:
                return httpx.Response(200, json={"id": name, "name": name, "public": True})
            return self._error(404, "Bucket not found")
        if request.method == "POST" and path == "/storage/v1/bucket":
            name = json.loads(request.content)["name"]
            if name in self.buckets:
                return self._error(409, "The resource already exists")
            self.buckets.add(name)
            return httpx.Response(200, json={"name": name})
        return self._error(404, "Not found")

    def _upload(self, request: httpx.Request, key: str) -> httpx.Response:
        if self.upload_error:
            return self._error(500, self.upload_error)
        if key in self.objects and request.headers.get("x-upsert") != "true":
            return self._error(409, "The resource already exists")
        self.put(key, request.content)
        return httpx.Response(200, json={"Key": f"{self.bucket}/{key}"})

    def _list(self, request: httpx.Request) -> httpx.Response:
        if self.list_error:
            return self._error(500, self.list_error)
        body = json.loads(request.content)
        prefix = body.get("prefix", "").strip("/")
        search = body.get("search")
        entries = []
        for key, (content, modified) in sorted(self.objects.items()):
            folder, _, name = key.rpartition("/")
            if folder != prefix or (search and search not in name):
                continue
            stamp = modified.isoformat().replace("+00:00", "Z")
            entries.append({
                "name": name,
                "id": key,
                "created_at": stamp,
                "updated_at": stamp,
                "metadata": {"size": len(content), "mimetype": "application/pdf"},
            })
        return httpx.Response(200, json=entries)


def _register_markers(config):  # noqa: D401
    """Internal helper to register custom markers (invoked from hook)."""
    markers = [
        ("contract", "mark test as a contract test"),
        ("integration", "mark test as an integration test"),
        ("unit", "mark test as a unit test"),
        ("slow", "mark test as slow running"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


def pytest_configure(config):  # noqa: D401
    """Pytest hook: register custom markers."""
    _register_markers(config)


def make_env(tmp_path, **overrides) -> Dict[str, str]:
    env = {
        "APP_ENV": "test",
        "TESTING": "true",
        "ENABLE_DOCUMENT_GENERATION": "true",
        "ENABLE_RECEIPT_GENERATION": "true",
        "ENABLE_PICK_SLIP_GENERATION": "true",
        "DOCUMENT_OUTPUT_DIR": str(tmp_path / "documents"),
        "STORAGE_URL": STORAGE_URL,
        "STORAGE_SERVICE_KEY": SERVICE_KEY,
        "STORAGE_BUCKET": BUCKET,
        "ENABLE_WEBHOOK_PROCESSING": "true",
        "WEBHOOK_SECRET": WEBHOOK_SECRET,
    }
    env.update(overrides)
    return env


@pytest.fixture
def env(tmp_path) -> Dict[str, str]:
    """Mutable env mapping; tests tweak it before `settings` is built."""
    return make_env(tmp_path)


@pytest.fixture
def settings(env) -> Settings:
    return Settings.load(env)


@pytest.fixture
def storage_server() -> FakeStorageServer:
    return FakeStorageServer()


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.create_tables()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def context(settings, database, storage_server) -> AsyncGenerator[AppContext, None]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(storage_server))
    ctx = AppContext.create(settings, database=database, http_client=http_client, compress=False)
    yield ctx
    await http_client.aclose()


@pytest_asyncio.fixture
async def seeder(database, settings) -> DatabaseSeeder:
    return DatabaseSeeder(database, settings)


@pytest_asyncio.fixture
async def async_client(context) -> AsyncGenerator[AsyncClient, None]:  # noqa: D401
    app = create_application(context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def sample_order(seeder):
    """Order o1 / TEST-1 with two bundles of Mixed Variety."""
    order = await seeder.create_test_order(
        id="o1",
        order_number="TEST-1",
        subtotal=Decimal("100.00"),
        addon_total=Decimal("25.00"),
        total=Decimal("125.00"),
        special_instructions=None,
    )
    await seeder.create_test_order_item(order.id, "Mixed Variety", 2, unit_price=Decimal("50.00"))
    return order
