import os
import time
from datetime import datetime
from decimal import Decimal

import httpx
import pytest

from orderdocs.services.document_types import (
    DocumentGenerationOptions,
    ItemData,
    OrderSnapshot,
    OrderWithDetails,
    ProductInfo,
)
from orderdocs.services.pdf_service import PDFGenerationService
from orderdocs.services.storage_service import StorageService
from orderdocs.utils.errors import StorageError

pytestmark = [pytest.mark.unit]


@pytest.fixture
def order_data():
    order = OrderSnapshot(
        id="o1", order_number="TEST-1", company_name="Acme", contact_name="Dana",
        email="d@example.com", phone="555", business_address="1 Main", city="Vista",
        state="CA", zip_code="92083", subtotal=Decimal("60"), addon_total=Decimal("0"),
        total=Decimal("60"), status="pending", created_at=datetime(2024, 1, 2),
    )
    item = ItemData(quantity=2, unit_price=Decimal("30"), total_price=Decimal("60"),
                    product=ProductInfo(name="Mixed Variety", type="starter"))
    return OrderWithDetails(order=order, items=[item])


@pytest.fixture
def generator(tmp_path, settings, storage_server):
    client = httpx.AsyncClient(transport=httpx.MockTransport(storage_server))
    storage = StorageService(settings.storage, client=client)
    return PDFGenerationService(str(tmp_path / "out"), storage, compress=False)


@pytest.mark.asyncio
async def test_generate_receipt_writes_file(generator, order_data, tmp_path):
    data = generator.prepare_template_data(order_data, "receipt")
    result = await generator.generate_receipt(data)

    assert result.success is True
    assert os.path.dirname(result.file_path) == str(tmp_path / "out")
    assert os.path.basename(result.file_path).startswith("receipt_TEST-1_")
    assert result.metadata.page_count == 1
    assert result.metadata.file_size == os.path.getsize(result.file_path)
    with open(result.file_path, "rb") as fh:
        assert fh.read(4) == b"%PDF"


@pytest.mark.asyncio
async def test_pick_slip_filename_prefix_and_custom_name(generator, order_data):
    data = generator.prepare_template_data(order_data, "pick_slip")
    default = await generator.generate_pick_slip(data)
    assert os.path.basename(default.file_path).startswith("pickslip_TEST-1_")

    named = await generator.generate_pick_slip(data, DocumentGenerationOptions(filename="custom.pdf", compress=False))
    assert os.path.basename(named.file_path) == "custom.pdf"


@pytest.mark.asyncio
async def test_unknown_document_type_is_failure_result(generator, order_data):
    data = generator.prepare_template_data(order_data, "invoice")
    result = await generator.generate_document("invoice", data)
    assert result.success is False
    assert result.error


@pytest.mark.asyncio
async def test_generate_both_documents_ignores_filename(generator, order_data):
    results = await generator.generate_both_documents(
        order_data, DocumentGenerationOptions(filename="same.pdf", compress=False)
    )
    assert set(results) == {"receipt", "pick_slip"}
    assert all(r.success for r in results.values())
    assert results["receipt"].file_path != results["pick_slip"].file_path


@pytest.mark.asyncio
async def test_upload_document_success(generator, order_data, storage_server):
    data = generator.prepare_template_data(order_data, "receipt")
    result = await generator.generate_receipt(data)
    uploaded = await generator.upload_document(result.file_path, "receipt_TEST-1_1.pdf")
    assert uploaded.file_path == "documents/receipt_TEST-1_1.pdf"
    assert uploaded.file_url.endswith("/documents/receipt_TEST-1_1.pdf")
    assert "documents/receipt_TEST-1_1.pdf" in storage_server.objects


@pytest.mark.asyncio
async def test_upload_document_raises_on_failure(generator, order_data, storage_server):
    storage_server.upload_error = "bucket full"
    data = generator.prepare_template_data(order_data, "receipt")
    result = await generator.generate_receipt(data)
    with pytest.raises(StorageError) as excinfo:
        await generator.upload_document(result.file_path, "r.pdf")
    assert "bucket full" in str(excinfo.value)


@pytest.mark.asyncio
async def test_upload_without_storage_raises(tmp_path):
    generator = PDFGenerationService(str(tmp_path))
    with pytest.raises(StorageError):
        await generator.upload_document(str(tmp_path / "x.pdf"), "x.pdf")


def test_cleanup_and_stats(tmp_path):
    generator = PDFGenerationService(str(tmp_path))
    old = tmp_path / "old.pdf"
    new = tmp_path / "new.pdf"
    other = tmp_path / "notes.txt"
    for path in (old, new, other):
        path.write_bytes(b"x" * 10)
    two_days_ago = time.time() - 48 * 3600
    os.utime(old, (two_days_ago, two_days_ago))

    stats = generator.get_service_stats()
    assert stats["total_files"] == 2
    assert stats["total_size"] == 20
    assert stats["oldest_file"]["name"] == "old.pdf"
    assert stats["newest_file"]["name"] == "new.pdf"

    assert generator.cleanup_old_files(24) == 1
    assert not old.exists()
    assert new.exists()
    assert other.exists()


def test_stats_for_missing_directory(tmp_path):
    generator = PDFGenerationService(str(tmp_path / "missing"))
    stats = generator.get_service_stats()
    assert stats["total_files"] == 0
    assert stats["oldest_file"] is None
    assert generator.cleanup_old_files() == 0
