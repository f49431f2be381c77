import pytest  # noqa: F401
from orderdocs.utils.errors import (
    error_payload,
    ERROR_CODES,
    DocumentNotFound,
    GenerationDisabled,
    StorageError,
    WebhookRejected,
)


def test_error_payload_basic():
    p = error_payload(ERROR_CODES["validation"], "Invalid data", details={
                      "field": "orderId"}, path="/api/documents/generate")
    assert p["status"] == "error"
    assert p["success"] is False
    assert p["error"]["code"] == ERROR_CODES["validation"]
    assert p["error"]["details"] == {"field": "orderId"}
    assert p["path"] == "/api/documents/generate"


def test_error_payload_omits_empty_fields():
    p = error_payload(ERROR_CODES["internal"], "boom")
    assert "details" not in p["error"]
    assert "path" not in p


def test_domain_error_status_codes():
    assert GenerationDisabled().status_code == 503
    assert GenerationDisabled().message == "Document generation is currently disabled"
    assert DocumentNotFound("d1").status_code == 404
    assert DocumentNotFound("d1").details == {"document_id": "d1"}
    assert WebhookRejected().code == ERROR_CODES["webhook_rejected"]


def test_storage_error_message_is_str():
    exc = StorageError("Upload failed: x")
    assert str(exc) == "Upload failed: x"
    assert exc.code == ERROR_CODES["storage"]
