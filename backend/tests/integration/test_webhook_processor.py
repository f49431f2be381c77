import pytest
from sqlalchemy import select

from orderdocs.config.settings import Settings
from orderdocs.models.database import WebhookEvent
from orderdocs.services.webhook_service import MissingOrderId, WebhookProcessor, extract_order_id
from orderdocs.utils.errors import GenerationDisabled, WebhookDisabled, WebhookRejected

pytestmark = [pytest.mark.integration]


def order_payload(order_id="o1"):
    return {"type": "INSERT", "table": "orders", "record": {"id": order_id, "order_number": "TEST-1"}}


async def load_event(database, event_id) -> WebhookEvent:
    async with database.session() as db:
        return (await db.execute(select(WebhookEvent).where(WebhookEvent.id == event_id))).scalar_one()


def test_extract_order_id():
    assert extract_order_id({"record": {"id": "abc"}}) == "abc"
    assert extract_order_id({"order_id": "xyz"}) == "xyz"
    assert extract_order_id({"record": {}}) is None
    assert extract_order_id({}) is None


@pytest.mark.asyncio
async def test_order_created_generates_both_and_logs_event(context, sample_order, settings):
    event_id, response = await context.webhooks.process_order_created(
        order_payload(), settings.webhook.secret
    )

    assert response.success is True
    assert response.documents.receipt.status == "generated"
    assert response.documents.pick_slip.status == "generated"

    rows = await context.documents.get_order_documents("o1")
    assert {r.webhook_event_id for r in rows} == {event_id}

    event = await load_event(context.database, event_id)
    assert event.status == "completed"
    assert event.event_type == "order_created"
    assert event.record_id == "o1"
    assert event.processed_at is not None
    assert event.processing_duration_ms is not None


@pytest.mark.asyncio
async def test_order_created_respects_document_switches(context, sample_order, env):
    receipts_only = Settings.load({**env, "ENABLE_PICK_SLIP_GENERATION": "false"})
    processor = WebhookProcessor(context.database, context.documents, receipts_only)

    _, response = await processor.process_order_created(order_payload(), receipts_only.webhook.secret)

    assert response.documents.receipt is not None
    assert response.documents.pick_slip is None


@pytest.mark.asyncio
async def test_missing_order_marks_event_failed(context, settings):
    event_id, response = await context.webhooks.process_order_created(
        order_payload("ghost"), settings.webhook.secret
    )
    assert response.success is False
    event = await load_event(context.database, event_id)
    assert event.status == "failed"
    assert event.error_message == "Order not found"


@pytest.mark.asyncio
async def test_wrong_secret_rejected(context):
    with pytest.raises(WebhookRejected):
        await context.webhooks.process_order_created(order_payload(), "nope")
    with pytest.raises(WebhookRejected):
        await context.webhooks.process_order_created(order_payload(), None)


@pytest.mark.asyncio
async def test_payload_without_order_id(context, settings):
    with pytest.raises(MissingOrderId):
        await context.webhooks.process_order_created({"type": "INSERT", "record": {}}, settings.webhook.secret)


@pytest.mark.asyncio
async def test_disabled_switches(context, env):
    no_webhooks = Settings.load({**env, "ENABLE_WEBHOOK_PROCESSING": "false"})
    processor = WebhookProcessor(context.database, context.documents, no_webhooks)
    with pytest.raises(WebhookDisabled):
        await processor.process_order_created(order_payload(), no_webhooks.webhook.secret)

    no_generation = Settings.load({**env, "ENABLE_DOCUMENT_GENERATION": "false"})
    processor = WebhookProcessor(context.database, context.documents, no_generation)
    with pytest.raises(GenerationDisabled):
        await processor.process_order_created(order_payload(), no_generation.webhook.secret)
