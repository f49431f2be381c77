import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]

ORDER_CREATED = "/api/webhooks/order-created"


def payload(order_id="o1"):
    return {"type": "INSERT", "table": "orders", "record": {"id": order_id}}


@pytest.mark.asyncio
async def test_order_created_contract(async_client: AsyncClient, sample_order, settings):
    resp = await async_client.post(ORDER_CREATED, json=payload(),
                                   headers={"X-Webhook-Secret": settings.webhook.secret})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["webhookEventId"]
    assert body["documents"]["receipt"]["status"] == "generated"
    assert body["documents"]["pickSlip"]["status"] == "generated"


@pytest.mark.asyncio
async def test_order_created_unknown_order(async_client: AsyncClient, settings):
    resp = await async_client.post(ORDER_CREATED, json=payload("ghost"),
                                   headers={"X-Webhook-Secret": settings.webhook.secret})
    assert resp.status_code == 404
    assert resp.json()["webhookEventId"]


@pytest.mark.asyncio
async def test_order_created_requires_secret(async_client: AsyncClient, sample_order):
    resp = await async_client.post(ORDER_CREATED, json=payload())
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "WEBHOOK_REJECTED"

    resp = await async_client.post(ORDER_CREATED, json=payload(), headers={"X-Webhook-Secret": "wrong"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_order_created_without_order_id(async_client: AsyncClient, settings):
    resp = await async_client.post(ORDER_CREATED, json={"type": "INSERT", "record": {}},
                                   headers={"X-Webhook-Secret": settings.webhook.secret})
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "No order ID found in payload"
