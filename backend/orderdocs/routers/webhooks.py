"""Inbound webhook endpoints (database triggers)."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header
from fastapi.responses import JSONResponse

from ..context import AppContext, get_context
from ..utils.errors import ERROR_CODES

router = APIRouter()


@router.post("/order-created")
async def order_created(
    payload: Dict[str, Any] = Body(...),
    x_webhook_secret: Optional[str] = Header(default=None, alias="X-Webhook-Secret"),
    ctx: AppContext = Depends(get_context),
):
    event_id, result = await ctx.webhooks.process_order_created(payload, x_webhook_secret)
    if result.success:
        status_code = 200
    elif result.code == ERROR_CODES["order_not_found"]:
        status_code = 404
    else:
        status_code = 500
    body = result.to_payload()
    body["webhookEventId"] = event_id
    return JSONResponse(status_code=status_code, content=body)
