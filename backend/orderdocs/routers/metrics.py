"""Prometheus metrics exposition router.

Registers a /metrics endpoint exposing the prometheus_client default registry
(request metrics from main plus the document pipeline counters).
"""
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:  # noqa: D401
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
