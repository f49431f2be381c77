"""API routers."""
from .documents import router as documents_router  # noqa: F401
from .metrics import router as metrics_router  # noqa: F401
from .system import router as system_router  # noqa: F401
from .webhooks import router as webhooks_router  # noqa: F401

__all__ = ["documents_router", "metrics_router", "system_router", "webhooks_router"]
