"""Process-wide application context.

Holds the explicitly constructed services for one running app: created once in
the FastAPI lifespan (or injected by tests) and torn down on shutdown.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from .config.database import Database
from .config.settings import Settings
from .services.document_service import DocumentService
from .services.pdf_service import PDFGenerationService
from .services.storage_service import StorageService
from .services.webhook_service import WebhookProcessor

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    database: Database
    http_client: httpx.AsyncClient
    storage: StorageService
    pdf_generator: PDFGenerationService
    documents: DocumentService
    webhooks: WebhookProcessor

    @classmethod
    def create(cls, settings: Settings, database: Optional[Database] = None,
               http_client: Optional[httpx.AsyncClient] = None,
               compress: bool = True) -> "AppContext":
        database = database or Database.from_settings(settings.database)
        http_client = http_client or httpx.AsyncClient(timeout=30.0)
        storage = StorageService(settings.storage, client=http_client)
        pdf_generator = PDFGenerationService(settings.generation.output_dir, storage, compress=compress)
        documents = DocumentService(database, pdf_generator, storage, settings)
        webhooks = WebhookProcessor(database, documents, settings)
        return cls(
            settings=settings,
            database=database,
            http_client=http_client,
            storage=storage,
            pdf_generator=pdf_generator,
            documents=documents,
            webhooks=webhooks,
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()
        await self.database.dispose()
        logger.info("Application context closed")


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the running app's context."""
    return request.app.state.context


__all__ = ["AppContext", "get_context"]
