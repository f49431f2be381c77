"""Service layer package.

Storage client, PDF facade and the document orchestrator.
"""

__all__ = [
    "document_service",
    "document_types",
    "pdf_service",
    "storage_service",
]
