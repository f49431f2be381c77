"""Application settings module.

Centralized configuration built from environment variables with documented defaults.
The snapshot is immutable and cached for the process lifetime (no hot reload);
`Settings.load()` accepts an explicit mapping so tests can build isolated snapshots.
"""
from __future__ import annotations

from functools import lru_cache
import logging
import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict


logger = logging.getLogger(__name__)


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() == "true"


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip(), 10)
    except ValueError:
        return default


def _get_str(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True)


class GenerationSettings(_Section):
    enabled: bool = False
    receipt_enabled: bool = True
    pick_slip_enabled: bool = True
    timeout_ms: int = 30000
    max_retries: int = 2
    output_dir: str = "/tmp/documents"


class EmailSettings(_Section):
    enabled: bool = False
    order_confirmation_enabled: bool = True
    status_updates_enabled: bool = False
    from_email: Optional[str] = "orders@bootsandhoney.com"
    from_name: str = "Boots & Honey"
    send_timeout_ms: int = 10000
    max_retries: int = 3
    test_mode: bool = True
    test_recipient: Optional[str] = None
    resend_api_key: Optional[str] = None


class WebhookSettings(_Section):
    enabled: bool = False
    order_created_enabled: bool = True
    order_updated_enabled: bool = False
    secret: Optional[str] = None
    max_retries: int = 3
    processing_timeout_ms: int = 60000
    rate_limit_per_minute: int = 60


class StorageSettings(_Section):
    url: Optional[str] = None
    service_key: Optional[str] = None
    bucket: str = "order-documents"
    app_base_url: str = "http://localhost:8000"


class DebugSettings(_Section):
    webhook_events: bool = False
    document_generation: bool = False
    email_sending: bool = False


class DatabaseSettings(_Section):
    url: str = "sqlite+aiosqlite:///./orderdocs.db"
    echo: bool = False
    pool_size: int = 10


class ValidationReport(_Section):
    valid: bool
    errors: List[str] = []


def _database_settings(env: Mapping[str, str]) -> DatabaseSettings:
    if _get_bool(env, "TESTING", False):
        url = "sqlite+aiosqlite:///./test.db"
    else:
        url = _get_str(env, "ASYNC_DATABASE_URL") or _get_str(env, "DATABASE_URL") or DatabaseSettings().url
        # Promote plain postgres URLs to the asyncpg driver
        for prefix in ("postgresql+psycopg://", "postgresql://", "postgres://"):
            if url.startswith(prefix):
                url = "postgresql+asyncpg://" + url[len(prefix):]
                break
    return DatabaseSettings(
        url=url,
        echo=_get_bool(env, "DATABASE_ECHO", False),
        pool_size=_get_int(env, "DATABASE_POOL_SIZE", 10),
    )


class Settings(_Section):
    app_env: str = "development"
    generation: GenerationSettings = GenerationSettings()
    email: EmailSettings = EmailSettings()
    webhook: WebhookSettings = WebhookSettings()
    storage: StorageSettings = StorageSettings()
    debug: DebugSettings = DebugSettings()
    database: DatabaseSettings = DatabaseSettings()

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Load settings from environment with type coercion and defaults."""
        env = os.environ if environ is None else environ
        return cls(
            app_env=_get_str(env, "APP_ENV", "development"),
            generation=GenerationSettings(
                enabled=_get_bool(env, "ENABLE_DOCUMENT_GENERATION", False),
                receipt_enabled=_get_bool(env, "ENABLE_RECEIPT_GENERATION", True),
                pick_slip_enabled=_get_bool(env, "ENABLE_PICK_SLIP_GENERATION", True),
                timeout_ms=_get_int(env, "DOCUMENT_GENERATION_TIMEOUT_MS", 30000),
                max_retries=_get_int(env, "DOCUMENT_GENERATION_MAX_RETRIES", 2),
                output_dir=_get_str(env, "DOCUMENT_OUTPUT_DIR", "/tmp/documents"),
            ),
            email=EmailSettings(
                enabled=_get_bool(env, "ENABLE_EMAIL_NOTIFICATIONS", False),
                order_confirmation_enabled=_get_bool(env, "ENABLE_ORDER_CONFIRMATION_EMAIL", True),
                status_updates_enabled=_get_bool(env, "ENABLE_STATUS_UPDATE_EMAILS", False),
                from_email=_get_str(env, "SMTP_FROM_EMAIL", "orders@bootsandhoney.com"),
                from_name=_get_str(env, "SMTP_FROM_NAME", "Boots & Honey"),
                send_timeout_ms=_get_int(env, "EMAIL_SEND_TIMEOUT_MS", 10000),
                max_retries=_get_int(env, "EMAIL_MAX_RETRIES", 3),
                test_mode=_get_bool(env, "TEST_MODE", True),
                test_recipient=_get_str(env, "TEST_EMAIL_RECIPIENT"),
                resend_api_key=_get_str(env, "RESEND_API_KEY"),
            ),
            webhook=WebhookSettings(
                enabled=_get_bool(env, "ENABLE_WEBHOOK_PROCESSING", False),
                order_created_enabled=_get_bool(env, "ENABLE_ORDER_CREATED_WEBHOOK", True),
                order_updated_enabled=_get_bool(env, "ENABLE_ORDER_UPDATED_WEBHOOK", False),
                secret=_get_str(env, "WEBHOOK_SECRET"),
                max_retries=_get_int(env, "WEBHOOK_MAX_RETRIES", 3),
                processing_timeout_ms=_get_int(env, "WEBHOOK_PROCESSING_TIMEOUT_MS", 60000),
                rate_limit_per_minute=_get_int(env, "WEBHOOK_RATE_LIMIT_PER_MINUTE", 60),
            ),
            storage=StorageSettings(
                url=_get_str(env, "STORAGE_URL"),
                service_key=_get_str(env, "STORAGE_SERVICE_KEY"),
                bucket=_get_str(env, "STORAGE_BUCKET", "order-documents"),
                app_base_url=_get_str(env, "APP_BASE_URL", "http://localhost:8000"),
            ),
            debug=DebugSettings(
                webhook_events=_get_bool(env, "DEBUG_WEBHOOK_EVENTS", False),
                document_generation=_get_bool(env, "DEBUG_DOCUMENT_GENERATION", False),
                email_sending=_get_bool(env, "DEBUG_EMAIL_SENDING", False),
            ),
            database=_database_settings(env),
        )

    # ------------------------------------------------------------------ #
    # Feature predicates
    # ------------------------------------------------------------------ #

    def can_generate_documents(self) -> bool:
        return self.generation.enabled

    def can_generate_receipts(self) -> bool:
        return self.generation.enabled and self.generation.receipt_enabled

    def can_generate_pick_slips(self) -> bool:
        return self.generation.enabled and self.generation.pick_slip_enabled

    def can_send_emails(self) -> bool:
        return self.email.enabled

    def can_process_webhooks(self) -> bool:
        return self.webhook.enabled

    def can_process_order_created_webhooks(self) -> bool:
        return self.webhook.enabled and self.webhook.order_created_enabled

    def can_process_order_updated_webhooks(self) -> bool:
        return self.webhook.enabled and self.webhook.order_updated_enabled

    def is_development(self) -> bool:
        return self.app_env == "development"

    def is_production(self) -> bool:
        return self.app_env == "production"

    def is_test_mode(self) -> bool:
        return self.email.test_mode

    # ------------------------------------------------------------------ #
    # Validation (reports only, callers decide)
    # ------------------------------------------------------------------ #

    def validate_email(self) -> ValidationReport:
        errors: List[str] = []
        if self.email.enabled:
            if not self.email.resend_api_key:
                errors.append("RESEND_API_KEY is required when email notifications are enabled")
            if not self.email.from_email:
                errors.append("SMTP_FROM_EMAIL is required when email notifications are enabled")
        return ValidationReport(valid=not errors, errors=errors)

    def validate_webhook(self) -> ValidationReport:
        errors: List[str] = []
        if self.webhook.enabled and not self.webhook.secret:
            errors.append("WEBHOOK_SECRET is required when webhook processing is enabled")
        return ValidationReport(valid=not errors, errors=errors)

    def validate_storage(self) -> ValidationReport:
        errors: List[str] = []
        if self.generation.enabled:
            if not self.storage.url:
                errors.append("STORAGE_URL is required for document storage")
            if not self.storage.service_key:
                errors.append("STORAGE_SERVICE_KEY is required for document storage")
        return ValidationReport(valid=not errors, errors=errors)

    def validate_all(self) -> ValidationReport:
        errors: List[str] = []
        for report in (self.validate_email(), self.validate_webhook(), self.validate_storage()):
            errors.extend(report.errors)
        return ValidationReport(valid=not errors, errors=errors)

    def summary(self) -> dict:
        """Non-secret view of the configuration for logs and the config endpoint."""
        return {
            "environment": self.app_env,
            "document_generation": {
                "enabled": self.generation.enabled,
                "receipts": self.generation.receipt_enabled,
                "pick_slips": self.generation.pick_slip_enabled,
                "timeout_ms": self.generation.timeout_ms,
            },
            "email": {
                "enabled": self.email.enabled,
                "test_mode": self.email.test_mode,
                "from_email": self.email.from_email,
            },
            "webhooks": {
                "enabled": self.webhook.enabled,
                "order_created": self.webhook.order_created_enabled,
                "order_updated": self.webhook.order_updated_enabled,
            },
            "storage": {
                "bucket": self.storage.bucket,
                "configured": bool(self.storage.url and self.storage.service_key),
            },
        }

    def log_summary(self) -> None:
        report = self.validate_all()
        logger.info("Configuration loaded: %s", self.summary())
        for error in report.errors:
            logger.warning("Configuration problem: %s", error)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings.load()


__all__ = [
    "Settings",
    "GenerationSettings",
    "EmailSettings",
    "WebhookSettings",
    "StorageSettings",
    "DebugSettings",
    "DatabaseSettings",
    "ValidationReport",
    "get_settings",
]
