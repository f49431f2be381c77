"""Object storage client for the document bucket.

Talks to a Supabase-compatible Storage REST API with the service key.
Public methods return result objects and never raise; the caller decides
what an unsuccessful upload or delete means. Read paths keep the public
empty-list contract, but the listing is tagged internally so health checks
can tell an empty bucket from a broken one.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..config.observability import STORAGE_REQUESTS_TOTAL
from ..config.settings import StorageSettings
from ..utils.formatting import parse_datetime

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
ALLOWED_MIME_TYPES = ["application/pdf", "image/png", "image/jpeg"]
FILE_SIZE_LIMIT = 10 * 1024 * 1024
LIST_PAGE_LIMIT = 1000
UNEXPECTED_LISTING = "Unexpected listing response"


class StorageRequestError(Exception):
    """Internal: a storage call returned an error or could not be made."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class UploadMetadata:
    file_size: int = 0
    upload_time_ms: int = 0


@dataclass
class UploadResult:
    success: bool
    file_url: Optional[str] = None
    storage_path: Optional[str] = None
    error: Optional[str] = None
    metadata: UploadMetadata = field(default_factory=UploadMetadata)


@dataclass
class OperationResult:
    success: bool
    error: Optional[str] = None


@dataclass
class FileInfo:
    name: str
    size: int
    last_modified: str
    public_url: str

    @property
    def last_modified_at(self) -> Optional[datetime]:
        try:
            parsed = parse_datetime(self.last_modified)
        except ValueError:
            return None
        if parsed is not None and parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


@dataclass
class ListingResult:
    ok: bool
    files: List[FileInfo] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class FileAge:
    name: str
    age_hours: float


@dataclass
class StorageStats:
    total_files: int = 0
    total_size: int = 0
    oldest_file: Optional[FileAge] = None
    newest_file: Optional[FileAge] = None
    # Set when the listing failed; zero counts are then "unknown", not "empty"
    error: Optional[str] = None

    @property
    def reachable(self) -> bool:
        return self.error is None


def _size(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class StorageService:
    """Async client for the order-documents bucket."""

    def __init__(self, settings: StorageSettings, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 30.0):
        self.settings = settings
        self.bucket = settings.bucket
        self.base_url = (settings.url or "").rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.settings.service_key)

    def _get_headers(self) -> Dict[str, str]:
        key = self.settings.service_key or ""
        return {
            "Authorization": f"Bearer {key}",
            "apikey": key,
        }

    async def _request(self, operation: str, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Issue one storage API call; raise StorageRequestError on any failure."""
        if not self.configured:
            STORAGE_REQUESTS_TOTAL.labels(operation, "error").inc()
            raise StorageRequestError("Storage is not configured")
        url = f"{self.base_url}/storage/v1/{endpoint.lstrip('/')}"
        headers = {**self._get_headers(), **kwargs.pop("headers", {})}
        logger.debug("Storage %s %s", method, url)
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            STORAGE_REQUESTS_TOTAL.labels(operation, "error").inc()
            raise StorageRequestError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            STORAGE_REQUESTS_TOTAL.labels(operation, "error").inc()
            raise StorageRequestError(f"Network error: {e}") from e

        if response.status_code >= 400:
            STORAGE_REQUESTS_TOTAL.labels(operation, "error").inc()
            raise StorageRequestError(self._error_message(response), response.status_code)
        STORAGE_REQUESTS_TOTAL.labels(operation, "ok").inc()
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    @staticmethod
    def _join(folder: str, file_name: str) -> str:
        folder = folder.strip("/")
        return f"{folder}/{file_name}" if folder else file_name

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    # ------------------------------------------------------------------ #
    # Uploads
    # ------------------------------------------------------------------ #

    async def upload_file(self, local_path: str, file_name: str, folder: str = "documents") -> UploadResult:
        """Upload a local PDF to `{folder}/{file_name}`."""
        try:
            data = await asyncio.to_thread(Path(local_path).read_bytes)
        except OSError as e:
            logger.error("Upload failed reading %s: %s", local_path, e)
            return UploadResult(success=False, error=f"Upload failed: {e}")
        return await self.upload_buffer(data, file_name, folder, PDF_CONTENT_TYPE)

    async def upload_buffer(self, data: bytes, file_name: str, folder: str = "documents",
                            content_type: str = PDF_CONTENT_TYPE) -> UploadResult:
        storage_path = self._join(folder, file_name)
        started = time.perf_counter()
        try:
            # upsert disabled: a second upload to the same path fails instead of overwriting
            await self._request(
                "upload",
                "POST",
                f"object/{self.bucket}/{storage_path}",
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
        except StorageRequestError as e:
            logger.error("Upload of %s failed: %s", storage_path, e.message)
            return UploadResult(
                success=False,
                error=f"Upload failed: {e.message}",
                metadata=UploadMetadata(file_size=len(data)),
            )
        upload_time_ms = int((time.perf_counter() - started) * 1000)
        logger.info("Uploaded %s (%d bytes, %dms)", storage_path, len(data), upload_time_ms)
        return UploadResult(
            success=True,
            file_url=self.get_public_url(storage_path),
            storage_path=storage_path,
            metadata=UploadMetadata(file_size=len(data), upload_time_ms=upload_time_ms),
        )

    # ------------------------------------------------------------------ #
    # Deletes
    # ------------------------------------------------------------------ #

    async def _delete_many(self, paths: List[str]) -> OperationResult:
        try:
            await self._request("delete", "DELETE", f"object/{self.bucket}", json={"prefixes": paths})
        except StorageRequestError as e:
            logger.error("Delete of %d object(s) failed: %s", len(paths), e.message)
            return OperationResult(success=False, error=e.message)
        return OperationResult(success=True)

    async def delete_file(self, path: str) -> OperationResult:
        return await self._delete_many([path])

    # ------------------------------------------------------------------ #
    # Listing
    # ------------------------------------------------------------------ #

    async def _list(self, folder: str, search: Optional[str] = None) -> ListingResult:
        body: Dict[str, Any] = {
            "prefix": folder.strip("/"),
            "limit": LIST_PAGE_LIMIT,
            "offset": 0,
            "sortBy": {"column": "created_at", "order": "desc"},
        }
        if search:
            body["search"] = search
        try:
            entries = await self._request("list", "POST", f"object/list/{self.bucket}", json=body)
        except StorageRequestError as e:
            logger.error("Listing %s failed: %s", folder, e.message)
            return ListingResult(ok=False, error=e.message)

        if not entries:
            entries = []
        if not isinstance(entries, list):
            logger.error("Listing %s returned %s instead of a list", folder, type(entries).__name__)
            return ListingResult(ok=False, error=UNEXPECTED_LISTING)

        files = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("name"):
                logger.warning("Skipping malformed listing entry in %s: %r", folder, entry)
                continue
            meta = entry.get("metadata")
            if not isinstance(meta, dict) or not meta:
                # Folder placeholder
                continue
            files.append(FileInfo(
                name=entry["name"],
                size=_size(meta.get("size")),
                last_modified=str(entry.get("updated_at") or entry.get("created_at") or ""),
                public_url=self.get_public_url(self._join(folder, entry["name"])),
            ))
        return ListingResult(ok=True, files=files)

    async def list_files(self, folder: str = "documents") -> List[FileInfo]:
        """Files in `folder`; an empty list on any error."""
        listing = await self._list(folder)
        return listing.files

    async def get_file_info(self, path: str) -> Optional[FileInfo]:
        folder, _, name = path.rpartition("/")
        listing = await self._list(folder, search=name)
        for info in listing.files:
            if info.name == name:
                return info
        return None

    async def cleanup_old_files(self, folder: str = "documents", max_age_hours: int = 168) -> int:
        """Delete files older than `max_age_hours`; returns the count (0 on failure)."""
        listing = await self._list(folder)
        if not listing.ok:
            return 0
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
        stale = [
            self._join(folder, info.name)
            for info in listing.files
            if info.last_modified_at is not None and info.last_modified_at < cutoff
        ]
        if not stale:
            return 0
        result = await self._delete_many(stale)
        if not result.success:
            return 0
        logger.info("Cleaned up %d old file(s) from %s", len(stale), folder)
        return len(stale)

    async def get_storage_stats(self, folder: str = "documents") -> StorageStats:
        listing = await self._list(folder)
        if not listing.ok:
            return StorageStats(error=listing.error)
        if not listing.files:
            return StorageStats()
        now = datetime.now(timezone.utc)
        dated = [f for f in listing.files if f.last_modified_at is not None]
        stats = StorageStats(
            total_files=len(listing.files),
            total_size=sum(f.size for f in listing.files),
        )
        if dated:
            oldest = min(dated, key=lambda f: f.last_modified_at)
            newest = max(dated, key=lambda f: f.last_modified_at)
            stats.oldest_file = FileAge(oldest.name, round((now - oldest.last_modified_at).total_seconds() / 3600, 2))
            stats.newest_file = FileAge(newest.name, round((now - newest.last_modified_at).total_seconds() / 3600, 2))
        return stats

    # ------------------------------------------------------------------ #
    # Bucket management
    # ------------------------------------------------------------------ #

    async def ensure_bucket(self) -> OperationResult:
        """Create the bucket if it does not exist; a no-op otherwise."""
        try:
            await self._request("bucket", "GET", f"bucket/{self.bucket}")
            return OperationResult(success=True)
        except StorageRequestError as e:
            if e.status_code != 404 and "not found" not in e.message.lower():
                logger.error("Bucket lookup for %s failed: %s", self.bucket, e.message)
                return OperationResult(success=False, error=e.message)

        try:
            await self._request("bucket", "POST", "bucket", json={
                "id": self.bucket,
                "name": self.bucket,
                "public": True,
                "allowed_mime_types": ALLOWED_MIME_TYPES,
                "file_size_limit": FILE_SIZE_LIMIT,
            })
        except StorageRequestError as e:
            # Lost a creation race: the bucket exists now
            if "already exists" in e.message.lower():
                return OperationResult(success=True)
            logger.error("Bucket creation for %s failed: %s", self.bucket, e.message)
            return OperationResult(success=False, error=e.message)
        logger.info("Created storage bucket %s", self.bucket)
        return OperationResult(success=True)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


__all__ = [
    "StorageService",
    "StorageRequestError",
    "UploadResult",
    "UploadMetadata",
    "OperationResult",
    "FileInfo",
    "FileAge",
    "ListingResult",
    "StorageStats",
]
