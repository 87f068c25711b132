"""Object storage — time-limited access to uploaded source files."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import quote

import requests

from cognify_ingest.config import Settings, settings
from cognify_ingest.errors import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Where uploaded documents live."""

    @abstractmethod
    def get_temporary_access_url(self, pointer: str, ttl_seconds: int) -> str:
        """Return a URL (or local path) readable for *ttl_seconds*."""
        ...

    @abstractmethod
    def delete_object(self, pointer: str) -> None:
        ...


class LocalObjectStorage(ObjectStorage):
    """Files under a local root directory; access URLs are plain paths."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, pointer: str) -> Path:
        path = (self.root / pointer).resolve()
        if not path.is_relative_to(self.root):
            raise StorageError(f"Storage pointer escapes storage root: {pointer!r}")
        return path

    def get_temporary_access_url(self, pointer: str, ttl_seconds: int) -> str:
        path = self._resolve(pointer)
        if not path.is_file():
            raise StorageError(f"Failed to create signed URL: {pointer!r} not found")
        return str(path)

    def delete_object(self, pointer: str) -> None:
        self._resolve(pointer).unlink(missing_ok=True)


class SupabaseObjectStorage(ObjectStorage):
    """Supabase Storage buckets via the Storage REST API.

    Parameters
    ----------
    base_url:
        Project URL, e.g. ``https://abc.supabase.co``.
    service_key:
        Service-role key (server-side only).
    bucket:
        Bucket holding the uploads.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        bucket: str = "documents",
        timeout: int = 30,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for Supabase storage")
        if not service_key:
            raise ValueError("service_key is required for Supabase storage")
        self._api = f"{base_url.rstrip('/')}/storage/v1"
        self._bucket = bucket
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Authorization": f"Bearer {service_key}", "apikey": service_key}
        )

    def get_temporary_access_url(self, pointer: str, ttl_seconds: int) -> str:
        url = f"{self._api}/object/sign/{self._bucket}/{quote(pointer)}"
        try:
            resp = self._session.post(url, json={"expiresIn": ttl_seconds}, timeout=self._timeout)
            resp.raise_for_status()
            signed = resp.json().get("signedURL")
        except (requests.RequestException, ValueError) as exc:
            raise StorageError(f"Failed to create signed URL: {exc}") from exc

        if not signed:
            raise StorageError("No signed URL received from storage")
        return f"{self._api}{signed}" if signed.startswith("/") else signed

    def delete_object(self, pointer: str) -> None:
        url = f"{self._api}/object/{self._bucket}"
        try:
            resp = self._session.delete(url, json={"prefixes": [pointer]}, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise StorageError(f"Failed to delete {pointer!r}: {exc}") from exc


def get_object_storage(config: Settings = settings) -> ObjectStorage:
    """Build the storage backend selected by ``config.storage_backend``."""
    if config.storage_backend == "local":
        return LocalObjectStorage(config.storage_root)
    if config.storage_backend == "supabase":
        return SupabaseObjectStorage(
            config.storage_url,
            config.storage_service_key,
            bucket=config.storage_bucket,
            timeout=config.storage_request_timeout,
        )
    raise ValueError(
        f"Unsupported storage_backend={config.storage_backend!r}. Choose from: local, supabase."
    )
