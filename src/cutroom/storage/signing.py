"""Signed, attachment-forcing download URLs for blobs in Azure Storage."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime, timedelta
from pathlib import PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from azure.storage.blob import (
    BlobClient,
    BlobSasPermissions,
    BlobServiceClient,
    generate_blob_sas,
)

if TYPE_CHECKING:
    from cutroom.config import StorageConfig

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "mp4"
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")
_URL_SCHEMES = ("http", "https")


def sanitize(name: str) -> str:
    """Lowercase ``name`` and collapse each run of non-alphanumerics into ``_``."""
    return _NON_ALPHANUMERIC.sub("_", name.lower())


def file_extension(url: str) -> str:
    """Return the extension of the object a URL points at, without the dot."""
    path = unquote(urlparse(url).path)
    suffix = PurePosixPath(path).suffix.lstrip(".").lower()
    return suffix or DEFAULT_EXTENSION


def _is_url(value: str) -> bool:
    return urlparse(value).scheme in _URL_SCHEMES


def _has_account_key(connection_string: str) -> bool:
    """True when the connection string carries a shared key (SAS-only strings cannot sign)."""
    for segment in connection_string.split(";"):
        name, _, value = segment.partition("=")
        if name.strip().lower() == "accountkey" and value.strip():
            return True
    return False


def download_filename(project_name: str, version: int, video_url: str) -> str:
    """Build ``{sanitized project}_v{version}.{ext}`` for a revision download."""
    base = sanitize(project_name) or "video"
    return f"{base}_v{version}.{file_extension(video_url)}"


class DownloadUrlSigner:
    """Issue read-only SAS URLs that force the browser to save the file."""

    def __init__(self, config: StorageConfig) -> None:
        self._config = config
        self._account_key: str | None = None
        self._disabled = True
        if not config.connection_string:
            logger.warning(
                "AZURE_STORAGE_CONNECTION_STRING is not set — "
                "downloads will use stored URLs without signing"
            )
        elif not _has_account_key(config.connection_string):
            logger.warning(
                "AZURE_STORAGE_CONNECTION_STRING has no AccountKey — "
                "downloads will use stored URLs without signing"
            )
        else:
            self._disabled = False

    @property
    def enabled(self) -> bool:
        return not self._disabled

    def _key(self) -> str:
        if self._account_key is None:
            service = BlobServiceClient.from_connection_string(self._config.connection_string)
            account_key = getattr(service.credential, "account_key", None)
            if not account_key:
                msg = "Storage credential has no account key to sign with"
                raise ValueError(msg)
            self._account_key = account_key
        return self._account_key

    def _blob_client(self, blob_url: str) -> BlobClient:
        """Resolve a full blob URL, or a bare blob path within the configured container."""
        if _is_url(blob_url):
            return BlobClient.from_blob_url(blob_url.split("?", 1)[0])
        return BlobClient.from_connection_string(
            self._config.connection_string,
            container_name=self._config.container,
            blob_name=blob_url.lstrip("/"),
        )

    def sign(self, blob_url: str, filename: str, ttl: timedelta) -> str | None:
        """Return a signed URL valid for ``ttl``, or None when signing is disabled.

        Raises ``ValueError`` for URLs that do not point at a blob, and
        ``AzureError`` if the storage credentials cannot be used.
        """
        if self._disabled:
            return None
        blob = self._blob_client(blob_url)
        base_url = blob_url.split("?", 1)[0] if _is_url(blob_url) else blob.url
        sas = generate_blob_sas(
            account_name=blob.account_name,
            container_name=blob.container_name,
            blob_name=blob.blob_name,
            account_key=self._key(),
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(UTC) + ttl,
            content_disposition=f'attachment; filename="{filename}"',
        )
        logger.debug(
            "Signed download URL — container=%s blob=%s ttl=%s",
            blob.container_name,
            blob.blob_name,
            ttl,
        )
        return f"{base_url}?{sas}"
