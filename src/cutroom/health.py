"""Pre-flight health checks for local emulator dependencies."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

if TYPE_CHECKING:
    from cutroom.config import Settings

logger = logging.getLogger(__name__)

AZURITE_BLOB_ENDPOINT = "http://127.0.0.1:10000"


def blob_endpoint(connection_string: str) -> str | None:
    """Return the blob endpoint named by a storage connection string."""
    parts = dict(
        segment.split("=", 1) for segment in connection_string.split(";") if "=" in segment
    )
    if parts.get("UseDevelopmentStorage", "").lower() == "true":
        return AZURITE_BLOB_ENDPOINT
    if endpoint := parts.get("BlobEndpoint"):
        return endpoint
    if account := parts.get("AccountName"):
        protocol = parts.get("DefaultEndpointsProtocol", "https")
        suffix = parts.get("EndpointSuffix", "core.windows.net")
        return f"{protocol}://{account}.blob.{suffix}"
    return None


async def check_emulators(settings: Settings) -> bool:
    """Verify local emulators are reachable. Return False if any are down."""
    failures: list[str] = []
    async with httpx.AsyncClient(timeout=3) as client:
        cosmos_url = settings.cosmos.endpoint
        if not cosmos_url:
            failures.append("COSMOS_ENDPOINT is not set — add it to .env")
        elif not cosmos_url.startswith("https://"):
            try:
                await client.get(f"{cosmos_url.rstrip('/')}/")
            except httpx.ConnectError:
                parsed = urlparse(cosmos_url)
                failures.append(f"Cosmos DB emulator is not running at {parsed.netloc}")

        storage_url = blob_endpoint(settings.storage.connection_string)
        if storage_url and not storage_url.startswith("https://"):
            parsed = urlparse(storage_url)
            try:
                await client.get(f"{parsed.scheme}://{parsed.netloc}/")
            except httpx.ConnectError:
                failures.append(f"Azurite storage emulator is not running at {parsed.netloc}")

    if failures:
        for failure in failures:
            logger.error(failure)
        logger.error("Start the emulators with: docker compose up -d")
        return False
    return True
