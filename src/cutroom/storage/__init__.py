"""Blob storage helpers."""

from cutroom.storage.signing import DownloadUrlSigner, download_filename, sanitize

__all__ = ["DownloadUrlSigner", "download_filename", "sanitize"]
