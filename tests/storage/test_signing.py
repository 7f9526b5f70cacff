"""Tests for download URL signing."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from cutroom.config import StorageConfig
from cutroom.storage import DownloadUrlSigner, download_filename, sanitize
from cutroom.storage.signing import file_extension

_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=https;AccountName=acct;AccountKey=a2V5;"
    "EndpointSuffix=core.windows.net"
)
_BLOB_URL = "https://acct.blob.core.windows.net/videos/cut1.mov"


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Summer Launch", "summer_launch"),
        ("Brand Film: Final!!", "brand_film_final_"),
        ("Ünïcode clip", "_n_code_clip"),
    ],
)
def test_sanitize(name: str, expected: str) -> None:
    assert sanitize(name) == expected


def test_file_extension_ignores_query_string() -> None:
    assert file_extension(_BLOB_URL + "?sv=2024&sig=abc") == "mov"


def test_file_extension_defaults_to_mp4() -> None:
    """URLs without an extension fall back to mp4."""
    assert file_extension("https://acct.blob.core.windows.net/videos/raw") == "mp4"


def test_download_filename() -> None:
    assert download_filename("Summer Launch!", 3, _BLOB_URL) == "summer_launch__v3.mov"


def test_download_filename_with_blank_name() -> None:
    """An empty sanitized name still yields a usable filename."""
    assert download_filename("", 1, "cut.MP4") == "video_v1.mp4"


def test_signer_disabled_without_connection_string() -> None:
    """Signing is skipped when storage credentials are not configured."""
    signer = DownloadUrlSigner(StorageConfig(connection_string=""))

    assert signer.enabled is False
    assert signer.sign(_BLOB_URL, "a_v1.mov", timedelta(minutes=5)) is None


def test_signer_disabled_for_sas_only_connection_string() -> None:
    """A connection string without an account key cannot sign, so signing is skipped."""
    signer = DownloadUrlSigner(
        StorageConfig(
            connection_string=(
                "BlobEndpoint=https://acct.blob.core.windows.net;"
                "SharedAccessSignature=sv=2020&sig=abc"
            )
        )
    )

    assert signer.enabled is False
    assert signer.sign(_BLOB_URL, "a_v1.mov", timedelta(minutes=5)) is None


def test_credential_without_account_key_raises_value_error() -> None:
    signer = DownloadUrlSigner(StorageConfig(connection_string=_CONNECTION_STRING))
    with patch("cutroom.storage.signing.BlobServiceClient") as service_cls:
        service_cls.from_connection_string.return_value.credential = None
        with pytest.raises(ValueError, match="account key"):
            signer.sign(_BLOB_URL, "a.mov", timedelta(minutes=5))


def _service_client() -> MagicMock:
    service = MagicMock()
    service.credential.account_key = "a2V5"
    return service


def test_sign_full_url_forces_attachment() -> None:
    """Signed URLs are read-only and carry a content-disposition filename."""
    signer = DownloadUrlSigner(StorageConfig(connection_string=_CONNECTION_STRING))
    with (
        patch("cutroom.storage.signing.generate_blob_sas", return_value="sv=x&sig=y") as sas,
        patch("cutroom.storage.signing.BlobServiceClient") as service_cls,
    ):
        service_cls.from_connection_string.return_value = _service_client()
        url = signer.sign(_BLOB_URL + "?old=1", "launch_v1.mov", timedelta(minutes=60))

    assert url == f"{_BLOB_URL}?sv=x&sig=y"
    kwargs = sas.call_args.kwargs
    assert kwargs["account_name"] == "acct"
    assert kwargs["container_name"] == "videos"
    assert kwargs["blob_name"] == "cut1.mov"
    assert kwargs["account_key"] == "a2V5"
    assert kwargs["permission"].read is True
    assert kwargs["permission"].write is False
    assert kwargs["content_disposition"] == 'attachment; filename="launch_v1.mov"'


def test_sign_bare_path_uses_configured_container() -> None:
    """A stored blob path resolves against the configured container."""
    signer = DownloadUrlSigner(
        StorageConfig(connection_string=_CONNECTION_STRING, container="masters")
    )
    with (
        patch("cutroom.storage.signing.generate_blob_sas", return_value="sig=z") as sas,
        patch("cutroom.storage.signing.BlobServiceClient") as service_cls,
    ):
        service_cls.from_connection_string.return_value = _service_client()
        url = signer.sign("/proj-1/v2.mp4", "launch_v2.mp4", timedelta(minutes=5))

    assert url == "https://acct.blob.core.windows.net/masters/proj-1/v2.mp4?sig=z"
    assert sas.call_args.kwargs["container_name"] == "masters"
    assert sas.call_args.kwargs["blob_name"] == "proj-1/v2.mp4"


def test_account_key_read_once() -> None:
    signer = DownloadUrlSigner(StorageConfig(connection_string=_CONNECTION_STRING))
    with (
        patch("cutroom.storage.signing.generate_blob_sas", return_value="sig=z"),
        patch("cutroom.storage.signing.BlobServiceClient") as service_cls,
    ):
        service_cls.from_connection_string.return_value = _service_client()
        signer.sign(_BLOB_URL, "a.mov", timedelta(minutes=5))
        signer.sign(_BLOB_URL, "a.mov", timedelta(minutes=5))

    service_cls.from_connection_string.assert_called_once_with(_CONNECTION_STRING)
