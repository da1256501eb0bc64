# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Media storage client for generated worksheet images.

Images are uploaded as base64 JSON to the media storage service, which
answers with a public URL.
"""

import base64
import hashlib
import logging
from typing import Optional

import aiohttp

from src.core.config.settings import MediaStorageSettings, get_settings
from src.services.worksheet_ai.exceptions import MediaUploadError
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class MediaStorageClient:
    """Async HTTP client for the media storage service."""

    def __init__(self, settings: Optional[MediaStorageSettings] = None):
        self._settings = settings or get_settings().media_storage
        self.api_url = self._settings.url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=self._settings.timeout)

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._settings.api_key:
            headers["X-API-Key"] = self._settings.api_key.get_secret_value()
        return headers

    @staticmethod
    def build_filename(prefix: str, data: bytes, extension: str = "png") -> str:
        """Unique, content-addressed file name."""
        timestamp = utc_now().strftime("%Y%m%d_%H%M%S")
        content_hash = hashlib.md5(data).hexdigest()[:8]
        return f"{prefix}_{timestamp}_{content_hash}.{extension}"

    async def upload(self, data: bytes, filename: str, content_type: str = "image/png") -> str:
        """Upload a file and return its public URL.

        Raises:
            MediaUploadError: If the upload fails.
        """
        payload = {
            "bucket": self._settings.bucket,
            "filename": filename,
            "data": base64.b64encode(data).decode("utf-8"),
            "contentType": content_type,
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    f"{self.api_url}/media/upload",
                    json=payload,
                    headers=self._get_headers(),
                ) as response:
                    if response.status not in (200, 201):
                        body = await response.text()
                        raise MediaUploadError(
                            f"Media upload failed with status {response.status}",
                            details={"body": body[:500]},
                        )
                    response_data = await response.json()
        except aiohttp.ClientError as e:
            logger.error("Media storage connection error: %s", str(e))
            raise MediaUploadError(
                f"Failed to connect to media storage: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        data_block = response_data.get("data", response_data)
        url = data_block.get("url")
        if not url:
            raise MediaUploadError("Media storage returned no URL")

        logger.debug("Uploaded media: filename=%s, url=%s", filename, url)
        return url
