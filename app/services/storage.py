# app/services/storage.py
"""
S3 storage for barber profile images.

The browser uploads straight to S3 with a pre-signed PUT URL; nothing is
proxied through this service.
"""
from __future__ import annotations

import asyncio
import logging
import re
import threading
from typing import Any, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.errors import InvalidInput, UpstreamFailure

logger = logging.getLogger(__name__)

PROFILE_IMAGE_PREFIX = "barberProfileImages"
_EXTENSION_RE = re.compile(r"^[a-z0-9]{1,10}$")


def profile_image_key(barber_id: str, file_extension: str) -> str:
    ext = file_extension.strip().lstrip(".").lower()
    if not _EXTENSION_RE.match(ext):
        raise InvalidInput(f"Unsupported file extension: {file_extension!r}")
    return f"{PROFILE_IMAGE_PREFIX}/{barber_id}.{ext}"


class ProfileImageStorage:
    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.bucket = settings.S3_BUCKET_NAME
        self.region = settings.AWS_REGION
        self.expires_in = settings.SIGNED_URL_EXPIRES_IN
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self):
        # Created lazily, possibly from a worker thread
        with self._client_lock:
            if self._client is None:
                self._client = boto3.Session().client(
                    "s3",
                    region_name=self.region,
                    config=Config(signature_version="s3v4"),
                )
        return self._client

    def _presign_put(self, key: str) -> str:
        return self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.expires_in,
        )

    async def signed_upload_url(self, barber_id: str, file_extension: str) -> str:
        """Pre-signed PUT URL for the barber's profile image.

        boto3 is synchronous (building the client can read credential files),
        so signing runs in a worker thread.
        """
        key = profile_image_key(barber_id, file_extension)
        try:
            url = await asyncio.to_thread(self._presign_put, key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to presign upload for %s: %s", key, e)
            raise UpstreamFailure("Could not issue upload URL", service="s3") from e
        logger.info("Issued upload URL for %s (expires in %ss)", key, self.expires_in)
        return url
