"""Media migration: fetching, re-encoding and attaching product images."""

import io
import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from PIL import Image

from ..adapters.base import TargetAdapter
from ..errors import RemoteAPIError
from ..models.product import MediaEntry
from ..models.target import MediaUpload, WriteScope

logger = logging.getLogger(__name__)

MAX_DIMENSION = 2048
DEFAULT_QUALITY = 90
REDUCED_QUALITY = 85


class MediaTranscoder(ABC):
    """Fetches source media and re-encodes it for upload."""

    @abstractmethod
    def fetch(self, url: str) -> bytes:
        pass

    @abstractmethod
    def reencode(self, content: bytes) -> bytes:
        pass


class HttpMediaTranscoder(MediaTranscoder):
    """
    Downloads images over HTTP and re-encodes them as JPEG with Pillow.

    Images above the size limit are scaled down to fit 2048x2048 and
    saved at a lower quality.
    """

    def __init__(
        self,
        max_image_size_mb: float = 10.0,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        session: Optional[requests.Session] = None
    ):
        self.max_bytes = int(max_image_size_mb * 1024 * 1024)
        self.timeout = timeout
        self._session = session or self._create_session(max_retries, backoff_factor)

    @staticmethod
    def _create_session(max_retries: int, backoff_factor: float) -> requests.Session:
        session = requests.Session()
        retries = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def fetch(self, url: str) -> bytes:
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RemoteAPIError(f"Could not download {url}: {e}") from e
        return response.content

    def reencode(self, content: bytes) -> bytes:
        image = Image.open(io.BytesIO(content))
        if image.mode != "RGB":
            image = image.convert("RGB")

        quality = DEFAULT_QUALITY
        if len(content) > self.max_bytes:
            image.thumbnail((MAX_DIMENSION, MAX_DIMENSION))
            quality = REDUCED_QUALITY
            logger.debug(f"Downscaled image of {len(content)} bytes to {image.size}")

        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality, optimize=True)
        return output.getvalue()


class MediaMigrator:
    """
    Attaches a product's source media to a target product.

    A failed image is recorded and skipped; it never fails the product.
    """

    def __init__(self, transcoder: MediaTranscoder, media_base_url: str):
        self.transcoder = transcoder
        self.media_base_url = media_base_url.rstrip("/")

    def source_url(self, entry: MediaEntry) -> str:
        return f"{self.media_base_url}/{entry.file.lstrip('/')}"

    def build_upload(self, entry: MediaEntry, with_content: bool) -> MediaUpload:
        url = self.source_url(entry)
        upload = MediaUpload(
            url=url,
            label=entry.label,
            position=entry.position,
            types=list(entry.types),
            file_name=os.path.splitext(os.path.basename(entry.file))[0] + ".jpg",
        )
        if with_content:
            upload.content = self.transcoder.reencode(self.transcoder.fetch(url))
        return upload

    def migrate(
        self,
        adapter: TargetAdapter,
        code: str,
        entries: Sequence[MediaEntry],
        scope: WriteScope = WriteScope.GLOBAL
    ) -> Tuple[int, List[str]]:
        """
        Upload media entries for one product.

        Args:
            adapter: Target adapter
            code: Target product code
            entries: Media entries in gallery order
            scope: Write scope for the uploads

        Returns:
            (number uploaded, failure messages)
        """
        uploaded = 0
        failures: List[str] = []
        for entry in entries:
            try:
                upload = self.build_upload(entry, adapter.requires_media_content)
                adapter.attach_media(code, upload, scope)
                uploaded += 1
            except Exception as e:
                message = f"Image {entry.file} for {code} failed: {e}"
                failures.append(message)
                logger.warning(message)

        if entries:
            logger.info(f"Uploaded {uploaded}/{len(entries)} images for {code} to {adapter.name}")
        return uploaded, failures
