# classifieds/storage.py
"""Object store access for listing images.

Images are referenced from listings by public URL; the object path is the
URL segment following the bucket name, e.g.
``https://cdn.example/storage/v1/object/public/listings/<user>/<file>.jpg``
maps to ``<user>/<file>.jpg`` in bucket ``listings``.
"""
from typing import Iterable, Optional, Protocol, Tuple
from urllib.parse import quote, urlsplit

import httpx

from .config import HTTP_TIMEOUT_SECONDS, STORAGE_BUCKET, STORAGE_SERVICE_KEY, STORAGE_URL
from .exceptions import StorageError
from .utils import logger, retry


class ObjectStore(Protocol):
    bucket: str

    def delete(self, object_path: str) -> bool:
        """Remove one object. Returns False if it was already absent."""


def object_path_from_url(url: str, bucket: str = STORAGE_BUCKET) -> Optional[str]:
    if not url:
        return None
    path = urlsplit(url).path
    marker = f"/{bucket}/"
    _, found, rest = path.partition(marker)
    if not found or not rest:
        return None
    return rest


class StorageClient:
    """REST client for the hosted object store, authenticated with the service key."""

    def __init__(
        self,
        base_url: str = STORAGE_URL,
        service_key: str = STORAGE_SERVICE_KEY,
        bucket: str = STORAGE_BUCKET,
        client: httpx.Client | None = None,
        tries: int = 3,
        retry_delay: float = 1,
    ):
        if not base_url:
            raise StorageError("STORAGE_URL not set")
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.tries = tries
        self.retry_delay = retry_delay
        self._client = client or httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def _send_delete(self, object_path: str) -> httpx.Response:
        url = f"{self.base_url}/object/{self.bucket}/{quote(object_path)}"
        return self._client.delete(url, headers=self._headers)

    def delete(self, object_path: str) -> bool:
        send = retry(httpx.TransportError, tries=self.tries, delay=self.retry_delay)(self._send_delete)
        try:
            resp = send(object_path)
        except httpx.HTTPError as e:
            raise StorageError(f"Delete of {object_path} failed: {e}") from e
        if resp.status_code == 404:
            return False
        if resp.status_code >= 400:
            raise StorageError(f"Delete of {object_path} failed with HTTP {resp.status_code}")
        return True

    def close(self):
        self._client.close()


def purge_images(store: ObjectStore, image_urls: Iterable[str]) -> Tuple[int, int]:
    """Best-effort removal of every image of a listing.

    Returns (deleted, failed). A failure is logged and never stops the
    remaining deletions.
    """
    deleted = failed = 0
    for url in image_urls or []:
        path = object_path_from_url(url, store.bucket)
        if path is None:
            logger.warning("Skipping image with unrecognised URL: %s", url)
            failed += 1
            continue
        try:
            if store.delete(path):
                deleted += 1
                logger.info("Deleted image %s", path)
            else:
                logger.info("Image %s already absent", path)
        except Exception as e:
            failed += 1
            logger.warning("Failed to delete image %s: %s", path, e)
    return deleted, failed
