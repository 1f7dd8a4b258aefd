"""Local in-memory implementation of CoverStorage."""

from typing import Dict, Tuple

from ..domain.entities.errors import StoreError
from ..domain.interfaces.cover_storage import CoverStorage
from .cover_keys import cover_key


class LocalCoverStorage(CoverStorage):
    """Local in-memory implementation of the CoverStorage protocol.

    Keeps uploaded images in a dictionary and hands out URLs under
    `{base_url}/` that the API serves back. Useful for testing and
    development purposes.
    """

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize the local cover storage.

        Args:
            base_url: Public base URL of the API serving `/covers/...`.
        """
        self._base_url = base_url.rstrip("/")
        self._objects: Dict[str, Tuple[bytes, str]] = {}

    async def upload(self, owner_id: str, data: bytes, suggested_name: str, content_type: str) -> str:
        key = cover_key(owner_id, suggested_name)
        self._objects[key] = (data, content_type)
        return f"{self._base_url}/{key}"

    async def delete(self, url: str) -> None:
        key = self._key_for(url)
        if key not in self._objects:
            raise StoreError(f"Cover {url} not found")
        del self._objects[key]

    def owns(self, url: str) -> bool:
        return url.startswith(f"{self._base_url}/covers/")

    def get(self, key: str) -> Tuple[bytes, str]:
        """Return the bytes and content type stored under `key`.

        Raises:
            StoreError: If nothing is stored under the key.
        """
        if key not in self._objects:
            raise StoreError(f"Cover {key} not found")
        return self._objects[key]

    def keys(self) -> list[str]:
        return list(self._objects)

    def _key_for(self, url: str) -> str:
        if not self.owns(url):
            raise StoreError(f"Cover {url} is not hosted by this storage")
        return url[len(self._base_url) + 1:]
