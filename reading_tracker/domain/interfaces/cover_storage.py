"""Cover storage interface."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CoverStorage(Protocol):
    """Protocol for the blob store holding uploaded cover images."""

    async def upload(self, owner_id: str, data: bytes, suggested_name: str, content_type: str) -> str:
        """Store an image under a unique key scoped to the owner.

        Args:
            owner_id: The owning user.
            data: Raw image bytes.
            suggested_name: Original file name, used as a key suffix.
            content_type: MIME type of the image.

        Returns:
            str: A retrievable http(s) URL for the stored image.

        Raises:
            StoreError: If the upload fails.
        """
        ...

    async def delete(self, url: str) -> None:
        """Delete a previously uploaded image by the URL `upload` returned.

        Raises:
            StoreError: If the deletion fails.
        """
        ...

    def owns(self, url: str) -> bool:
        """Return True if `url` points at an asset hosted by this store."""
        ...
