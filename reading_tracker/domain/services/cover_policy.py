"""Cover resolution policy for book create and edit flows."""

import logging
from typing import Optional
from urllib.parse import quote

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as ModelValidationError

from ..entities.cover import CoverResolution, CoverUpload
from ..entities.errors import CleanupWarning, PolicyError, StoreError
from ..interfaces.cover_storage import CoverStorage

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER_BASE_URL = "https://picsum.photos"
DEFAULT_MAX_COVER_BYTES = 5 * 1024 * 1024

_http_url = TypeAdapter(HttpUrl)


def is_valid_http_url(value: Optional[str]) -> bool:
    """Return True if `value` is a well-formed http or https URL."""
    if not value:
        return False
    try:
        _http_url.validate_python(value)
    except ModelValidationError:
        return False
    return True


def placeholder_cover_url(seed: str, base_url: str = DEFAULT_PLACEHOLDER_BASE_URL) -> str:
    """Deterministic placeholder image URL for a seed string."""
    return f"{base_url.rstrip('/')}/seed/{quote(seed, safe='')}/300/450"


class CoverPolicy:
    """
    Decides which cover a book ends up with.

    Precedence is uploaded file, then a supplied URL, then the existing
    cover, then a placeholder derived from the title. The resulting URL is
    never empty. Replaced blob-hosted covers are reported as `stale_url`
    and removed with `cleanup` once the book write has succeeded.
    """

    def __init__(
        self,
        storage: CoverStorage,
        placeholder_base_url: str = DEFAULT_PLACEHOLDER_BASE_URL,
        max_cover_bytes: int = DEFAULT_MAX_COVER_BYTES,
    ):
        self.storage = storage
        self.placeholder_base_url = placeholder_base_url
        self.max_cover_bytes = max_cover_bytes

    async def resolve(
        self,
        owner_id: str,
        title: Optional[str],
        current_url: Optional[str] = None,
        upload: Optional[CoverUpload] = None,
        url_input: Optional[str] = None,
        fallback_seed: Optional[str] = None,
    ) -> CoverResolution:
        """
        Resolve the final cover URL.

        Args:
            owner_id: The owning user, scopes uploaded keys.
            title: Book title, seeds the placeholder.
            current_url: The book's cover before this change (edit flow).
            upload: A newly uploaded image, if any.
            url_input: A URL typed by the user. None means untouched, an
                empty string means the cover was cleared.
            fallback_seed: Placeholder seed used when there is no title.

        Returns:
            CoverResolution: The final URL and any stale asset to clean up.

        Raises:
            PolicyError: If the URL is malformed or the upload is not acceptable.
            StoreError: If the upload itself fails.
        """
        if upload is not None:
            self._check_upload(upload)
            url = await self.storage.upload(owner_id, upload.data, upload.filename, upload.content_type)
            logger.info(f"Uploaded cover for {owner_id}: {url}")
            return CoverResolution(url=url, stale_url=self._stale(current_url, url), uploaded=True)

        url_input = url_input.strip() if url_input is not None else None

        if url_input:
            if not is_valid_http_url(url_input):
                raise PolicyError(f"Cover URL must be a valid http or https URL: {url_input}")
            if url_input == current_url:
                return CoverResolution(url=url_input)
            return CoverResolution(url=url_input, stale_url=self._stale(current_url, url_input))

        # An explicit empty string clears the existing cover.
        if url_input is None and is_valid_http_url(current_url):
            return CoverResolution(url=current_url)

        placeholder = self.placeholder_for(title, fallback_seed)
        return CoverResolution(url=placeholder, stale_url=self._stale(current_url, placeholder))

    def placeholder_for(self, title: Optional[str], fallback_seed: Optional[str] = None) -> str:
        seed = (title or "").strip() or fallback_seed or "default-book"
        return placeholder_cover_url(seed, self.placeholder_base_url)

    async def cleanup(self, url: Optional[str]) -> Optional[CleanupWarning]:
        """
        Delete an orphaned cover asset, swallowing failures.

        Returns:
            The logged `CleanupWarning` if deletion failed, else None.
        """
        if not url or not self.storage.owns(url):
            return None
        try:
            await self.storage.delete(url)
        except StoreError as e:
            warning = CleanupWarning(url, e)
            logger.warning(str(warning))
            return warning
        logger.info(f"Deleted orphaned cover {url}")
        return None

    def _check_upload(self, upload: CoverUpload) -> None:
        if not upload.content_type or not upload.content_type.startswith("image/"):
            raise PolicyError(f"Cover upload must be an image, got {upload.content_type or 'unknown type'}")
        if upload.size == 0:
            raise PolicyError("Cover upload is empty")
        if upload.size > self.max_cover_bytes:
            raise PolicyError(
                f"Cover upload is {upload.size} bytes; the limit is {self.max_cover_bytes} bytes"
            )

    def _stale(self, previous_url: Optional[str], new_url: str) -> Optional[str]:
        if previous_url and previous_url != new_url and self.storage.owns(previous_url):
            return previous_url
        return None
