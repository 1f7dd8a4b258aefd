"""S3 implementation of CoverStorage."""

import logging

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from ..domain.entities.errors import PermissionDeniedError, StoreError, StoreUnavailableError
from ..domain.interfaces.cover_storage import CoverStorage
from .cover_keys import cover_key

logger = logging.getLogger(__name__)


class S3CoverStorage(CoverStorage):
    """S3-based implementation of CoverStorage.

    Covers are stored under `covers/{owner_id}/` and addressed by their
    virtual-hosted-style object URL.
    """

    def __init__(self, bucket_name: str, region_name: str = "us-east-1"):
        """Initialize the S3 cover storage.

        Args:
            bucket_name: The name of the S3 bucket holding covers.
            region_name: AWS region name (default: us-east-1).
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.base_url = f"https://{bucket_name}.s3.{region_name}.amazonaws.com"
        self._session = aioboto3.Session()

    async def upload(self, owner_id: str, data: bytes, suggested_name: str, content_type: str) -> str:
        key = cover_key(owner_id, suggested_name)
        try:
            async with self._session.client("s3", region_name=self.region_name) as s3_client:
                await s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                )
        except ClientError as e:
            raise self._translate_error(e, key) from e
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e)) from e

        logger.info(f"Uploaded cover s3://{self.bucket_name}/{key}")
        return f"{self.base_url}/{key}"

    async def delete(self, url: str) -> None:
        if not self.owns(url):
            raise StoreError(f"Cover {url} is not hosted in bucket {self.bucket_name}")
        key = url[len(self.base_url) + 1:]
        try:
            async with self._session.client("s3", region_name=self.region_name) as s3_client:
                await s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            raise self._translate_error(e, key) from e
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e)) from e

    def owns(self, url: str) -> bool:
        return url.startswith(f"{self.base_url}/covers/")

    def _translate_error(self, error: ClientError, key: str) -> StoreError:
        code = error.response.get("Error", {}).get("Code", "")
        if code in ("AccessDenied", "AllAccessDisabled"):
            return PermissionDeniedError(f"Access denied to s3://{self.bucket_name}/{key}")
        return StoreUnavailableError(f"S3 request failed for {key}: {code or error}")
