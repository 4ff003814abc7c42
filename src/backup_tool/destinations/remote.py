"""Remote upload capability.

Uploaders copy one local file, ``source_root / name``, to a remote
destination. The strategies decide what to hand over: the copy strategy
uploads every file under its relative path, the archive strategy uploads the
finished archive.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Union

from azure.core.exceptions import AzureError
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from ..auth.cloud_auth import AWSAuth, AzureAuth
from ..engine.errors import RemoteUploadError
from .classifier import Destination, Platform

logger = logging.getLogger(__name__)


class RemoteUploader(ABC):
    """Uploads files to a remote destination."""

    @abstractmethod
    def upload(self, source_root: Union[str, Path], destination: Destination, name: str) -> str:
        """Upload ``source_root / name`` to ``destination``.

        Args:
            source_root: Local directory containing the file
            destination: Remote destination descriptor
            name: Path of the file relative to ``source_root``, forward slashes

        Returns:
            Remote location of the uploaded object

        Raises:
            RemoteUploadError: If the upload fails or is not supported
        """


def _remote_key(prefix: str, name: str) -> str:
    key = PurePosixPath(prefix, name).as_posix() if prefix else PurePosixPath(name).as_posix()
    return key.lstrip('/')


def _local_file(source_root: Union[str, Path], name: str) -> Path:
    local_path = Path(source_root) / name
    if not local_path.is_file():
        raise RemoteUploadError(f"Local file not found: {local_path}")
    return local_path


class S3Uploader(RemoteUploader):
    """Upload to AWS S3; targets look like ``s3://bucket/prefix``."""

    def __init__(self, auth: AWSAuth):
        self.auth = auth

    def upload(self, source_root, destination, name):
        """Upload to key ``<prefix>/<name>`` in the destination bucket.

        Raises:
            RemoteUploadError: If the file is missing, the target has no bucket
                or S3 rejects the upload
        """
        local_path = _local_file(source_root, name)
        bucket, prefix = destination.bucket_and_prefix()
        if not bucket:
            raise RemoteUploadError(f"No bucket in S3 destination: {destination.target}")
        key = _remote_key(prefix, name)

        try:
            self.auth.get_s3_client().upload_file(str(local_path), bucket, key)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise RemoteUploadError(f"S3 upload failed ({error_code}): {e}") from e
        except (BotoCoreError, S3UploadFailedError) as e:
            raise RemoteUploadError(f"S3 upload failed: {e}") from e

        location = f"s3://{bucket}/{key}"
        logger.debug(f"Uploaded {local_path} to {location}")
        return location


class AzureBlobUploader(RemoteUploader):
    """Upload to Azure Blob Storage; targets look like ``azure://container/prefix``."""

    def __init__(self, auth: AzureAuth):
        self.auth = auth

    def upload(self, source_root, destination, name):
        """Upload to blob ``<prefix>/<name>`` in the destination container, replacing
        any existing blob.

        Raises:
            RemoteUploadError: If the file is missing, credentials are not
                configured or the service rejects the upload
        """
        local_path = _local_file(source_root, name)
        container, prefix = destination.bucket_and_prefix()
        if not container:
            raise RemoteUploadError(f"No container in Azure destination: {destination.target}")
        blob_path = _remote_key(prefix, name)

        try:
            client = self.auth.get_blob_service_client()
            blob_client = client.get_container_client(container).get_blob_client(blob_path)
            with open(local_path, 'rb') as f:
                blob_client.upload_blob(f, blob_type="BlockBlob", overwrite=True)
        except AzureError as e:
            raise RemoteUploadError(f"Azure upload failed: {e}") from e
        except ValueError as e:
            raise RemoteUploadError(f"Azure credentials not configured: {e}") from e

        location = f"azure://{container}/{blob_path}"
        logger.debug(f"Uploaded {local_path} to {location}")
        return location


class RemoteUploadDispatcher(RemoteUploader):
    """Routes uploads to the uploader registered for the destination's platform.

    Platforms without an uploader (Google Drive, unknown schemes) fail with
    ``RemoteUploadError`` like any other upload failure.
    """

    def __init__(self, uploaders: Optional[Dict[Platform, RemoteUploader]] = None):
        self.uploaders: Dict[Platform, RemoteUploader] = dict(uploaders or {})

    def register(self, platform: Platform, uploader: RemoteUploader) -> None:
        """Route uploads for ``platform`` to ``uploader``."""
        self.uploaders[platform] = uploader

    def supports(self, platform: Platform) -> bool:
        return platform in self.uploaders

    def upload(self, source_root, destination, name):
        """Pass the upload to the uploader registered for ``destination.platform``.

        Raises:
            RemoteUploadError: If no uploader is registered for the platform
        """
        uploader = self.uploaders.get(destination.platform)
        if uploader is None:
            raise RemoteUploadError(
                f"Remote uploads to {destination.platform.value} are not supported: {destination.target}"
            )
        return uploader.upload(source_root, destination, name)


def build_uploader(credentials) -> RemoteUploadDispatcher:
    """Build the dispatcher for the configured cloud credentials.

    Args:
        credentials: CredentialsConfig instance

    Returns:
        Dispatcher with S3 and Azure Blob uploaders
    """
    return RemoteUploadDispatcher({
        Platform.S3: S3Uploader(AWSAuth.from_credentials(credentials)),
        Platform.AZURE: AzureBlobUploader(AzureAuth.from_credentials(credentials)),
    })
