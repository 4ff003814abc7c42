"""Clients for the cloud platforms remote destinations can point at.

Both classes build their SDK client lazily, on the first upload, so a run
with only local destinations never needs cloud credentials.
"""

import logging
from typing import Optional

import boto3
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient

logger = logging.getLogger(__name__)


class AWSAuth:
    """Creates the S3 client used for ``s3://`` destinations."""

    def __init__(
        self,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session_token: Optional[str] = None,
        region: str = "us-east-1"
    ):
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.session_token = session_token
        self.region = region
        self._client = None

    @property
    def has_static_keys(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def get_s3_client(self):
        """Return the S3 client, creating it on first use.

        Without static keys boto3's default credential chain applies
        (environment, shared config, instance profile).
        """
        if self._client is None:
            kwargs = {'region_name': self.region}
            if self.has_static_keys:
                kwargs.update(
                    aws_access_key_id=self.access_key_id,
                    aws_secret_access_key=self.secret_access_key,
                    aws_session_token=self.session_token,
                )
            self._client = boto3.client('s3', **kwargs)
            logger.debug(f"S3 client created for region {self.region}")
        return self._client

    @classmethod
    def from_credentials(cls, credentials) -> "AWSAuth":
        """Build from a CredentialsConfig."""
        return cls(
            access_key_id=credentials.aws_access_key_id,
            secret_access_key=credentials.aws_secret_access_key,
            session_token=credentials.aws_session_token,
            region=credentials.aws_region,
        )


class AzureAuth:
    """Creates the Blob Service client used for ``azure://`` destinations.

    Credentials are tried in this order: connection string, account key,
    then ``DefaultAzureCredential`` for the named account.
    """

    def __init__(
        self,
        account_name: Optional[str] = None,
        account_key: Optional[str] = None,
        connection_string: Optional[str] = None,
        use_default_credential: bool = False
    ):
        self.account_name = account_name
        self.account_key = account_key
        self.connection_string = connection_string
        self.use_default_credential = use_default_credential
        self._client: Optional[BlobServiceClient] = None

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    def get_blob_service_client(self) -> BlobServiceClient:
        """Return the Blob Service client, creating it on first use.

        Raises:
            ValueError: If no usable credential was configured
        """
        if self._client is not None:
            return self._client

        if self.connection_string:
            self._client = BlobServiceClient.from_connection_string(self.connection_string)
        elif self.account_name and self.account_key:
            self._client = BlobServiceClient(account_url=self.account_url, credential=self.account_key)
        elif self.account_name and self.use_default_credential:
            self._client = BlobServiceClient(account_url=self.account_url,
                                             credential=DefaultAzureCredential())
        else:
            raise ValueError(
                "set azure_storage_connection_string, or azure_storage_account "
                "with azure_storage_account_key or a default Azure credential"
            )
        logger.debug(f"Azure Blob client created for {self.account_name or 'connection string'}")
        return self._client

    @classmethod
    def from_credentials(cls, credentials) -> "AzureAuth":
        """Build from a CredentialsConfig; without a key or connection string
        the default Azure credential chain is used."""
        return cls(
            account_name=credentials.azure_storage_account,
            account_key=credentials.azure_storage_account_key,
            connection_string=credentials.azure_storage_connection_string,
            use_default_credential=not (
                credentials.azure_storage_connection_string or credentials.azure_storage_account_key
            ),
        )
