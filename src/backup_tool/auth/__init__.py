"""Authentication for cloud storage destinations."""

from .cloud_auth import AWSAuth, AzureAuth

__all__ = ["AWSAuth", "AzureAuth"]
