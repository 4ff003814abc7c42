"""Backup destinations: classification and remote uploads."""

from .classifier import Destination, DestinationKind, Platform, classify_destination, parse_destinations
from .remote import RemoteUploadDispatcher, RemoteUploader, build_uploader

__all__ = [
    "Destination",
    "DestinationKind",
    "Platform",
    "RemoteUploadDispatcher",
    "RemoteUploader",
    "build_uploader",
    "classify_destination",
    "parse_destinations",
]
