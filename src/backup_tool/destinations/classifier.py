"""Destination descriptors and string classification."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple


class DestinationKind(str, Enum):
    """Where a destination lives."""
    LOCAL = "local"
    REMOTE = "remote"


class Platform(str, Enum):
    """Storage platform behind a destination."""
    LOCAL = "local"
    S3 = "s3"
    AZURE = "azure"
    GDRIVE = "gdrive"
    UNKNOWN = "unknown"


# Scheme prefix -> platform
REMOTE_PREFIXES = {
    "s3://": Platform.S3,
    "azure://": Platform.AZURE,
    "gdrive://": Platform.GDRIVE,
}


@dataclass(frozen=True)
class Destination:
    """One backup target."""
    target: str
    kind: DestinationKind = DestinationKind.LOCAL
    platform: Platform = Platform.LOCAL

    @property
    def is_remote(self) -> bool:
        return self.kind == DestinationKind.REMOTE

    def bucket_and_prefix(self) -> Tuple[str, str]:
        """Split a remote target into its container and key prefix.

        ``s3://bucket/some/prefix`` -> ``("bucket", "some/prefix")``
        """
        if not self.is_remote:
            raise ValueError(f"Not a remote destination: {self.target}")

        _, _, rest = self.target.partition("://")
        container, _, prefix = rest.partition("/")
        return container, prefix.strip("/")

    def __str__(self) -> str:
        return self.target


def classify_destination(raw: str) -> Destination:
    """Turn a raw destination string into a Destination.

    Known scheme prefixes map to their platform, any other ``scheme://``
    becomes an unknown remote and everything else is a local path, made
    absolute.
    """
    value = raw.strip()
    if not value:
        raise ValueError("Destination must not be empty")

    lowered = value.lower()
    for prefix, platform in REMOTE_PREFIXES.items():
        if lowered.startswith(prefix):
            return Destination(target=value, kind=DestinationKind.REMOTE, platform=platform)

    if "://" in value:
        return Destination(target=value, kind=DestinationKind.REMOTE, platform=Platform.UNKNOWN)

    return Destination(
        target=os.path.abspath(os.path.expanduser(value)),
        kind=DestinationKind.LOCAL,
        platform=Platform.LOCAL,
    )


def parse_destinations(values: Iterable[str]) -> List[Destination]:
    """Classify comma-separated destination strings.

    Blank items are ignored, so ``"a,,b"`` yields two destinations.
    """
    destinations = []
    for value in values:
        for item in value.split(","):
            if item.strip():
                destinations.append(classify_destination(item))
    return destinations
