"""Protected-domain classification of restore paths."""

from enum import Enum
from typing import Tuple

DOMAIN_SEPARATOR = "/"


class ProtectedDomain(Enum):
    """Bucket a restore path falls into, decided by its first path segment."""

    LIBRARY = "Library/"
    MEDIA = "Media/"
    SYSTEM = "System/"
    GENERIC = ""

    @classmethod
    def from_path(cls, path: str) -> "ProtectedDomain":
        for bucket in (cls.LIBRARY, cls.MEDIA, cls.SYSTEM):
            if path.startswith(bucket.value):
                return bucket
        return cls.GENERIC

    @property
    def directory(self) -> str:
        return _DIRECTORIES[self]

    @property
    def folder_name(self) -> str:
        """Backup domain that owns paths in this bucket."""
        return _FOLDER_NAMES[self]


_DIRECTORIES = {
    ProtectedDomain.LIBRARY: "Library",
    ProtectedDomain.MEDIA: "Media",
    ProtectedDomain.SYSTEM: "System",
    ProtectedDomain.GENERIC: "ProtectedDomain",
}

_FOLDER_NAMES = {
    ProtectedDomain.LIBRARY: "Library",
    ProtectedDomain.MEDIA: "MediaDomain",
    ProtectedDomain.SYSTEM: "SystemDomain",
    ProtectedDomain.GENERIC: "RootDomain",
}


def get_domain_for_path(path: str, uses_domains: bool) -> Tuple[str, str]:
    """Split path into (domain, relative path).

    Domain-addressed paths carry the domain as their first segment; a
    domain-addressed path without a separator, or any other path, yields
    an empty domain and the whole path.
    """
    if uses_domains and DOMAIN_SEPARATOR in path:
        domain, _, relative = path.partition(DOMAIN_SEPARATOR)
        return domain, relative
    return "", path


def classify_path(path: str) -> str:
    """Backup domain folder for a path that is not domain-addressed."""
    return ProtectedDomain.from_path(path).folder_name
