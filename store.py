"""Resource store interface and in-memory reference implementation."""

import io
import logging
from typing import BinaryIO

logger = logging.getLogger(__name__)

SEPARATOR = "."


class StoreError(Exception):
    """Base error for resource store operations."""
    pass


class NotFoundError(StoreError):
    """Resource does not exist."""
    pass


def flatten_name(path: str, namespace: str = "") -> str:
    """Turn an artifact-relative path into a flat resource name.

    Separators ('/' and '\\') become '.', and a non-empty namespace is
    prepended with a separator: flatten_name("img/a.png", "pkg") == "pkg.img.a.png".
    """
    name = path.strip("/\\").replace("/", SEPARATOR).replace("\\", SEPARATOR)
    if namespace:
        return namespace + SEPARATOR + name
    return name


class ResourceStore:
    """Abstract read-only store of named byte blobs.

    Names are flat strings compared exactly (case-sensitive). There are no
    directories: every name is a leaf.
    """

    def exists(self, name: str) -> bool:
        """Return True if a resource with exactly this name exists."""
        raise NotImplementedError

    def open(self, name: str) -> BinaryIO:
        """Open a fresh binary stream for a resource. Raises NotFoundError if absent."""
        raise NotImplementedError

    def names(self) -> list[str]:
        """Return every resource name, in the store's native order."""
        raise NotImplementedError


class MemoryStore(ResourceStore):
    """In-memory store backed by a flat dict.

    String values are encoded to UTF-8 bytes. Enumeration follows the dict's
    insertion order.

    Example:
        MemoryStore({
            "MyLib.readme.txt": "Hello, world!",
            "MyLib.assets.icon.png": b"\\x89PNG",
        })
    """

    def __init__(self, resources: dict):
        self._resources = {
            name: data.encode("utf-8") if isinstance(data, str) else bytes(data)
            for name, data in resources.items()
        }

    def exists(self, name: str) -> bool:
        return name in self._resources

    def open(self, name: str) -> BinaryIO:
        try:
            data = self._resources[name]
        except KeyError:
            raise NotFoundError(f"Not found: {name}") from None
        logger.debug("Opening in-memory resource %s (%d bytes)", name, len(data))
        return io.BytesIO(data)

    def names(self) -> list[str]:
        return list(self._resources)
