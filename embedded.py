"""File provider over embedded resources.

Resources live in a ResourceStore under flat, dot-separated names. The
provider maps request paths onto those names below an optional base
namespace and presents everything under that namespace as one directory.
Lookups are case-sensitive.
"""

import io
import logging
import threading
from datetime import datetime, timezone
from typing import BinaryIO

from fileprovider import (
    FileInfo, FileProvider, NotFoundFileInfo, DirectoryContents,
    EnumerableDirectoryContents, NotFoundDirectoryContents, ChangeToken, NoopChangeToken,
)
from store import ResourceStore, SEPARATOR

logger = logging.getLogger(__name__)

# Embedded resources carry no reliable modification time.
LAST_MODIFIED_SENTINEL = datetime.max.replace(tzinfo=timezone.utc)


def _stream_length(stream: BinaryIO) -> int | None:
    """Measure a stream without consuming it. Returns None if it can't seek."""
    if not stream.seekable():
        return None
    start = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(start)
    return end - start


class EmbeddedResourceFileInfo(FileInfo):
    """A resource that exists in the store.

    Nothing is read at construction. The length is measured the first time it
    is needed, by ``length`` or ``create_read_stream()``, and then kept for
    the lifetime of this object.
    """

    def __init__(self, store: ResourceStore, resource_path: str, name: str, last_modified: datetime):
        self._store = store
        self._resource_path = resource_path
        self._name = name
        self._last_modified = last_modified
        self._length: int | None = None
        self._lock = threading.Lock()

    def __repr__(self):
        return f"EmbeddedResourceFileInfo({self._resource_path!r}, name={self._name!r})"

    exists = property(lambda self: True)
    physical_path = property(lambda self: None)
    is_directory = property(lambda self: False)
    name = property(lambda self: self._name)
    last_modified = property(lambda self: self._last_modified)

    @property
    def resource_path(self) -> str:
        """Fully-qualified store key."""
        return self._resource_path

    @property
    def length(self) -> int:
        if self._length is None:
            with self._lock:
                if self._length is None:
                    with self._store.open(self._resource_path) as stream:
                        length = _stream_length(stream)
                        if length is None:
                            length = sum(len(chunk) for chunk in iter(lambda: stream.read(65536), b""))
                    self._length = length
        return self._length

    def create_read_stream(self) -> BinaryIO:
        stream = self._store.open(self._resource_path)
        if self._length is None:
            length = _stream_length(stream)
            if length is not None:
                with self._lock:
                    if self._length is None:
                        self._length = length
        return stream


class EmbeddedFileProvider(FileProvider):
    """Looks up files among the embedded resources of a store.

    ``base_namespace`` scopes the provider to resources named
    ``<base_namespace>.<...>``; without it every resource is visible.
    """

    def __init__(self, store: ResourceStore, base_namespace: str | None = None):
        if store is None:
            raise ValueError("store is required")

        self._store = store
        self._prefix = base_namespace + SEPARATOR if base_namespace else ""
        self._last_modified = LAST_MODIFIED_SENTINEL

    @property
    def prefix(self) -> str:
        return self._prefix

    def resolve(self, subpath: str) -> str:
        """Map a request path to a store key: prefix + path with separators folded to '.'."""
        return self._prefix + subpath.replace("/", SEPARATOR).replace("\\", SEPARATOR)

    def get_file_info(self, subpath: str | None) -> FileInfo:
        if not subpath:
            return NotFoundFileInfo(subpath)

        resource_path = self.resolve(subpath)
        name = subpath.replace("\\", "/").rpartition("/")[2]
        if not self._store.exists(resource_path):
            logger.debug("No embedded resource %s for %r", resource_path, subpath)
            return NotFoundFileInfo(name)
        return EmbeddedResourceFileInfo(self._store, resource_path, name, self._last_modified)

    def get_directory_contents(self, subpath: str | None) -> DirectoryContents:
        # Flat namespace: only the root directory exists.
        if subpath != "":
            return NotFoundDirectoryContents()

        prefix = self._prefix
        entries = [
            EmbeddedResourceFileInfo(self._store, resource_name, resource_name[len(prefix):], self._last_modified)
            for resource_name in self._store.names()
            if resource_name.startswith(prefix)
        ]
        logger.debug("Listed %d embedded resources under %r", len(entries), prefix)
        return EnumerableDirectoryContents(entries)

    def watch(self, pattern: str) -> ChangeToken:
        return NoopChangeToken.SINGLETON
