"""File provider interface: file info, directory contents and change tokens.

A provider never raises for a path that does not exist. It returns a result
whose ``exists`` flag is False, and callers check that flag before using any
other field.
"""

from datetime import datetime, timezone
from typing import BinaryIO, Iterable, Iterator


class FileInfo:
    """Metadata and content access for a single file."""

    @property
    def exists(self) -> bool:
        raise NotImplementedError

    @property
    def length(self) -> int:
        """Size of the file in bytes, or -1 for a file that does not exist."""
        raise NotImplementedError

    @property
    def physical_path(self) -> str | None:
        """Path on disk, or None when the file is not directly accessible."""
        raise NotImplementedError

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def last_modified(self) -> datetime:
        raise NotImplementedError

    @property
    def is_directory(self) -> bool:
        raise NotImplementedError

    def create_read_stream(self) -> BinaryIO:
        """Open the content for reading. The caller closes the stream."""
        raise NotImplementedError


class NotFoundFileInfo(FileInfo):
    """Result for a path that does not resolve to a file."""

    def __init__(self, name: str | None):
        self._name = name

    def __repr__(self):
        return f"NotFoundFileInfo({self._name!r})"

    exists = property(lambda self: False)
    length = property(lambda self: -1)
    physical_path = property(lambda self: None)
    name = property(lambda self: self._name)
    last_modified = property(lambda self: datetime.min.replace(tzinfo=timezone.utc))
    is_directory = property(lambda self: False)

    def create_read_stream(self) -> BinaryIO:
        raise FileNotFoundError(f"The file {self._name} does not exist.")


class DirectoryContents:
    """An iterable of FileInfo entries with an existence flag."""

    @property
    def exists(self) -> bool:
        raise NotImplementedError

    def __iter__(self) -> Iterator[FileInfo]:
        raise NotImplementedError


class EnumerableDirectoryContents(DirectoryContents):
    """Contents of a directory that exists, backed by a list of entries."""

    def __init__(self, entries: Iterable[FileInfo]):
        self._entries = list(entries)

    exists = property(lambda self: True)

    def __iter__(self) -> Iterator[FileInfo]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class NotFoundDirectoryContents(DirectoryContents):
    """Result for a path that does not resolve to a directory."""

    exists = property(lambda self: False)

    def __iter__(self) -> Iterator[FileInfo]:
        return iter(())

    def __len__(self) -> int:
        return 0


class _NoopDisposable:
    def dispose(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.dispose()


class ChangeToken:
    """Signals that watched files have changed."""

    @property
    def has_changed(self) -> bool:
        raise NotImplementedError

    @property
    def active_change_callbacks(self) -> bool:
        """True if the token invokes registered callbacks proactively."""
        raise NotImplementedError

    def register_change_callback(self, callback, state=None):
        """Register callback(state) to run on change. Returns a disposable."""
        raise NotImplementedError


class NoopChangeToken(ChangeToken):
    """A token that never changes. Use the shared SINGLETON instance."""

    SINGLETON: "NoopChangeToken"

    has_changed = property(lambda self: False)
    active_change_callbacks = property(lambda self: False)

    def register_change_callback(self, callback, state=None):
        return _NoopDisposable()


NoopChangeToken.SINGLETON = NoopChangeToken()


class FileProvider:
    """Abstract read-only file provider."""

    def get_file_info(self, subpath: str | None) -> FileInfo:
        """Locate a file. Check ``exists`` on the result."""
        raise NotImplementedError

    def get_directory_contents(self, subpath: str | None) -> DirectoryContents:
        """Enumerate a directory. Check ``exists`` on the result."""
        raise NotImplementedError

    def watch(self, pattern: str) -> ChangeToken:
        """Return a change token for files matching pattern."""
        raise NotImplementedError
