"""TAR archive store: .tar, .tar.gz, .tar.bz2, .tar.xz files as resources."""

import io
import logging
import tarfile
import threading
from typing import BinaryIO

from store import ResourceStore, NotFoundError, StoreError, flatten_name

logger = logging.getLogger(__name__)


class TarStore(ResourceStore):
    """Expose the regular files of a TAR archive as flat, dot-separated resources."""

    def __init__(self, path: str, namespace: str = ""):
        try:
            self._tf = tarfile.open(path, "r:*")
        except (tarfile.TarError, FileNotFoundError, OSError) as e:
            raise StoreError(f"Cannot open TAR file: {e}") from e

        # A TarFile shares one underlying file object; extraction is serialized.
        self._lock = threading.Lock()
        self._members: dict[str, tarfile.TarInfo] = {}
        for member in self._tf.getmembers():
            if not member.isfile():
                continue
            name = flatten_name(member.name, namespace)
            if name in self._members:
                logger.warning("%s and %s both map to resource %s; keeping %s",
                               self._members[name].name, member.name, name, member.name)
            self._members[name] = member
        logger.debug("Indexed %d resources from %s", len(self._members), path)

    def exists(self, name: str) -> bool:
        return name in self._members

    def open(self, name: str) -> BinaryIO:
        if name not in self._members:
            raise NotFoundError(f"Not found: {name}")
        try:
            with self._lock:
                f = self._tf.extractfile(self._members[name])
                if f is None:
                    raise StoreError(f"Cannot read {name} (may be a link or special file)")
                data = f.read()
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Error reading from TAR: {e}") from e
        return io.BytesIO(data)

    def names(self) -> list[str]:
        return list(self._members)

    def close(self):
        self._tf.close()
