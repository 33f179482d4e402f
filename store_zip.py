"""ZIP archive store: expose the files of a .zip (or wheel, .pyz) as resources."""

import logging
import zipfile
from typing import BinaryIO

from store import ResourceStore, NotFoundError, StoreError, flatten_name

logger = logging.getLogger(__name__)


class ZipStore(ResourceStore):
    """Expose the members of a ZIP archive as flat, dot-separated resources."""

    def __init__(self, path: str, namespace: str = ""):
        try:
            self._zf = zipfile.ZipFile(path, "r")
        except (zipfile.BadZipFile, FileNotFoundError, OSError) as e:
            raise StoreError(f"Cannot open ZIP file: {e}") from e

        # Resource name -> member name, in archive order. Directory entries
        # are not resources.
        self._members: dict[str, str] = {}
        for zi in self._zf.infolist():
            if zi.is_dir():
                continue
            name = flatten_name(zi.filename, namespace)
            if name in self._members:
                logger.warning("%s and %s both map to resource %s; keeping %s",
                               self._members[name], zi.filename, name, zi.filename)
            self._members[name] = zi.filename
        logger.debug("Indexed %d resources from %s", len(self._members), path)

    def exists(self, name: str) -> bool:
        return name in self._members

    def open(self, name: str) -> BinaryIO:
        if name not in self._members:
            raise NotFoundError(f"Not found: {name}")
        try:
            return self._zf.open(self._members[name], "r")
        except Exception as e:
            raise StoreError(f"Error reading from ZIP: {e}") from e

    def names(self) -> list[str]:
        return list(self._members)

    def close(self):
        self._zf.close()
