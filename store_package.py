"""Package data store: the files bundled inside an importable Python package."""

import fnmatch
import logging
from importlib import resources
from importlib.resources.abc import Traversable
from typing import BinaryIO

from store import ResourceStore, NotFoundError, StoreError, flatten_name

logger = logging.getLogger(__name__)

# Code, not bundled data.
DEFAULT_EXCLUDE = ("__pycache__", "*.py", "*.pyc", "*.pyo")


def _excluded(name: str, exclude) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in exclude)


class PackageStore(ResourceStore):
    """Expose a package's data files as resources named after the package.

    A file at ``mylib/assets/icon.png`` inside package ``mylib`` becomes the
    resource ``mylib.assets.icon.png``. Works for packages on disk and for
    packages imported from zip archives.
    """

    def __init__(self, package: str, exclude=DEFAULT_EXCLUDE):
        try:
            root = resources.files(package)
        except (ModuleNotFoundError, TypeError) as e:
            raise StoreError(f"Cannot load package {package!r}: {e}") from e

        found: list[tuple[str, Traversable]] = []
        self._walk(root, [], exclude, found)
        found.sort(key=lambda item: item[0])

        self._resources: dict[str, Traversable] = {}
        paths: dict[str, str] = {}
        for rel, node in found:
            name = flatten_name(rel, package)
            if name in paths:
                logger.warning("%s and %s both map to resource %s; keeping %s",
                               paths[name], rel, name, rel)
            paths[name] = rel
            self._resources[name] = node
        logger.debug("Indexed %d resources from package %s", len(self._resources), package)

    def _walk(self, node: Traversable, parts: list[str], exclude, found: list):
        for child in node.iterdir():
            if _excluded(child.name, exclude):
                continue
            if child.is_dir():
                self._walk(child, parts + [child.name], exclude, found)
            elif child.is_file():
                found.append(("/".join(parts + [child.name]), child))

    def exists(self, name: str) -> bool:
        return name in self._resources

    def open(self, name: str) -> BinaryIO:
        if name not in self._resources:
            raise NotFoundError(f"Not found: {name}")
        try:
            return self._resources[name].open("rb")
        except OSError as e:
            raise StoreError(f"Error reading package resource {name}: {e}") from e

    def names(self) -> list[str]:
        return list(self._resources)
