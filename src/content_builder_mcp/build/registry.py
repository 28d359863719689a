"""Asset registry - ordered list of content files to build."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .errors import InvalidArgumentError
from .policy import resolve_importer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetEntry:
    """One registered input for the content engine.

    importer None lets the engine auto-detect from the extension,
    processor None passes data through untransformed.
    """

    source_path: str
    name: str
    importer: str | None = None
    processor: str | None = None

    @property
    def link(self) -> str:
        """File name the engine shows for this asset."""
        return os.path.basename(self.source_path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"sourcePath": self.source_path, "name": self.name}
        if self.importer:
            result["importer"] = self.importer
        if self.processor:
            result["processor"] = self.processor
        return result


class AssetRegistry:
    """Insertion-ordered asset list.

    Duplicate logical names are accepted here; the engine rejects them
    when the build runs.
    """

    def __init__(self) -> None:
        self._entries: list[AssetEntry] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AssetEntry]:
        return iter(self.snapshot())

    def add_by_convention(self, path: str, name: str | None = None) -> AssetEntry:
        """Add a file using the default importer/processor for its extension.

        Args:
            path: Source file path
            name: Logical asset name (defaults to the file name without extension)

        Returns:
            The registered entry

        Raises:
            InvalidArgumentError: If path is empty
            UnknownExtensionError: If the extension has no default mapping
        """
        if not path:
            raise InvalidArgumentError("Asset path is required")
        info = resolve_importer(path)
        return self.add_explicit(path, name, info.importer, info.processor)

    def add_explicit(
        self,
        path: str,
        name: str | None = None,
        importer: str | None = None,
        processor: str | None = None,
    ) -> AssetEntry:
        """Add a file with explicit importer and processor.

        Args:
            path: Source file path
            name: Logical asset name (defaults to the file name without extension)
            importer: Importer name, None to let the engine auto-detect
            processor: Processor name, None for no processing

        Returns:
            The registered entry

        Raises:
            InvalidArgumentError: If path is empty
        """
        if not path:
            raise InvalidArgumentError("Asset path is required")

        # The engine resolves relative paths against the workspace, not our cwd
        source_path = os.path.abspath(path)
        if not name:
            name = os.path.splitext(os.path.basename(source_path))[0]

        entry = AssetEntry(
            source_path=source_path,
            name=name,
            importer=importer or None,
            processor=processor or None,
        )
        with self._lock:
            self._entries.append(entry)
        logger.debug(f"Registered asset {name}: {source_path}")
        return entry

    def clear(self) -> int:
        """Remove all entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def snapshot(self) -> tuple[AssetEntry, ...]:
        """Current entries in insertion order."""
        with self._lock:
            return tuple(self._entries)
