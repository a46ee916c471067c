"""Local tree walker — enumerates files under a directory."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from piiscan.errors import NotFoundError
from piiscan.scanner.models import FileDescriptor, extension_of, normalize_extensions

logger = logging.getLogger(__name__)


class LocalTreeWalker:
    """Walk a directory tree without recursion, following each real directory once."""

    def __init__(self, exclude: Iterable[str] | None = None) -> None:
        self._exclude = set(exclude or ())

    def walk(
        self,
        root: str | Path,
        allowed_extensions: Iterable[str] | None = None,
    ) -> list[FileDescriptor]:
        """Return every regular file under ``root`` that passes the filter."""
        root = Path(root)
        if not root.is_dir():
            raise NotFoundError(f"Directory not found: {root}")

        allowed = normalize_extensions(allowed_extensions)
        files: list[FileDescriptor] = []
        visited: set[str] = set()
        base = str(root)
        stack: list[tuple[Path, str]] = [(root, "")]

        while stack:
            directory, prefix = stack.pop()
            real = os.path.realpath(directory)
            if real in visited:
                logger.debug("Skipping already visited directory %s", directory)
                continue
            visited.add(real)

            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError as e:
                logger.debug("Cannot list %s: %s", directory, e)
                continue

            subdirs: list[tuple[Path, str]] = []
            for entry in entries:
                if entry.name in self._exclude:
                    continue
                try:
                    if entry.is_dir():
                        subdirs.append((Path(entry.path), f"{prefix}{entry.name}/"))
                        continue
                    if not entry.is_file():
                        continue
                    size = entry.stat().st_size
                except OSError as e:
                    logger.debug("Skipping %s: %s", entry.path, e)
                    continue

                ext = extension_of(entry.name)
                if allowed is not None and ext not in allowed:
                    continue
                files.append(
                    FileDescriptor(
                        path=prefix + entry.name,
                        extension=ext,
                        size_bytes=size,
                        root=base,
                    )
                )

            # Reversed so the lexicographically first subdirectory is popped next
            stack.extend(reversed(subdirs))

        return files


def read_local(descriptor: FileDescriptor) -> bytes:
    """Content loader for files found by :class:`LocalTreeWalker`."""
    if descriptor.content is not None:
        return descriptor.content
    return Path(descriptor.location).read_bytes()
