"""Immutable descriptors for scanned files."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class FileKind(str, Enum):
    """Kind of filesystem entry described by a `FileDescriptor`."""

    FILE = "file"
    DIRECTORY = "directory"


class FileDescriptor(BaseModel):
    """Snapshot of a single file handed to the negotiation.

    Attributes:
        path: Absolute path to the entry.
        name: Base name including the extension.
        extension: Lower-case extension with its leading dot, or an empty string.
        size: Size in bytes.
        modified: Timezone-aware modification time.
        kind: Whether the entry is a file or a directory.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    name: str
    extension: str = ""
    size: int = 0
    modified: datetime
    kind: FileKind = FileKind.FILE

    @property
    def modified_ms(self) -> int:
        """Return the modification time as epoch milliseconds."""
        modified = self.modified
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        return int(modified.timestamp() * 1000)

    @classmethod
    def from_path(cls, path: Path, *, follow_symlinks: bool = True) -> "FileDescriptor":
        """Build a descriptor by statting ``path``.

        Args:
            path: Filesystem entry to describe.
            follow_symlinks: Whether to stat the symlink target.

        Returns:
            FileDescriptor: Descriptor populated from the filesystem.

        Raises:
            OSError: If the entry cannot be statted.
        """
        stat = path.stat(follow_symlinks=follow_symlinks)
        kind = FileKind.DIRECTORY if path.is_dir() else FileKind.FILE
        return cls(
            path=path,
            name=path.name,
            extension=path.suffix.lower(),
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            kind=kind,
        )


__all__ = ["FileKind", "FileDescriptor"]
