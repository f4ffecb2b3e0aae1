"""File size, modification time and digests computed once at startup."""

import hashlib
import os
from dataclasses import dataclass

from .errors import FileAccessError


_READ_SIZE = 1024 * 1024


@dataclass(frozen=True)
class FileDescriptor:
    path: str
    basename: str
    size: int
    modified_at: float
    sha1: str
    sha256: str


def compute_file_metadata(path: str) -> FileDescriptor:
    """Stat and hash `path` in one pass; raise FileAccessError when unreadable."""
    file_path = os.path.abspath(str(path or ""))
    if os.path.isdir(file_path):
        raise FileAccessError(f"{path}: is a directory")

    sha1 = hashlib.sha1()
    sha256 = hashlib.sha256()
    size = 0
    try:
        with open(file_path, "rb") as f:
            st = os.fstat(f.fileno())
            while True:
                chunk = f.read(_READ_SIZE)
                if not chunk:
                    break
                sha1.update(chunk)
                sha256.update(chunk)
                size += len(chunk)
    except OSError as e:
        raise FileAccessError(f"{path}: {e.strerror or e}") from e

    return FileDescriptor(
        path=file_path,
        basename=os.path.basename(file_path),
        size=size,
        modified_at=float(st.st_mtime),
        sha1=sha1.hexdigest(),
        sha256=sha256.hexdigest(),
    )
