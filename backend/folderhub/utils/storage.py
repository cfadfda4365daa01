"""Disk layout of the folder tree and disk space utilities.

Folders and files live under a single storage root. The database keeps paths
relative to that root (``reports/2024/q1``), so the root can be moved
without rewriting rows.
"""

from __future__ import annotations

import io
import logging
import re
import shutil
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Iterator

from folderhub.exceptions import InvalidDataError, StorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-_]")


def sanitize_name(name: str | None) -> str:
    """Make a display name safe for use as a single path component."""
    if not name or not name.strip():
        raise InvalidDataError("Name must not be empty")
    sanitized = _UNSAFE_CHARS.sub("_", name.strip())
    if not sanitized.strip("."):
        raise InvalidDataError(f"Name '{name}' is not a valid file or folder name")
    return sanitized


def join_path(*parts: str | None) -> str:
    return "/".join(p.strip("/") for p in parts if p)


def name_candidates(name: str, keep_extension: bool = True) -> Iterator[str]:
    """Yield ``name``, ``name (1)``, ``name (2)``, ...

    With ``keep_extension`` the counter goes before the last dot, as for
    file names. Folder names take the counter at the end.
    """
    yield name
    stem, dot, ext = name.rpartition(".")
    if not keep_extension or not dot or not stem:
        stem, ext = name, ""
    else:
        ext = "." + ext
    n = 1
    while True:
        yield f"{stem} ({n}){ext}"
        n += 1


def unique_name(name: str, taken: Callable[[str], bool], keep_extension: bool = True) -> str:
    """First candidate from :func:`name_candidates` for which ``taken`` is false."""
    for candidate in name_candidates(name, keep_extension):
        if not taken(candidate):
            return candidate
    raise AssertionError("unreachable")


def get_disk_usage(path: str | Path) -> dict:
    """Get disk usage for the given path."""
    usage = shutil.disk_usage(str(path))
    return {
        "total_bytes": usage.total,
        "used_bytes": usage.used,
        "free_bytes": usage.free,
        "percent": round(usage.used / usage.total * 100, 1) if usage.total > 0 else 0,
    }


def get_directory_size(path: str | Path) -> int:
    """Calculate total size of all files in a directory (recursive)."""
    total = 0
    for f in Path(path).rglob("*"):
        if f.is_file():
            total += f.stat().st_size
    return total


class FileStorage:
    """Filesystem operations confined to one root directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, relative: str) -> Path:
        path = (self.root / relative).resolve()
        if path != self.root and self.root not in path.parents:
            raise InvalidDataError(f"Path '{relative}' escapes the storage root")
        return path

    def exists(self, relative: str) -> bool:
        return self.resolve(relative).exists()

    def make_dir(self, relative: str) -> Path:
        path = self.resolve(relative)
        try:
            path.mkdir(parents=True, exist_ok=False)
        except FileExistsError:
            raise StorageError(f"Directory '{relative}' already exists on disk")
        except OSError as exc:
            raise StorageError(f"Could not create directory '{relative}': {exc}") from exc
        return path

    def ensure_dir(self, relative: str) -> Path:
        path = self.resolve(relative)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def move(self, src: str, dst: str) -> Path:
        target = self.resolve(dst)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(self.resolve(src)), str(target))
        except OSError as exc:
            raise StorageError(f"Could not move '{src}' to '{dst}': {exc}") from exc
        logger.debug("Moved %s -> %s", src, dst)
        return target

    def copy_file(self, src: str, dst: str) -> Path:
        target = self.resolve(dst)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.resolve(src), target)
        except OSError as exc:
            raise StorageError(f"Could not copy '{src}' to '{dst}': {exc}") from exc
        return target

    def write_bytes(self, relative: str, data: bytes) -> Path:
        path = self.resolve(relative)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Could not write '{relative}': {exc}") from exc
        return path

    def delete_file(self, relative: str) -> None:
        try:
            self.resolve(relative).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not delete '{relative}': {exc}") from exc

    def remove_tree(self, relative: str) -> None:
        path = self.resolve(relative)
        if path == self.root:
            raise InvalidDataError("Refusing to remove the storage root")
        if not path.exists():
            logger.warning("Directory %s already missing on disk", relative)
            return
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise StorageError(f"Could not remove '{relative}': {exc}") from exc

    def clear_dir(self, relative: str) -> None:
        """Remove everything inside a directory, keeping the directory."""
        path = self.ensure_dir(relative)
        for child in path.iterdir():
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()

    def zip_entries(self, entries: Iterable[tuple[str, str | None]]) -> bytes:
        """Build a ZIP archive in memory.

        Each entry is ``(arcname, relative_path)``. A ``None`` path adds an
        empty directory entry, so empty folders survive the round trip.
        """
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for arcname, relative in entries:
                if relative is None:
                    zf.writestr(arcname.rstrip("/") + "/", b"")
                    continue
                path = self.resolve(relative)
                if not path.is_file():
                    logger.warning("Skipping missing file %s while zipping", relative)
                    continue
                zf.write(path, arcname)
        return buffer.getvalue()

    def directory_size(self, relative: str = "") -> int:
        return get_directory_size(self.resolve(relative))

    def disk_usage(self) -> dict:
        return get_disk_usage(self.root)
