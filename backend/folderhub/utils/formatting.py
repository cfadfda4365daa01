"""Human-readable sizes and file-type icons for explorer listings."""

from __future__ import annotations

_DASHBOARD_UNITS = ["Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]

_ICONS: dict[str, tuple[str, ...]] = {
    "file-pdf": ("pdf",),
    "file-word": ("doc", "docx", "odt", "rtf"),
    "file-excel": ("xls", "xlsx", "ods", "csv"),
    "file-powerpoint": ("ppt", "pptx", "odp"),
    "file-image": ("png", "jpg", "jpeg", "gif", "bmp", "svg", "webp"),
    "file-audio": ("mp3", "wav", "ogg", "flac"),
    "file-video": ("mp4", "avi", "mkv", "mov", "webm"),
    "file-archive": ("zip", "rar", "7z", "tar", "gz"),
    "file-code": ("py", "js", "ts", "java", "html", "css", "json", "xml"),
    "file-text": ("txt", "md", "log"),
}
_ICON_BY_EXTENSION = {ext: icon for icon, exts in _ICONS.items() for ext in exts}


def format_size(size_bytes: int) -> str:
    """Explorer style: one decimal, binary units up to GB."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    kb = size_bytes / 1024
    if kb < 1024:
        return f"{kb:.1f} KB"
    mb = kb / 1024
    if mb < 1024:
        return f"{mb:.1f} MB"
    return f"{mb / 1024:.1f} GB"


def format_bytes(size_bytes: int, decimals: int = 2) -> str:
    """Dashboard style: trailing zeros dropped, e.g. ``1.5 KB``."""
    if size_bytes <= 0:
        return "0 Bytes"
    decimals = max(decimals, 0)
    value = float(size_bytes)
    i = 0
    while value >= 1024 and i < len(_DASHBOARD_UNITS) - 1:
        value /= 1024
        i += 1
    value = round(value, decimals)
    text = f"{value:.{decimals}f}".rstrip("0").rstrip(".") if decimals else f"{value:.0f}"
    return f"{text} {_DASHBOARD_UNITS[i]}"


def icon_for(filename: str) -> str:
    _, dot, ext = filename.rpartition(".")
    if not dot:
        return "file"
    return _ICON_BY_EXTENSION.get(ext.lower(), "file")
