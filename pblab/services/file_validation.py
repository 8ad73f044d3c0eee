"""Upload whitelist for artifacts. Links skip the file check and get a URL check instead."""
from __future__ import annotations

import os
from typing import Optional

ALLOWED_FILE_TYPES = frozenset({
    # images
    "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/svg+xml",
    # documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain", "text/markdown", "text/csv",
    # archives
    "application/zip", "application/x-rar-compressed", "application/x-tar", "application/gzip",
    # video
    "video/mp4", "video/mpeg", "video/quicktime", "video/x-msvideo", "video/webm",
    # audio
    "audio/mpeg", "audio/wav", "audio/ogg", "audio/mp4",
})

ALLOWED_FILE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".md", ".csv",
    ".zip", ".rar", ".tar", ".gz",
    ".mp4", ".mov", ".avi", ".wmv", ".webm", ".mpeg", ".mpg",
    ".mp3", ".wav", ".ogg", ".m4a",
})


def validate_file_type(mime_type: Optional[str] = None, file_name: Optional[str] = None) -> bool:
    """True when the MIME type or, failing that, the extension is whitelisted."""
    if not mime_type and not file_name:
        return True
    if mime_type and mime_type.lower() in ALLOWED_FILE_TYPES:
        return True
    if file_name:
        ext = os.path.splitext(file_name.lower())[1]
        if ext in ALLOWED_FILE_EXTENSIONS:
            return True
    return False


def get_allowed_file_types() -> dict[str, list[str]]:
    return {
        "mime_types": sorted(ALLOWED_FILE_TYPES),
        "extensions": sorted(ALLOWED_FILE_EXTENSIONS),
    }
