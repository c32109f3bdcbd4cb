from __future__ import annotations

import os
import secrets
import time
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from outreach_cms.errors import ValidationError

ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "application/pdf": ".pdf",
}

# Filename extensions accepted for each MIME type.
ALLOWED_EXTENSIONS = {
    "image/jpeg": {".jpg", ".jpeg"},
    "image/png": {".png"},
    "image/gif": {".gif"},
    "application/pdf": {".pdf"},
}

_CHUNK = 64 * 1024


def _debug(msg: str) -> None:
    print(f"[files] {msg}")


def get_file_extension(filename: Optional[str]) -> str:
    """Lower-cased extension including the dot, or '' if there is none."""
    if not filename or "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[1].lower()


def stored_name(mime_type: str) -> str:
    """`file-<epoch ms>-<random><ext>`, the extension taken from the MIME type."""
    ext = ALLOWED_MIME_TYPES[mime_type]
    return f"file-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"


def format_size(size: int) -> str:
    power = 2**10
    n = 0
    labels = {0: "", 1: "K", 2: "M", 3: "G", 4: "T"}
    value = float(size)
    while value >= power and n < 4:
        value /= power
        n += 1
    return f"{value:.0f}{labels[n]}B" if n else f"{size}B"


def save_upload(
    src: BinaryIO,
    *,
    original_name: Optional[str],
    mime_type: Optional[str],
    upload_dir: str,
    max_bytes: int,
) -> Tuple[str, int]:
    """Copy an uploaded stream into `upload_dir` under a fresh name.

    Returns (stored file name, size in bytes). A file over `max_bytes` is removed
    again and rejected; nothing is left on disk for rejected uploads.
    """
    mt = (mime_type or "").lower()
    if mt not in ALLOWED_MIME_TYPES:
        raise ValidationError("Invalid file type. Only JPEG, PNG, GIF and PDF are allowed.")
    ext = get_file_extension(original_name)
    if ext and ext not in ALLOWED_EXTENSIONS[mt]:
        raise ValidationError(f"File extension {ext} does not match file type {mt}")

    folder = Path(upload_dir)
    folder.mkdir(parents=True, exist_ok=True)

    name = stored_name(mt)
    path = folder / name
    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = src.read(_CHUNK)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationError(
                        f"File size is too large. Maximum size is {format_size(max_bytes)}."
                    )
                out.write(chunk)
    except BaseException:
        remove_file(upload_dir, name)
        raise

    if size == 0:
        remove_file(upload_dir, name)
        raise ValidationError("Uploaded file is empty")

    _debug(f"saved {name} ({size} bytes)")
    return name, size


def remove_file(upload_dir: str, file_name: str) -> bool:
    """Delete a stored upload. A file that is already gone is not an error."""
    path = Path(upload_dir) / os.path.basename(file_name)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    _debug(f"removed {path.name}")
    return True
