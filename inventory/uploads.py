"""
inventory/uploads.py -- Item image storage on local disk.

Files are written to the configured upload directory as
    <field>_<unix millis>_<original basename>
and served back under /uploads/ by the route in api/main.py.

Security:
  Only the basename of the client-supplied filename is kept, with anything
  outside [A-Za-z0-9._-] replaced, so "../../etc/passwd" cannot escape the
  upload directory. Size is capped at MAX_UPLOAD_BYTES.

Removal is best-effort: a missing or locked old image must not fail the item
update or delete that triggered it, so errors are logged and swallowed.
"""

import logging
import re
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

logger = logging.getLogger("stockroom.inventory")

MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MB

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class UploadTooLarge(ValueError):
    pass


def _safe_name(filename: str) -> str:
    base = Path(filename.replace("\\", "/")).name
    return _UNSAFE_CHARS.sub("_", base) or "upload"


async def save_upload(upload: Optional[UploadFile], upload_dir: str, field: str = "image") -> Optional[str]:
    """Store an uploaded file and return its stored filename.

    Returns None when no file was sent (browsers post an empty part with no
    filename for an untouched file input).
    """
    if upload is None or not upload.filename:
        return None
    content = await upload.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise UploadTooLarge(f"File exceeds the {MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit.")
    if not content:
        return None

    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    stored = f"{field}_{int(time.time() * 1000)}_{_safe_name(upload.filename)}"
    (directory / stored).write_bytes(content)
    logger.info("Stored upload %s (%d bytes)", stored, len(content))
    return stored


def remove_upload(filename: Optional[str], upload_dir: str) -> bool:
    """Delete a stored upload. Returns True if a file was removed."""
    if not filename:
        return False
    path = Path(upload_dir) / _safe_name(filename)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Upload %s already gone", filename)
        return False
    except OSError:
        logger.exception("Could not remove upload %s", filename)
        return False
    return True


def find_upload(filename: str, upload_dir: str) -> Optional[Path]:
    """Return the path of a stored upload, or None if it does not exist.

    Names that do not survive sanitising unchanged (path separators, "..")
    are never looked up.
    """
    if not filename or _safe_name(filename) != filename or filename in (".", ".."):
        return None
    path = Path(upload_dir) / filename
    return path if path.is_file() else None
