# Images_Library.py
# Description: Image uploads: validation, storage on disk, and image records.
#
# Imports
import re
import secrets
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase, InputError
from pkm_Server_API.app.core.Sync.entity_kinds import SyncKind, UPLOAD_URL_PREFIX
from pkm_Server_API.app.core.Sync.ownership import ensure_owned
from pkm_Server_API.app.core.Sync.soft_delete import soft_delete
#
#######################################################################################################################
#
# Functions:

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class FileTooLargeError(InputError):
    pass


class UnsupportedImageTypeError(InputError):
    pass


def image_url(filepath: str) -> str:
    return f"{UPLOAD_URL_PREFIX}{filepath}"


def build_stored_filename(original_filename: str, now_ms: Optional[int] = None) -> str:
    """`<ms>-<random>-<stem><ext>` with the stem reduced to filesystem-safe characters."""
    name = Path(original_filename or "upload").name
    suffix = Path(name).suffix.lower()
    stem = _UNSAFE_CHARS.sub("_", Path(name).stem).strip("._") or "image"
    now_ms = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    return f"{now_ms}-{secrets.randbelow(10 ** 9)}-{stem[:100]}{_UNSAFE_CHARS.sub('', suffix)}"


def validate_upload(content_type: Optional[str], size: int, allowed_mimetypes: Iterable[str], max_size: int) -> None:
    if content_type not in set(allowed_mimetypes):
        raise UnsupportedImageTypeError("Invalid file type. Only JPEG, PNG, GIF, and WEBP are allowed.")
    if size > max_size:
        raise FileTooLargeError(f"File too large. Maximum size is {max_size} bytes.")
    if size == 0:
        raise InputError("No file uploaded.")


def save_image(db: PKMDatabase, user_id: int, upload_dir: Path, original_filename: str,
               content_type: Optional[str], data: bytes, allowed_mimetypes: Iterable[str],
               max_size: int) -> Dict[str, Any]:
    """
    Validates and writes the file under `upload_dir`, then records it.
    The file is removed again when the record cannot be written.
    """
    validate_upload(content_type, len(data), allowed_mimetypes, max_size)
    upload_dir = Path(upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    stored_name = build_stored_filename(original_filename)
    target = upload_dir / stored_name
    target.write_bytes(data)
    logger.debug(f"Stored upload '{original_filename}' as {target}.")

    try:
        with db.transaction() as conn:
            now = db.now_iso()
            image_id = db.insert_record(conn, "images", {
                "filename": Path(original_filename or stored_name).name,
                "filepath": stored_name,
                "mimetype": content_type,
                "size": len(data),
                "uploaded_by": user_id,
                "created_at": now,
                "updated_at": now,
            })
            record = db.fetch_record(conn, "images", image_id)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    record["url"] = image_url(record["filepath"])
    logger.info(f"User {user_id} uploaded image {image_id} ({record['size']} bytes, {content_type}).")
    return record


def delete_image(db: PKMDatabase, user_id: int, image_id: int) -> None:
    """Tombstones the image record. The file on disk is kept."""
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.IMAGES, image_id, user_id)
        soft_delete(conn, SyncKind.IMAGES, image_id, db.now_iso())
    logger.info(f"User {user_id} deleted image {image_id}.")

#
# End of Images_Library.py
#######################################################################################################################
