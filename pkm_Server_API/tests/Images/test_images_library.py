# test_images_library.py
#
# Imports
import re
#
# Third-Party Imports
import pytest
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.PKM_DB import NotFoundError, InputError
from pkm_Server_API.app.core.Images import Images_Library
from pkm_Server_API.app.core.Images.Images_Library import FileTooLargeError, UnsupportedImageTypeError
#
########################################################################################################################
#
# Tests:

ALLOWED = ["image/png", "image/jpeg"]
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _save(db, user, upload_dir, data=PNG_BYTES, content_type="image/png", name="My Diagram.png", max_size=1024):
    return Images_Library.save_image(db, user["id"], upload_dir=upload_dir, original_filename=name,
                                     content_type=content_type, data=data, allowed_mimetypes=ALLOWED,
                                     max_size=max_size)


def test_stored_filename_format():
    name = Images_Library.build_stored_filename("../../etc/My Photo!.JPG", now_ms=1700000000000)
    assert re.fullmatch(r"1700000000000-\d+-My_Photo\.jpg", name)
    assert "/" not in name


def test_stored_filename_without_usable_stem():
    assert Images_Library.build_stored_filename("!!!.png", now_ms=1).endswith("-image.png")
    assert Images_Library.build_stored_filename(None, now_ms=1).endswith("-upload")


@pytest.mark.parametrize("content_type,size,error", [
    ("text/plain", 10, UnsupportedImageTypeError),
    (None, 10, UnsupportedImageTypeError),
    ("image/png", 2048, FileTooLargeError),
    ("image/png", 0, InputError),
])
def test_validate_upload_rejections(content_type, size, error):
    with pytest.raises(error):
        Images_Library.validate_upload(content_type, size, ALLOWED, 1024)


def test_validate_upload_messages():
    with pytest.raises(InputError, match="^Invalid file type"):
        Images_Library.validate_upload("application/pdf", 1, ALLOWED, 1024)
    with pytest.raises(InputError, match="^File too large"):
        Images_Library.validate_upload("image/png", 1025, ALLOWED, 1024)
    with pytest.raises(InputError, match="^No file uploaded."):
        Images_Library.validate_upload("image/png", 0, ALLOWED, 1024)


def test_save_image_writes_file_and_record(db, user_a, tmp_path):
    upload_dir = tmp_path / "uploads"
    record = _save(db, user_a, upload_dir)
    assert record["filename"] == "My Diagram.png"
    assert record["size"] == len(PNG_BYTES)
    assert record["uploaded_by"] == user_a["id"]
    assert record["url"] == f"/uploads/{record['filepath']}"
    assert (upload_dir / record["filepath"]).read_bytes() == PNG_BYTES


def test_rejected_upload_leaves_no_file(db, user_a, tmp_path):
    upload_dir = tmp_path / "uploads"
    with pytest.raises(UnsupportedImageTypeError):
        _save(db, user_a, upload_dir, content_type="image/svg+xml")
    assert not upload_dir.exists() or list(upload_dir.iterdir()) == []


def test_failed_record_removes_written_file(db, user_a, tmp_path, monkeypatch):
    upload_dir = tmp_path / "uploads"

    def boom(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(db, "insert_record", boom)
    with pytest.raises(RuntimeError):
        _save(db, user_a, upload_dir)
    assert list(upload_dir.iterdir()) == []


def test_delete_image_keeps_file(db, user_a, tmp_path):
    upload_dir = tmp_path / "uploads"
    record = _save(db, user_a, upload_dir)
    Images_Library.delete_image(db, user_a["id"], record["id"])

    row = db.execute_query("SELECT deleted_at FROM images WHERE id = ?", (record["id"],)).fetchone()
    assert row["deleted_at"] is not None
    assert (upload_dir / record["filepath"]).exists()
    with pytest.raises(NotFoundError):
        Images_Library.delete_image(db, user_a["id"], record["id"])


def test_other_user_cannot_delete_image(db, user_a, user_b, tmp_path):
    record = _save(db, user_a, tmp_path)
    with pytest.raises(NotFoundError):
        Images_Library.delete_image(db, user_b["id"], record["id"])

#
# End of test_images_library.py
########################################################################################################################
