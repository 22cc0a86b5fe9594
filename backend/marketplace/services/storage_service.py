# Overview: Blob storage for uploaded images (product photos, payment screenshots).

"""
Files are written under UPLOAD_FOLDER/<bucket>/<owner_id>/<random>.<ext>
and served back by the /uploads route, so every stored file has a stable
public URL (BASE_URL + /uploads/...).
"""

from __future__ import annotations

import os
import secrets

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename


BUCKET_PRODUCT_IMAGES = "product-images"
BUCKET_PAYMENT_SCREENSHOTS = "payment-screenshots"
VALID_BUCKETS = {BUCKET_PRODUCT_IMAGES, BUCKET_PAYMENT_SCREENSHOTS}

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}


class StorageError(Exception):
    """Raised when an upload is rejected or cannot be written."""


def allowed_file(filename: str) -> bool:
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def upload_root() -> str:
    folder = current_app.config["UPLOAD_FOLDER"]
    if not os.path.isabs(folder):
        folder = os.path.join(current_app.instance_path, folder)
    return folder


def _file_size(upload: FileStorage) -> int:
    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def public_url(bucket: str, relative_path: str) -> str:
    base_url = current_app.config.get("BASE_URL", "").rstrip("/")
    return f"{base_url}/uploads/{bucket}/{relative_path}"


def save_upload(bucket: str, upload: FileStorage | None, *, owner_id: int) -> str:
    """
    Store an uploaded image and return its public URL.

    Raises StorageError for a missing file, an unsupported extension,
    an oversized file, or a filesystem failure.
    """
    if bucket not in VALID_BUCKETS:
        raise StorageError(f"Unknown bucket: {bucket}")

    if upload is None or not upload.filename:
        raise StorageError("An image file is required")

    filename = secure_filename(upload.filename)
    if not filename or not allowed_file(filename):
        raise StorageError(f"Invalid image format. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    max_bytes = current_app.config.get("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)
    size = _file_size(upload)
    if size == 0:
        raise StorageError("Uploaded file is empty")
    if size > max_bytes:
        raise StorageError(f"Image file too large. Maximum size is {max_bytes // (1024 * 1024)}MB")

    ext = filename.rsplit('.', 1)[1].lower()
    stored_name = f"{secrets.token_hex(12)}.{ext}"
    relative_path = f"{owner_id}/{stored_name}"
    target_dir = os.path.join(upload_root(), bucket, str(owner_id))

    try:
        os.makedirs(target_dir, exist_ok=True)
        upload.save(os.path.join(target_dir, stored_name))
    except OSError as exc:
        current_app.logger.exception("Failed to store upload in bucket %s", bucket)
        raise StorageError("Could not store uploaded file") from exc

    current_app.logger.info("Stored %s upload for owner %s (%d bytes)", bucket, owner_id, size)
    return public_url(bucket, relative_path)


def save_uploads(bucket: str, uploads: list[FileStorage], *, owner_id: int) -> list[str]:
    return [save_upload(bucket, upload, owner_id=owner_id) for upload in uploads if upload and upload.filename]
