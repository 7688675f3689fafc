import logging
import os
import uuid

from werkzeug.utils import secure_filename

from ecgscan.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

# content type -> file extension
IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
}
ALLOWED_IMAGE_EXT = {"png", "jpg", "jpeg"}


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_IMAGE_EXT


def _blob_name(content_type, filename=None):
    if filename and allowed_file(filename):
        safe = secure_filename(filename)
    else:
        ext = IMAGE_TYPES.get(content_type)
        if ext is None:
            raise ValidationError(f"Unsupported image type: {content_type}")
        safe = f"ecg.{ext}"
    return f"ecg_{uuid.uuid4().hex}_{safe}"


class LocalBlobStorage:
    """Writes into UPLOAD_FOLDER; urls are relative to the static root."""

    def __init__(self, upload_folder, url_prefix="static/uploads"):
        self.upload_folder = upload_folder
        self.url_prefix = url_prefix.rstrip("/")

    def store(self, data: bytes, content_type: str, filename: str | None = None) -> str:
        name = _blob_name(content_type, filename)
        try:
            os.makedirs(self.upload_folder, exist_ok=True)
            with open(os.path.join(self.upload_folder, name), "wb") as fh:
                fh.write(data)
        except OSError as e:
            logger.error("local upload of %s failed: %s", name, e)
            raise StorageError("Image upload failed") from e
        return f"{self.url_prefix}/{name}"


class FirebaseBlobStorage:
    """Firebase Storage bucket through firebase-admin; returns the public download url."""

    def __init__(self, bucket_name=None, folder="images"):
        self.bucket_name = bucket_name
        self.folder = folder

    def store(self, data: bytes, content_type: str, filename: str | None = None) -> str:
        from firebase_admin import storage as fb_storage

        name = f"{self.folder}/{_blob_name(content_type, filename)}"
        try:
            bucket = fb_storage.bucket(self.bucket_name)
            blob = bucket.blob(name)
            blob.upload_from_string(data, content_type=content_type)
            blob.make_public()
        except Exception as e:
            logger.error("firebase upload of %s failed: %s", name, e)
            raise StorageError("Image upload failed") from e
        return blob.public_url


def build_storage(config):
    backend = config.get("STORAGE_BACKEND", "local")
    if backend == "firebase":
        return FirebaseBlobStorage(config.get("FIREBASE_STORAGE_BUCKET"))
    if backend == "local":
        return LocalBlobStorage(config["UPLOAD_FOLDER"])
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
