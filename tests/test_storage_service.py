import os

import pytest
from firebase_admin import storage as fb_storage

from ecgscan.errors import StorageError, ValidationError
from ecgscan.services.storage_service import (
    LocalBlobStorage, FirebaseBlobStorage, build_storage, allowed_file,
)


def test_local_storage_writes_file(tmp_path):
    storage = LocalBlobStorage(str(tmp_path))

    url = storage.store(b"img", "image/jpeg", "strip 1.JPG")

    name = url.rsplit("/", 1)[1]
    assert url.startswith("static/uploads/ecg_")
    assert name.endswith("strip_1.JPG")
    assert (tmp_path / name).read_bytes() == b"img"


def test_local_storage_names_by_content_type(tmp_path):
    url = LocalBlobStorage(str(tmp_path)).store(b"img", "image/png")
    assert url.endswith("_ecg.png")


def test_unknown_content_type(tmp_path):
    with pytest.raises(ValidationError):
        LocalBlobStorage(str(tmp_path)).store(b"x", "application/pdf")


def test_local_storage_failure_is_storage_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    with pytest.raises(StorageError):
        LocalBlobStorage(os.path.join(str(blocker), "uploads")).store(b"x", "image/png")


def test_firebase_failure_is_storage_error(monkeypatch):
    def unavailable(name=None):
        raise RuntimeError("no bucket")

    monkeypatch.setattr(fb_storage, "bucket", unavailable)
    with pytest.raises(StorageError):
        FirebaseBlobStorage("ecgscan.appspot.com").store(b"x", "image/png")


def test_build_storage():
    assert isinstance(build_storage({"STORAGE_BACKEND": "local", "UPLOAD_FOLDER": "/tmp/x"}), LocalBlobStorage)
    assert isinstance(build_storage({"STORAGE_BACKEND": "firebase"}), FirebaseBlobStorage)
    with pytest.raises(ValueError):
        build_storage({"STORAGE_BACKEND": "s3"})


def test_allowed_file():
    assert allowed_file("a.jpeg")
    assert not allowed_file("a.gif")
    assert not allowed_file("noext")
