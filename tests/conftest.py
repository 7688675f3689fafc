import itertools

import pytest
from flask_jwt_extended import create_access_token

from config import TestConfig
from ecgscan import create_app
from ecgscan.extensions import db
from ecgscan.models.user import User
from ecgscan.services.identity import identity_for_user
from ecgscan.services.record_store import RecordStore, ImageUpload
from ecgscan.services.storage_service import LocalBlobStorage

from tests.helpers import PNG_BYTES, VALID_FIELDS


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.extensions["blob_storage"] = LocalBlobStorage(str(tmp_path / "uploads"))
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def profiles(app):
    return app.extensions["profile_directory"]


@pytest.fixture
def storage(app):
    return app.extensions["blob_storage"]


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role="nurse", username=None):
        n = next(counter)
        user = User(
            email=f"{role}{n}@example.com",
            username=username or f"{role}{n}",
            role=role,
            auth_provider="password",
        )
        user.set_password("password123")
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def nurse(make_user):
    return make_user("nurse", "Nurse Joy")


@pytest.fixture
def physician(make_user):
    return make_user("physician", "Dr. Carvalho")


@pytest.fixture
def token_for(app):
    def _token(user):
        return create_access_token(identity=str(user.id))

    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(user):
        return {"Authorization": f"Bearer {token_for(user)}"}

    return _headers


@pytest.fixture
def create_record(profiles, storage):
    def _create(uploader, **overrides):
        store = RecordStore(identity_for_user(uploader), profiles, storage)
        fields = {**VALID_FIELDS, **overrides}
        return store.create_record(fields, ImageUpload(PNG_BYTES, "image/png", "ecg.png"))

    return _create
