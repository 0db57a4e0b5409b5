import io
import itertools
import os
import tempfile
from datetime import datetime, timedelta

# Settings are read at import time, so point them at throwaway resources first
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="fileshare-test-")
os.environ["BASE_URL"] = "https://files.example.com"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, StaticPool
from sqlalchemy.orm import sessionmaker

from fileshare import crud, schemas
from fileshare.api import deps
from fileshare.db.base import Base
from fileshare.main import app
from fileshare.models.user import ROLE_USER
from fileshare.services.audit import AuditLog
from fileshare.services.downloads import DownloadAccountant, ShareDownloadService
from fileshare.services.file_access import FileAccessGate
from fileshare.services.share_access import AccessValidator
from fileshare.services.shares import ShareLifecycleManager
from fileshare.services.storage import LocalBlobStore

DATABASE_URL = "sqlite://"

engine = create_engine(DATABASE_URL,
                       connect_args={
                           "check_same_thread": False,
                       },
                       poolclass=StaticPool)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def setup_and_teardown():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore([str(tmp_path / "blobs")])


@pytest.fixture
def client(blob_store):
    def override_get_db():
        database = TestingSessionLocal()
        try:
            yield database
        finally:
            database.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_blob_store] = lambda: blob_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0))


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role=ROLE_USER, password="password"):
        n = next(counter)
        user_in = schemas.UserCreate(username=f"user{n}", email=f"user{n}@example.com", password=password)
        return crud.user.create(db, obj_in=user_in, role=role)

    return _make


@pytest.fixture
def make_file(db, blob_store):
    def _make(owner, content=b"hello world", name="hello.txt", mime_type="text/plain"):
        blob = blob_store.store(io.BytesIO(content))
        file_in = schemas.FileRecordCreate(
            stored_key=blob.key,
            original_name=name,
            size_bytes=blob.size_bytes,
            mime_type=mime_type,
            content_hash=blob.content_hash,
        )
        return crud.file.create_with_owner(db, obj_in=file_in, owner_id=owner.id)

    return _make


@pytest.fixture
def make_manager(db, clock):
    def _make(tokens=None):
        return ShareLifecycleManager(
            db,
            gate=FileAccessGate(db, clock=clock),
            audit=AuditLog(db),
            tokens=tokens,
            clock=clock,
        )

    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def validator(db, clock):
    return AccessValidator(db, clock=clock)


@pytest.fixture
def accountant(db, clock):
    return DownloadAccountant(db, clock=clock)


@pytest.fixture
def download_service(validator, accountant, blob_store):
    return ShareDownloadService(validator, accountant, blob_store)
