import os
import sys
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
DB_PATH = (ROOT / "test.db").resolve()
SQLITE_URL = f"sqlite:///{DB_PATH.as_posix()}"
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = SQLITE_URL
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["DISABLE_CACHE"] = "1"
os.environ.pop("CRON_SECRET", None)
os.environ.pop("ENABLE_LOCAL_SCHEDULER", None)

from maintenix.db import session as db_session  # noqa: E402
from maintenix.db.base import Base  # noqa: E402
import maintenix.models  # noqa: E402
from maintenix.main import app  # noqa: E402
from maintenix.models.company import Company  # noqa: E402
from maintenix.services.errors import TransportError  # noqa: E402
from maintenix.services.import_runner import ImportJobRunner  # noqa: E402
from maintenix.services.import_scheduler import ImportScheduler  # noqa: E402


db_url = os.environ["DATABASE_URL"]
connect_args = {}
if db_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    db_url,
    connect_args=connect_args,
)
if db_url.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

db_session.engine = engine
db_session.SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def session_factory():
    return db_session.SessionLocal()


class MemoryFiles:
    """Blob storage y fetcher en memoria: lo que se sube se puede descargar."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.fetched: list[str] = []

    def put(self, file_name: str, content: bytes) -> str:
        url = f"memory://{uuid4().hex}/{file_name}"
        self.blobs[url] = content
        return url

    def fetch(self, url: str) -> bytes:
        self.fetched.append(url)
        if url not in self.blobs:
            raise TransportError("Failed to fetch file: HTTP 404")
        return self.blobs[url]


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def files():
    return MemoryFiles()


@pytest.fixture()
def runner(files):
    return ImportJobRunner(session_factory, files, checkpoint_every=10)


@pytest.fixture()
def scheduler(runner):
    return ImportScheduler(session_factory, runner, batch_size=5, pool_size=10)


@pytest.fixture()
def make_company(db):
    def _make(name: str | None = None) -> Company:
        company = Company(name=name or f"Empresa-{uuid4().hex[:8]}")
        db.add(company)
        db.commit()
        db.refresh(company)
        return company
    return _make


@pytest.fixture()
def company(make_company):
    return make_company()


@pytest.fixture()
def client(db, files, scheduler):
    original_storage = app.state.blob_storage
    original_scheduler = app.state.import_scheduler
    app.state.blob_storage = files
    app.state.import_scheduler = scheduler
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.state.blob_storage = original_storage
        app.state.import_scheduler = original_scheduler
