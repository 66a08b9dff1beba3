import importlib
import io
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from filevault.catalog import SQLCatalog  # noqa: E402
from filevault.db import build_engine, init_db  # noqa: E402
from filevault.services.ingest import IncomingFile, UploadIngestor  # noqa: E402
from filevault.services.library import Library  # noqa: E402
from filevault.services.sharing import ShareLinkService  # noqa: E402
from filevault.services.trash import TrashManager  # noqa: E402
from filevault.storage import StorageResolver  # noqa: E402

FAST_HASH = "pbkdf2:sha256:1000"

# Only modules that read configuration at import time; models and
# exceptions keep their class identity across tests.
MODULE_ORDER = [
    "filevault.config",
    "filevault.core.metrics",
    "filevault.core.rate_limit",
    "filevault.db",
    "filevault.cleaner",
    "filevault.api.routes",
    "filevault.main",
]


def incoming(name, data, content_type=None):
    return IncomingFile(original_name=name, stream=io.BytesIO(data), size=len(data), content_type=content_type)


@pytest.fixture
def engine(tmp_path):
    db_engine = build_engine(f"sqlite:///{tmp_path / 'catalog.db'}", {"check_same_thread": False})
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def catalog(engine):
    return SQLCatalog(engine)


@pytest.fixture
def resolver(tmp_path):
    return StorageResolver(tmp_path / "storage")


@pytest.fixture
def owner(catalog):
    return catalog.add_account("u1@example.com", "not-a-real-hash").id


@pytest.fixture
def other_owner(catalog):
    return catalog.add_account("u2@example.com", "not-a-real-hash").id


@pytest.fixture
def ingestor(catalog, resolver):
    return UploadIngestor(catalog, resolver, max_file_size=1024 * 1024, password_method=FAST_HASH)


@pytest.fixture
def share_links(catalog, resolver):
    return ShareLinkService(catalog, resolver)


@pytest.fixture
def trash_manager(catalog, resolver):
    return TrashManager(catalog, resolver)


@pytest.fixture
def library(catalog, resolver):
    return Library(catalog, resolver)


def prepare_client(tmp_path, monkeypatch, *, rate_limit="100", max_size=str(1024 * 1024), share_trashed="false"):
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("DB_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("ENABLE_CLEANER", "false")
    monkeypatch.setenv("SESSION_SECRET", "test-session-secret")
    monkeypatch.setenv("PASSWORD_HASH_METHOD", FAST_HASH)
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", rate_limit)
    monkeypatch.setenv("MAX_FILE_SIZE_BYTES", max_size)
    monkeypatch.setenv("SHARE_TRASHED_FILES", share_trashed)
    monkeypatch.setenv("REDIS_URL", "")

    # Reload modules so configuration changes take effect cleanly.
    for module_name in MODULE_ORDER:
        module = importlib.import_module(module_name)
        importlib.reload(module)

    main = sys.modules["filevault.main"]
    test_client = TestClient(main.app)
    test_client.storage_dir = tmp_path / "uploads"  # type: ignore[attr-defined]
    return test_client


@pytest.fixture
def client(tmp_path, monkeypatch):
    with prepare_client(tmp_path, monkeypatch) as c:
        yield c


def login_as(client, email, password="secret-pass"):
    client.post("/register", data={"email": email, "password": password})
    response = client.post("/login", data={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["id"]
