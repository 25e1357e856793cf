import sys
from datetime import datetime
from pathlib import Path

import pytest

# server/ is a flat directory of modules, not a package
ROOT = Path(__file__).resolve().parents[1]
SERVER = ROOT / "server"
if str(SERVER) not in sys.path:
    sys.path.insert(0, str(SERVER))

from config import BUCKETS  # noqa: E402
from db import DB  # noqa: E402
from dbapi import ArticleAPI, UserAPI  # noqa: E402
from models import FileMetadata  # noqa: E402


def fileMeta(path: str, day: str = "2021-03-04", rev: str = "1") -> FileMetadata:
    """File metadata as the sync service reports it, modified at midday on `day`."""
    t = datetime.strptime(day, "%Y-%m-%d").replace(hour=12)
    return FileMetadata(
        path=path,
        modified=t.strftime("%a, %d %b %Y %H:%M:%S +0000"),
        rev=rev,
        mimeType="text/markdown",
    )


@pytest.fixture
def db(tmp_path):
    store = DB(tmp_path / "blog.db").connect(BUCKETS)
    yield store
    store.close()


@pytest.fixture
def memdb():
    store = DB(":memory:").connect(BUCKETS)
    yield store
    store.close()


@pytest.fixture
def articles(db):
    return ArticleAPI(db)


@pytest.fixture
def users(db):
    return UserAPI(db)


@pytest.fixture
def client(memdb):
    from app import create_app

    app = create_app(memdb, {"db_file": ":memory:", "log_level": "INFO", "secret_key": "test"})
    app.config["TESTING"] = True
    return app.test_client()
