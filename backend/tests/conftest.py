import json

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from zhe.database import SQLAlchemyExecutor, build_engine, get_executor, init_models, set_executor
from zhe.core.scoped import ScopedRepository
from zhe.services.dirty import DirtyTracker
from zhe.services.kv_client import KVClient
from zhe.services.sync_history import SyncHistory


@pytest_asyncio.fixture
async def executor(tmp_path):
    """Fresh SQLite database file per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    await init_models(engine)
    yield SQLAlchemyExecutor(engine)
    await engine.dispose()


@pytest.fixture
def tracker():
    return DirtyTracker(dirty=False)


@pytest.fixture
def history():
    return SyncHistory(max_entries=50)


@pytest.fixture
def make_repo(executor, tracker):
    def factory(owner_id: str) -> ScopedRepository:
        return ScopedRepository(owner_id, executor=executor, tracker=tracker)
    return factory


@pytest.fixture
def alice(make_repo):
    return make_repo("user-alice")


@pytest.fixture
def bob(make_repo):
    return make_repo("user-bob")


@pytest.fixture
def default_executor(executor):
    """Make the test database the process-wide one for code that does not take an executor."""
    previous = get_executor()
    set_executor(executor)
    yield executor
    set_executor(previous)


class KVRecorder:
    """MockTransport handler that records requests and answers from a queue of statuses."""

    def __init__(self, statuses=None, values=None):
        self.requests = []
        self.statuses = list(statuses or [])
        self.values = values or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.url.path.rsplit("/", 1)[-1]
        if request.method == "GET":
            if key not in self.values:
                return httpx.Response(404, json={"success": False})
            return httpx.Response(200, json=self.values[key])
        status = self.statuses.pop(0) if self.statuses else 200
        if status < 400:
            self._apply(request, key)
        return httpx.Response(status, json={"success": status < 400})

    def _apply(self, request: httpx.Request, key: str) -> None:
        if request.method == "DELETE":
            self.values.pop(key, None)
        elif key == "bulk":
            for item in json.loads(request.content):
                self.values[item["key"]] = json.loads(item["value"])
        else:
            self.values[key] = json.loads(request.content)


@pytest.fixture
def kv_recorder():
    return KVRecorder()


@pytest.fixture
def kv_client(kv_recorder, tracker):
    return KVClient(
        account_id="acc",
        namespace_id="ns",
        api_token="token",
        transport=httpx.MockTransport(kv_recorder),
        tracker=tracker,
    )
