"""测试夹具：内存中的 MongoDB 客户端替身"""

from typing import Any, Dict, List, Optional

import pytest


class FakeCursor:
    """可迭代、可关闭的游标"""

    def __init__(self, documents: List[Dict[str, Any]], fail_after: Optional[int] = None, error: Exception | None = None):
        self.documents = documents
        self.fail_after = fail_after
        self.error = error
        self.closed = False
        self.consumed = 0

    def __iter__(self):
        for i, doc in enumerate(self.documents):
            if self.fail_after is not None and i >= self.fail_after:
                raise self.error
            self.consumed += 1
            yield doc

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeCollection:
    def __init__(self, client: "FakeClient", db_name: str, name: str):
        self.client = client
        self.db_name = db_name
        self.name = name

    def aggregate(self, pipeline, **options):
        self.client.calls.append({
            "db": self.db_name,
            "collection": self.name,
            "pipeline": pipeline,
            "options": options,
        })
        error = self.client.aggregate_errors.get(self.name)
        if error is not None:
            raise error
        cursor = self.client.cursor_for(self.name)
        self.client.cursors.append(cursor)
        return cursor


class FakeDatabase:
    def __init__(self, client: "FakeClient", name: str):
        self.client = client
        self.name = name

    def __getitem__(self, name: str) -> FakeCollection:
        return FakeCollection(self.client, self.name, name)

    def list_collection_names(self) -> List[str]:
        return list(self.client.collection_names)


class FakeAdmin:
    def __init__(self, client: "FakeClient"):
        self.client = client

    def command(self, name: str):
        self.client.commands.append(name)
        if self.client.ping_error is not None:
            raise self.client.ping_error
        return {"ok": 1.0}


class FakeClient:
    """MongoClient 替身，记录所有调用"""

    def __init__(self, uri: str, state: "FakeMongo", options: Dict[str, Any]):
        self.uri = uri
        self.options = options
        self.state = state
        self.closed = False
        self.admin = FakeAdmin(self)

    def __getattr__(self, item):
        return getattr(self.state, item)

    def __getitem__(self, name: str) -> FakeDatabase:
        self.state.databases.append(name)
        return FakeDatabase(self, name)

    def close(self):
        self.closed = True


class FakeMongo:
    """客户端工厂与共享状态"""

    def __init__(self):
        self.results: Dict[str, List[Dict[str, Any]]] = {}
        self.cursor_errors: Dict[str, tuple] = {}
        self.aggregate_errors: Dict[str, Exception] = {}
        self.collection_names: List[str] = []
        self.ping_error: Exception | None = None
        self.calls: List[Dict[str, Any]] = []
        self.commands: List[str] = []
        self.databases: List[str] = []
        self.cursors: List[FakeCursor] = []
        self.clients: List[FakeClient] = []

    def __call__(self, uri: str, **options) -> FakeClient:
        client = FakeClient(uri, self, options)
        self.clients.append(client)
        return client

    def cursor_for(self, collection: str) -> FakeCursor:
        fail_after, error = self.cursor_errors.get(collection, (None, None))
        return FakeCursor(list(self.results.get(collection, [])), fail_after=fail_after, error=error)


@pytest.fixture
def fake_mongo() -> FakeMongo:
    return FakeMongo()
