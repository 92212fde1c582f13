import copy
import json
from datetime import datetime
from typing import Any, List, Optional

import httpx
import pytest

from feedy.config import BACKEND_LOCAL, Settings
from feedy.persistence import DocumentStoreDatabase, LocalDatabase, TreeStoreClient, TreeStoreDatabase
from feedy.schemas import FeedbackEntry


class FakeTreeStore:
    """In-memory JSON tree answering the REST calls TreeStoreClient makes."""

    def __init__(self):
        self.root: dict = {}
        self.requests: List[httpx.Request] = []
        self.unavailable = False
        # Apply this many keys of the next PATCH, then answer 500
        self.fail_patch_after: Optional[int] = None
        self._pushes = 0

    def get(self, path: str) -> Any:
        node: Any = self.root
        for part in [p for p in path.split("/") if p]:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def set(self, path: str, value: Any) -> None:
        self._set([p for p in path.split("/") if p], value)

    def _set(self, parts: List[str], value: Any) -> None:
        if not parts:
            self.root = value if isinstance(value, dict) else {}
            return
        parent = self.root
        for part in parts[:-1]:
            parent = parent.setdefault(part, {})
        if value is None:
            parent.pop(parts[-1], None)
        else:
            parent[parts[-1]] = value

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unavailable:
            return httpx.Response(503, json={"error": "service unavailable"})

        path = request.url.path
        assert path.endswith(".json")
        parts = [p for p in path[: -len(".json")].split("/") if p]
        params = request.url.params

        if request.method == "GET":
            value = copy.deepcopy(self.get("/".join(parts)))
            if params.get("shallow") == "true" and isinstance(value, dict):
                value = {key: True for key in value}
            if "orderBy" in params and isinstance(value, dict):
                order_key = json.loads(params["orderBy"])
                items = sorted(
                    value.items(),
                    key=lambda item: str(item[1].get(order_key, "")) if isinstance(item[1], dict) else "",
                )
                if "limitToLast" in params:
                    items = items[-int(params["limitToLast"]):]
                value = dict(items)
            return httpx.Response(200, json=value)

        body = json.loads(request.content) if request.content else None
        if request.method == "PUT":
            self._set(parts, body)
            return httpx.Response(200, json=body)
        if request.method == "POST":
            self._pushes += 1
            key = f"-push{self._pushes:05d}"
            self._set(parts + [key], body)
            return httpx.Response(200, json={"name": key})
        if request.method == "PATCH":
            for applied, (relative, value) in enumerate(body.items()):
                if self.fail_patch_after is not None and applied >= self.fail_patch_after:
                    self.fail_patch_after = None
                    return httpx.Response(500, json={"error": "write interrupted"})
                self._set(parts + relative.split("/"), value)
            return httpx.Response(200, json=body)
        if request.method == "DELETE":
            self._set(parts, None)
            return httpx.Response(200, json=None)
        return httpx.Response(405)


@pytest.fixture
def tree_store():
    return FakeTreeStore()


@pytest.fixture
def tree_db(tree_store):
    client = TreeStoreClient(
        "https://feedy-test.example.com",
        auth_token="test-token",
        transport=httpx.MockTransport(tree_store.handler),
    )
    return TreeStoreDatabase(client, default_limit=100)


@pytest.fixture
def document_db(tmp_path):
    return DocumentStoreDatabase(f"sqlite+aiosqlite:///{tmp_path / 'feedy.db'}")


@pytest.fixture
def local_db(tmp_path):
    return LocalDatabase(tmp_path / "local_store.json", seed=7, feedback_count=20)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        backend=BACKEND_LOCAL,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'feedy.db'}",
        local_store_path=tmp_path / "local_store.json",
        mock_feedback_count=0,
        insights_api_key=None,
        public_base_url="https://feedy.example.com",
    )


def make_entry(rating: int, created_at: str, owner_id: Optional[str] = None, **extra) -> FeedbackEntry:
    return FeedbackEntry(
        rating=rating,
        comments=extra.pop("comments", f"rated {rating}"),
        created_at=datetime.fromisoformat(created_at),
        owner_id=owner_id,
        **extra,
    )
