import os
from typing import Any

import pytest

# Unit tests never need a store or router; keep the API from wiring them at startup.
os.environ.setdefault("TRANSACTIONS_DISABLE_STARTUP", "1")


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, *, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._text is not None:
            raise ValueError("not JSON")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; records every call and replays queued responses."""

    def __init__(self, responses: list[Any] | None = None):
        self.responses = list(responses or [])
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if not self.responses:
            return FakeResponse(200, {})
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        return self._next(method, url, **kwargs)

    def close(self) -> None:
        self.closed = True


class FakeCollection:
    """Minimal pymongo collection: `find` returns the stored documents (or raises)."""

    def __init__(self, docs: list[Any] | None = None, *, error: Exception | None = None):
        self.docs = list(docs or [])
        self.error = error
        self.filters: list[Any] = []

    def find(self, filter: Any = None, projection: Any = None):
        self.filters.append(filter)
        if self.error is not None:
            raise self.error
        return iter(self.docs)


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_collection():
    return FakeCollection


def account_doc(account_id: str = "acc-1", **overrides: Any) -> dict[str, Any]:
    doc = {
        "_id": account_id,
        "algorithm": "algo-1",
        "encryptedPrivateKey": "k1:s1",
        "pair": ["BTC", "USD"],
        "provider": "void",
        "interval": 5,
        "status": {"name": "running", "time": 0},
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def make_account_doc():
    return account_doc
