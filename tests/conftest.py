from __future__ import annotations

from typing import Any, Callable, Iterator

import httpx
import pytest

from fake_store import FakeStore
from hellosearch.client import DocumentStoreClient
from hellosearch.config import StoreConfig

HOST = "http://es.test:9200"


def make_mock_client(responder: Callable[[httpx.Request], httpx.Response], base_url: str) -> httpx.Client:
    transport = httpx.MockTransport(responder)
    return httpx.Client(
        transport=transport,
        base_url=base_url,
        headers={"Accept": "application/json", "Content-Type": "application/json"},
    )


def patch_client_with_responder(conn: DocumentStoreClient, responder: Any) -> None:
    # Patch the private _client factory to return an httpx.Client with MockTransport
    def _client(base_url: str) -> httpx.Client:  # type: ignore[override]
        return make_mock_client(responder, base_url)

    setattr(conn, "_client", _client)


@pytest.fixture
def patch_responder() -> Callable[[DocumentStoreClient, Any], None]:
    return patch_client_with_responder


@pytest.fixture(params=["1.7.5", "7.17.0"], ids=["legacy", "modern"])
def store(request: pytest.FixtureRequest) -> FakeStore:
    """Emulated store, once per wire dialect."""
    return FakeStore(version=request.param)


@pytest.fixture
def client(store: FakeStore) -> Iterator[DocumentStoreClient]:
    conn = DocumentStoreClient(StoreConfig(hosts=HOST))
    patch_client_with_responder(conn, store)
    conn.open()
    try:
        yield conn
    finally:
        conn.close()
