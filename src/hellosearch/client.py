"""Synchronous client for an Elasticsearch-compatible document store.

Uses the store's REST API via httpx. The client owns one connection pool for
its connected lifetime and keeps no document state of its own. Every call is
a single request/response exchange (``flush`` is two); nothing is retried.

Wire details that changed across server releases (typed document paths,
script envelopes, the shape of ``hits.total``) are chosen from the version
reported by the liveness handshake on ``open()``.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_json

from hellosearch.config import StoreConfig
from hellosearch.exceptions import (
    ConfigError,
    HelloSearchError,
    NotFoundError,
    QueryError,
    ReadError,
    SchemaError,
    StoreConnectionError,
    WriteError,
)
from hellosearch.models import (
    Acknowledged,
    GetResult,
    IndexResult,
    PingResult,
    SchemaDefinition,
    SearchHit,
    SearchResult,
    UpdateResult,
    major_version,
)
from hellosearch.query import SortItem, sort_spec

logger = logging.getLogger("hellosearch.client")

Payload = Union[BaseModel, Mapping[str, Any], str, bytes]

# Error types as reported by 1.x (exception class names) and later releases.
_INDEX_MISSING = {"index_not_found_exception", "IndexMissingException", "IndexNotFoundException"}
_INDEX_EXISTS = {
    "resource_already_exists_exception",
    "index_already_exists_exception",
    "IndexAlreadyExistsException",
}
_DOCUMENT_MISSING = {"document_missing_exception", "DocumentMissingException"}


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def _error_details(resp: httpx.Response) -> Tuple[Optional[str], str]:
    """Extract (error type, reason) from a store error response."""
    fallback = resp.text or resp.reason_phrase
    try:
        data = resp.json()
    except ValueError:
        return None, fallback
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict):
        etype = err.get("type")
        reason = err.get("reason") or etype or fallback
        return (str(etype) if etype else None), str(reason)
    if isinstance(err, str):
        # 1.x: "IndexMissingException[[twitter] missing]"
        etype = err.split("[", 1)[0].strip()
        return (etype or None), err
    return None, fallback


def _encode(payload: Payload) -> bytes:
    if isinstance(payload, BaseModel):
        return payload.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, Mapping):
        return to_json(dict(payload))
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")


def _as_mapping(payload: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    return dict(payload)


class DocumentStoreClient:
    """Typed request/response boundary over the store's REST API.

    Construction performs no I/O; call ``open()`` (or use ``connect()``) to
    select a live host. A transport failure in any call drops the
    connection, and later calls raise ``StoreConnectionError`` until a new
    client is opened.
    """

    def __init__(self, config: Optional[StoreConfig] = None) -> None:
        self.config = config or StoreConfig()
        self.state = ConnectionState.DISCONNECTED
        self.base_url: Optional[str] = None
        self.version: Optional[str] = None
        self._http: Optional[httpx.Client] = None

    # ----- Connection lifecycle -----

    def _client(self, base_url: str) -> httpx.Client:
        cfg = self.config
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if cfg.api_key:
            headers["Authorization"] = f"ApiKey {cfg.api_key}"
        auth = (cfg.username, cfg.password or "") if cfg.username else None
        return httpx.Client(
            base_url=base_url,
            auth=auth,
            timeout=httpx.Timeout(cfg.timeout, connect=cfg.connect_timeout),
            verify=cfg.verify_ssl,
            headers=headers,
        )

    def open(self) -> DocumentStoreClient:
        """Connect to the first configured host that answers the handshake."""
        if self.state is ConnectionState.CONNECTED:
            return self
        hosts = self.config.host_list()
        if not hosts:
            raise StoreConnectionError("No store hosts configured", operation="connect")
        failures: List[str] = []
        for host in hosts:
            try:
                http = self._client(host)
            except httpx.InvalidURL as exc:
                raise ConfigError(f"Invalid store host: {host!r}", operation="connect") from exc
            try:
                info = self._handshake(http)
            except StoreConnectionError as exc:
                http.close()
                failures.append(f"{host}: {exc.reason or exc.message}")
                logger.debug("Handshake with %s failed: %s", host, exc)
                continue
            self._http = http
            self.base_url = host
            self.version = info.version
            self.state = ConnectionState.CONNECTED
            logger.info("Connected to %s (version %s)", host, info.version)
            return self
        raise StoreConnectionError(
            "No store host answered the handshake",
            operation="connect",
            reason="; ".join(failures),
        )

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            logger.info("Closed connection to %s", self.base_url)
        self._http = None
        self.state = ConnectionState.DISCONNECTED

    def __enter__(self) -> DocumentStoreClient:
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _handshake(self, http: httpx.Client) -> PingResult:
        try:
            resp = http.get("/")
        except httpx.RequestError as exc:
            raise StoreConnectionError("Store is unreachable", operation="ping", reason=str(exc)) from exc
        return self._parse_ping(resp)

    @staticmethod
    def _parse_ping(resp: httpx.Response) -> PingResult:
        if resp.status_code != 200:
            etype, reason = _error_details(resp)
            raise StoreConnectionError(
                "Handshake rejected",
                operation="ping",
                status_code=resp.status_code,
                error_type=etype,
                reason=reason,
            )
        try:
            data = resp.json()
            number = str(data["version"]["number"])
            major_version(number)
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreConnectionError(
                "Unexpected handshake response", operation="ping", reason=str(exc)
            ) from exc
        return PingResult(
            version=number,
            response_code=resp.status_code,
            name=data.get("name"),
            cluster_name=data.get("cluster_name"),
            tagline=data.get("tagline"),
        )

    # ----- Request plumbing -----

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        collection: Optional[str] = None,
        doc_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
    ) -> httpx.Response:
        if self.state is not ConnectionState.CONNECTED or self._http is None:
            raise StoreConnectionError(
                "Client is not connected", operation=operation, collection=collection, doc_id=doc_id
            )
        logger.debug("%s %s (%s)", method, path, operation)
        try:
            return self._http.request(method, path, params=params, content=content)
        except httpx.RequestError as exc:
            logger.warning("Transport failure during %s; dropping connection to %s", operation, self.base_url)
            self.close()
            raise StoreConnectionError(
                f"Transport failure during {operation}",
                operation=operation,
                collection=collection,
                doc_id=doc_id,
                reason=str(exc),
            ) from exc

    @staticmethod
    def _error(
        resp: httpx.Response,
        error_cls: Type[HelloSearchError],
        *,
        operation: str,
        collection: Optional[str] = None,
        doc_id: Optional[str] = None,
    ) -> HelloSearchError:
        etype, reason = _error_details(resp)
        if resp.status_code == 404 and etype in _INDEX_MISSING:
            error_cls = NotFoundError
        return error_cls(
            f"{operation} failed: {reason}",
            operation=operation,
            collection=collection,
            doc_id=doc_id,
            status_code=resp.status_code,
            error_type=etype,
            reason=reason,
        )

    @staticmethod
    def _json(
        resp: httpx.Response,
        error_cls: Type[HelloSearchError],
        *,
        operation: str,
        collection: Optional[str] = None,
        doc_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise error_cls(
                "Malformed response body",
                operation=operation,
                collection=collection,
                doc_id=doc_id,
                status_code=resp.status_code,
                reason=str(exc),
            ) from exc
        if not isinstance(data, dict):
            raise error_cls(
                "Unexpected response shape",
                operation=operation,
                collection=collection,
                doc_id=doc_id,
                status_code=resp.status_code,
            )
        return data

    def _major(self) -> int:
        if self.version is None:
            raise StoreConnectionError("Client is not connected", operation="connect")
        return major_version(self.version)

    def _doc_path(self, collection: str, schema_name: str, doc_id: str) -> str:
        c, i = quote(collection, safe=""), quote(str(doc_id), safe="")
        if self._major() >= 7:
            return f"/{c}/_doc/{i}"
        return f"/{c}/{quote(schema_name, safe='')}/{i}"

    def _update_path(self, collection: str, schema_name: str, doc_id: str) -> str:
        c, i = quote(collection, safe=""), quote(str(doc_id), safe="")
        if self._major() >= 7:
            return f"/{c}/_update/{i}"
        return f"/{c}/{quote(schema_name, safe='')}/{i}/_update"

    def _script_body(
        self, script: str, params: Optional[Mapping[str, Any]], lang: Optional[str]
    ) -> Dict[str, Any]:
        major = self._major()
        if major < 5:
            body: Dict[str, Any] = {"script": script}
            if params:
                body["params"] = dict(params)
            if lang:
                body["lang"] = lang
            return body
        envelope: Dict[str, Any] = {("inline" if major == 5 else "source"): script}
        if params:
            envelope["params"] = dict(params)
        if lang:
            envelope["lang"] = lang
        return {"script": envelope}

    # ----- Server info -----

    def ping(self) -> PingResult:
        """Report the store's version and the handshake response code."""
        resp = self._request("GET", "/", operation="ping")
        return self._parse_ping(resp)

    def server_version(self, url: Optional[str] = None) -> str:
        """Version number of the connected store, or of the store at ``url``."""
        if url is None:
            return self.ping().version
        with self._client(url.rstrip("/")) as http:
            return self._handshake(http).version

    # ----- Collections -----

    def collection_exists(self, name: str) -> bool:
        resp = self._request("HEAD", f"/{quote(name, safe='')}", operation="collection_exists", collection=name)
        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        raise StoreConnectionError(
            "Unexpected status from existence check",
            operation="collection_exists",
            collection=name,
            status_code=resp.status_code,
        )

    def _acknowledged(self, resp: httpx.Response, name: str, operation: str) -> Acknowledged:
        data = self._json(resp, SchemaError, operation=operation, collection=name)
        ack = Acknowledged(
            acknowledged=bool(data.get("acknowledged", False)),
            collection=name,
            shards_acknowledged=data.get("shards_acknowledged"),
        )
        if not ack.acknowledged:
            logger.warning("%s on %s was not acknowledged by all nodes", operation, name)
        return ack

    def create_collection(
        self, name: str, schema: Union[SchemaDefinition, Mapping[str, Any], str, bytes]
    ) -> Acknowledged:
        """Create a collection; fails with SchemaError if it already exists."""
        if isinstance(schema, SchemaDefinition):
            content = to_json(schema.to_body(self._major()))
        else:
            try:
                content = _encode(schema)
            except (TypeError, PydanticSerializationError) as exc:
                raise SchemaError(
                    "Cannot serialize schema definition", operation="create_collection", collection=name, reason=str(exc)
                ) from exc
        resp = self._request(
            "PUT", f"/{quote(name, safe='')}", operation="create_collection", collection=name, content=content
        )
        if resp.is_success:
            return self._acknowledged(resp, name, "create_collection")
        etype, reason = _error_details(resp)
        if etype in _INDEX_EXISTS:
            raise SchemaError(
                "Collection already exists",
                operation="create_collection",
                collection=name,
                status_code=resp.status_code,
                error_type=etype,
                reason=reason,
            )
        raise self._error(resp, SchemaError, operation="create_collection", collection=name)

    def delete_collection(self, name: str) -> Acknowledged:
        """Drop a collection and every document in it."""
        resp = self._request("DELETE", f"/{quote(name, safe='')}", operation="delete_collection", collection=name)
        if resp.is_success:
            return self._acknowledged(resp, name, "delete_collection")
        if resp.status_code == 404:
            etype, reason = _error_details(resp)
            raise NotFoundError(
                "Collection does not exist",
                operation="delete_collection",
                collection=name,
                status_code=404,
                error_type=etype,
                reason=reason,
            )
        raise self._error(resp, SchemaError, operation="delete_collection", collection=name)

    def _shards_ok(self, resp: httpx.Response, collection: str, operation: str) -> bool:
        data = self._json(resp, WriteError, operation=operation, collection=collection)
        shards = data.get("_shards") or {}
        return int(shards.get("failed", 0) or 0) == 0

    def refresh(self, collection: str) -> Acknowledged:
        """Make all operations performed so far visible to search."""
        path = f"/{quote(collection, safe='')}/_refresh"
        resp = self._request("POST", path, operation="refresh", collection=collection)
        if not resp.is_success:
            raise self._error(resp, WriteError, operation="refresh", collection=collection)
        return Acknowledged(acknowledged=self._shards_ok(resp, collection, "refresh"), collection=collection)

    def flush(self, collection: str) -> Acknowledged:
        """Persist buffered writes and make them visible to reads and searches."""
        path = f"/{quote(collection, safe='')}/_flush"
        resp = self._request("POST", path, operation="flush", collection=collection)
        if not resp.is_success:
            raise self._error(resp, WriteError, operation="flush", collection=collection)
        flushed = self._shards_ok(resp, collection, "flush")
        refreshed = self.refresh(collection)
        ack = Acknowledged(acknowledged=flushed and refreshed.acknowledged, collection=collection)
        if not ack.acknowledged:
            logger.warning("flush on %s reported failed shards", collection)
        return ack

    # ----- Documents -----

    def put_document(self, collection: str, schema_name: str, doc_id: str, document: Payload) -> IndexResult:
        """Insert or fully replace a document.

        ``document`` may be a pydantic model, a mapping, or a pre-serialized
        JSON ``str``/``bytes`` payload that is forwarded unmodified.
        """
        op = "put_document"
        try:
            content = _encode(document)
        except (TypeError, PydanticSerializationError) as exc:
            raise WriteError(
                "Cannot serialize document", operation=op, collection=collection, doc_id=doc_id, reason=str(exc)
            ) from exc
        resp = self._request(
            "PUT",
            self._doc_path(collection, schema_name, doc_id),
            operation=op,
            collection=collection,
            doc_id=doc_id,
            content=content,
        )
        if not resp.is_success:
            raise self._error(resp, WriteError, operation=op, collection=collection, doc_id=doc_id)
        data = self._json(resp, WriteError, operation=op, collection=collection, doc_id=doc_id)
        if "_version" not in data:
            raise WriteError("Response carries no version", operation=op, collection=collection, doc_id=doc_id)
        result = data.get("result") or ("created" if data.get("created") else "updated")
        return IndexResult(
            id=str(data.get("_id", doc_id)),
            collection=str(data.get("_index", collection)),
            schema_name=schema_name,
            version=int(data["_version"]),
            result=result,
        )

    def get_document(self, collection: str, schema_name: str, doc_id: str) -> GetResult:
        """Point lookup; a missing document is ``found=False``, not an error."""
        op = "get_document"
        resp = self._request(
            "GET", self._doc_path(collection, schema_name, doc_id), operation=op, collection=collection, doc_id=doc_id
        )
        if resp.status_code == 404:
            # Only the store's own {"found": false} body means a missing document.
            try:
                data = resp.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get("found") is False and "error" not in data:
                return GetResult(found=False, id=str(doc_id), collection=collection, schema_name=schema_name)
        if not resp.is_success:
            raise self._error(resp, ReadError, operation=op, collection=collection, doc_id=doc_id)
        data = self._json(resp, ReadError, operation=op, collection=collection, doc_id=doc_id)
        if not data.get("found", False):
            return GetResult(found=False, id=str(doc_id), collection=collection, schema_name=schema_name)
        version = data.get("_version")
        return GetResult(
            found=True,
            id=str(data.get("_id", doc_id)),
            collection=str(data.get("_index", collection)),
            schema_name=schema_name,
            version=int(version) if version is not None else None,
            source=data.get("_source"),
        )

    def update_document(
        self,
        collection: str,
        schema_name: str,
        doc_id: str,
        script: str,
        params: Optional[Mapping[str, Any]] = None,
        upsert: Optional[Union[BaseModel, Mapping[str, Any]]] = None,
        *,
        lang: Optional[str] = None,
    ) -> UpdateResult:
        """Apply a server-side script to a document.

        When the document does not exist, ``upsert`` is stored instead; without
        an upsert a missing document raises NotFoundError. The script text and
        its params are sent as given.
        """
        op = "update_document"
        body = self._script_body(script, params, lang)
        if upsert is not None:
            body["upsert"] = _as_mapping(upsert)
        try:
            content = to_json(body)
        except PydanticSerializationError as exc:
            raise WriteError(
                "Cannot serialize update", operation=op, collection=collection, doc_id=doc_id, reason=str(exc)
            ) from exc
        resp = self._request(
            "POST",
            self._update_path(collection, schema_name, doc_id),
            operation=op,
            collection=collection,
            doc_id=doc_id,
            content=content,
        )
        if not resp.is_success:
            etype, reason = _error_details(resp)
            if resp.status_code == 404 and etype in _DOCUMENT_MISSING:
                raise NotFoundError(
                    "Document does not exist",
                    operation=op,
                    collection=collection,
                    doc_id=doc_id,
                    status_code=404,
                    error_type=etype,
                    reason=reason,
                )
            raise self._error(resp, WriteError, operation=op, collection=collection, doc_id=doc_id)
        data = self._json(resp, WriteError, operation=op, collection=collection, doc_id=doc_id)
        if "_version" not in data:
            raise WriteError("Response carries no version", operation=op, collection=collection, doc_id=doc_id)
        return UpdateResult(
            id=str(data.get("_id", doc_id)),
            collection=str(data.get("_index", collection)),
            schema_name=schema_name,
            version=int(data["_version"]),
            result=data.get("result"),
        )

    # ----- Search -----

    def search(
        self,
        collection: str,
        query: Mapping[str, Any],
        sort: Optional[Sequence[SortItem]] = None,
        offset: int = 0,
        limit: int = 10,
        *,
        pretty: bool = False,
    ) -> SearchResult:
        """Evaluate ``query`` and return the hits in ``[offset, offset + limit)``.

        ``total_hits`` counts every match, independent of the window.
        """
        op = "search"
        if offset < 0 or limit < 0:
            raise QueryError(
                f"offset and limit must be non-negative (got {offset}, {limit})", operation=op, collection=collection
            )
        body: Dict[str, Any] = {"query": dict(query), "from": int(offset), "size": int(limit)}
        if sort:
            body["sort"] = sort_spec(sort)
        if self._major() >= 7:
            # 7.x caps hits.total at 10000 unless asked for the exact count.
            body["track_total_hits"] = True
        try:
            content = to_json(body)
        except PydanticSerializationError as exc:
            raise QueryError("Cannot serialize query", operation=op, collection=collection, reason=str(exc)) from exc
        resp = self._request(
            "POST",
            f"/{quote(collection, safe='')}/_search",
            operation=op,
            collection=collection,
            params={"pretty": "true"} if pretty else None,
            content=content,
        )
        if not resp.is_success:
            raise self._error(resp, QueryError, operation=op, collection=collection)
        data = self._json(resp, QueryError, operation=op, collection=collection)
        block = data.get("hits") or {}
        total = block.get("total", 0)
        relation = "eq"
        if isinstance(total, dict):
            # 7.x+: {"value": N, "relation": "eq" | "gte"}
            relation = str(total.get("relation") or "eq")
            total = total.get("value", 0)
        hits = [
            SearchHit(
                id=str(h.get("_id")),
                collection=str(h.get("_index", collection)),
                schema_name=h.get("_type"),
                score=h.get("_score"),
                source=h.get("_source"),
                sort=h.get("sort"),
            )
            for h in block.get("hits") or []
            if isinstance(h, dict)
        ]
        return SearchResult(
            hits=hits,
            total_hits=int(total or 0),
            total_relation=relation,
            took_ms=int(data.get("took", 0) or 0),
            timed_out=bool(data.get("timed_out", False)),
            max_score=block.get("max_score"),
        )


def connect(config: Optional[StoreConfig] = None) -> DocumentStoreClient:
    """Create a client and connect it to the first live configured host."""
    return DocumentStoreClient(config).open()
