"""In-memory stand-in for an Elasticsearch node, driven through httpx.MockTransport.

Speaks enough of the 1.x and 7.x REST dialects for the client tests:
index lifecycle, typed and typeless document paths, flush/refresh
visibility, term/match_all search with sort and paging, and the
``ctx._source.<field> += <param>`` update script.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

_LEGACY_NAMES = {
    "index_not_found_exception": "IndexMissingException",
    "resource_already_exists_exception": "IndexAlreadyExistsException",
    "document_missing_exception": "DocumentMissingException",
    "parsing_exception": "SearchPhaseExecutionException",
    "illegal_argument_exception": "ElasticsearchIllegalArgumentException",
}

_INCREMENT = re.compile(r"^ctx\._source\.(\w+)\s*\+=\s*(\w+)$")


class FakeStore:
    def __init__(self, version: str = "7.17.0") -> None:
        self.version = version
        self.major = int(version.split(".")[0])
        # index name -> {"body": create body, "docs": {(type, id): entry}, "visible": snapshot}
        self.indices: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []

    # ----- helpers -----

    def _error(self, status: int, etype: str, reason: str) -> httpx.Response:
        if self.major < 2:
            return httpx.Response(
                status, json={"error": f"{_LEGACY_NAMES.get(etype, etype)}[{reason}]", "status": status}
            )
        return httpx.Response(
            status,
            json={
                "error": {"root_cause": [{"type": etype, "reason": reason}], "type": etype, "reason": reason},
                "status": status,
            },
        )

    def _missing_index(self, name: str) -> httpx.Response:
        return self._error(404, "index_not_found_exception", f"no such index [{name}]")

    def _ensure_index(self, name: str) -> Dict[str, Any]:
        return self.indices.setdefault(name, {"body": {}, "docs": {}, "visible": {}})

    def _doc_meta(self, index: str, doc_type: str, doc_id: str) -> Dict[str, Any]:
        meta: Dict[str, Any] = {"_index": index, "_id": doc_id}
        if self.major < 8:
            meta["_type"] = doc_type
        return meta

    def put(self, index: str, doc_id: str, source: Dict[str, Any], doc_type: str = "tweet") -> None:
        """Seed a document directly and make it searchable."""
        idx = self._ensure_index(index)
        key = (self._type(doc_type), doc_id)
        prev = idx["docs"].get(key)
        idx["docs"][key] = {"version": (prev["version"] + 1) if prev else 1, "source": dict(source)}
        idx["visible"] = dict(idx["docs"])

    def _type(self, doc_type: str) -> str:
        return doc_type if self.major < 7 else "_doc"

    # ----- transport entrypoint -----

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = [p for p in request.url.path.split("/") if p]
        method = request.method
        body = json.loads(request.content) if request.content else None

        if not parts and method == "GET":
            return httpx.Response(
                200,
                json={
                    "name": "node-1",
                    "cluster_name": "test-cluster",
                    "version": {"number": self.version},
                    "tagline": "You Know, for Search",
                },
            )
        if len(parts) == 1:
            return self._index_op(method, parts[0], body)
        if len(parts) == 2 and method == "POST":
            if parts[1] in ("_flush", "_refresh"):
                return self._flush(parts[0], refresh=parts[1] == "_refresh")
            if parts[1] == "_search":
                return self._search(parts[0], body or {})
        if len(parts) == 3 and self.major >= 7 and parts[1] == "_update" and method == "POST":
            return self._update(parts[0], "_doc", parts[2], body or {})
        if len(parts) == 4 and self.major < 7 and parts[3] == "_update" and method == "POST":
            return self._update(parts[0], parts[1], parts[2], body or {})
        if len(parts) == 3 and (self.major < 7 or parts[1] == "_doc"):
            if method == "PUT":
                return self._put(parts[0], parts[1], parts[2], body)
            if method == "GET":
                return self._get(parts[0], parts[1], parts[2])
        return self._error(400, "illegal_argument_exception", f"no handler for {method} {request.url.path}")

    # ----- routes -----

    def _index_op(self, method: str, name: str, body: Any) -> httpx.Response:
        if method == "HEAD":
            return httpx.Response(200 if name in self.indices else 404)
        if method == "PUT":
            if name in self.indices:
                return self._error(400, "resource_already_exists_exception", f"index [{name}] already exists")
            self.indices[name] = {"body": body or {}, "docs": {}, "visible": {}}
            return httpx.Response(200, json={"acknowledged": True, "shards_acknowledged": True, "index": name})
        if method == "DELETE":
            if name not in self.indices:
                return self._missing_index(name)
            del self.indices[name]
            return httpx.Response(200, json={"acknowledged": True})
        return self._error(400, "illegal_argument_exception", f"unsupported {method}")

    def _flush(self, name: str, *, refresh: bool) -> httpx.Response:
        if name not in self.indices:
            return self._missing_index(name)
        if refresh:
            self.indices[name]["visible"] = dict(self.indices[name]["docs"])
        return httpx.Response(200, json={"_shards": {"total": 1, "successful": 1, "failed": 0}})

    def _put(self, index: str, doc_type: str, doc_id: str, body: Any) -> httpx.Response:
        if not isinstance(body, dict):
            return self._error(400, "parsing_exception", "request body is required")
        idx = self._ensure_index(index)
        key = (doc_type, doc_id)
        prev = idx["docs"].get(key)
        version = prev["version"] + 1 if prev else 1
        idx["docs"][key] = {"version": version, "source": body}
        out = self._doc_meta(index, doc_type, doc_id)
        out["_version"] = version
        if self.major < 5:
            out["created"] = prev is None
        else:
            out["result"] = "updated" if prev else "created"
        return httpx.Response(201 if prev is None else 200, json=out)

    def _get(self, index: str, doc_type: str, doc_id: str) -> httpx.Response:
        if index not in self.indices:
            return self._missing_index(index)
        entry = self.indices[index]["docs"].get((doc_type, doc_id))
        out = self._doc_meta(index, doc_type, doc_id)
        if entry is None:
            out["found"] = False
            return httpx.Response(404, json=out)
        out.update({"_version": entry["version"], "found": True, "_source": entry["source"]})
        return httpx.Response(200, json=out)

    def _script(self, body: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
        script = body.get("script")
        if isinstance(script, str):
            return script, body.get("params") or {}
        if isinstance(script, dict):
            return script.get("source") or script.get("inline"), script.get("params") or {}
        return None, {}

    def _update(self, index: str, doc_type: str, doc_id: str, body: Dict[str, Any]) -> httpx.Response:
        idx = self._ensure_index(index)
        key = (doc_type, doc_id)
        entry = idx["docs"].get(key)
        if entry is None:
            if "upsert" not in body:
                return self._error(404, "document_missing_exception", f"[{doc_type}][{doc_id}]: document missing")
            entry = {"version": 1, "source": dict(body["upsert"])}
            result = "created"
        else:
            script, params = self._script(body)
            m = _INCREMENT.match((script or "").strip())
            if not m:
                return self._error(400, "illegal_argument_exception", f"unsupported script {script!r}")
            field, operand = m.groups()
            amount = int(operand) if operand.isdigit() else params[operand]
            source = dict(entry["source"])
            source[field] = source.get(field, 0) + amount
            entry = {"version": entry["version"] + 1, "source": source}
            result = "updated"
        idx["docs"][key] = entry
        out = self._doc_meta(index, doc_type, doc_id)
        out["_version"] = entry["version"]
        if self.major >= 5:
            out["result"] = result
        return httpx.Response(200, json=out)

    def _matches(self, query: Dict[str, Any], source: Dict[str, Any]) -> bool:
        if "match_all" in query:
            return True
        if "term" in query:
            ((field, value),) = query["term"].items()
            stored = source.get(field)
            return value in stored if isinstance(stored, list) else stored == value
        raise ValueError(f"unsupported query {query}")

    def _search(self, index: str, body: Dict[str, Any]) -> httpx.Response:
        if index not in self.indices:
            return self._missing_index(index)
        try:
            matched = [
                (key, entry)
                for key, entry in self.indices[index]["visible"].items()
                if self._matches(body.get("query") or {"match_all": {}}, entry["source"])
            ]
        except ValueError as exc:
            return self._error(400, "parsing_exception", str(exc))
        sort_fields: List[Tuple[str, bool]] = []
        for clause in body.get("sort") or []:
            ((field, opts),) = clause.items()
            sort_fields.append((field, opts.get("order", "asc") == "desc"))
        for field, desc in reversed(sort_fields):
            matched.sort(key=lambda kv: kv[1]["source"].get(field) or "", reverse=desc)
        start, size = int(body.get("from", 0)), int(body.get("size", 10))
        hits = []
        for (doc_type, doc_id), entry in matched[start : start + size]:
            hit = self._doc_meta(index, doc_type, doc_id)
            hit["_score"] = None if sort_fields else 1.0
            hit["_source"] = entry["source"]
            if sort_fields:
                hit["sort"] = [entry["source"].get(f) for f, _ in sort_fields]
            hits.append(hit)
        total: Any = len(matched)
        if self.major >= 7:
            total = {"value": len(matched), "relation": "eq"}
        return httpx.Response(
            200,
            json={
                "took": 3,
                "timed_out": False,
                "hits": {"total": total, "max_score": None if sort_fields else 1.0, "hits": hits},
            },
        )
