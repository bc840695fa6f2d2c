"""Result and schema types exchanged with the document store.

Results are plain dataclasses built from the store's JSON responses. Schema
definitions are pydantic models so they can be validated before they are
sent. Stored payloads stay as parsed mappings; callers recover typed records
explicitly with ``decode(Model)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hellosearch.exceptions import DecodeError

M = TypeVar("M", bound=BaseModel)


def major_version(number: str) -> int:
    """Return the major component of a version string such as "7.17.0"."""
    head = (number or "").strip().split(".", 1)[0]
    if not head.isdigit():
        raise ValueError(f"Unrecognized version number: {number!r}")
    return int(head)


def _decode(model: Type[M], source: Optional[Dict[str, Any]], *, collection: str, doc_id: str) -> M:
    if source is None:
        raise DecodeError(
            "Document has no source to decode", collection=collection, doc_id=doc_id
        )
    try:
        return model.model_validate(source)
    except ValidationError as exc:
        raise DecodeError(
            f"Cannot decode document as {model.__name__}",
            operation="decode",
            collection=collection,
            doc_id=doc_id,
            reason=str(exc),
        ) from exc


# ----- Results -----


@dataclass(slots=True)
class PingResult:
    """Liveness handshake outcome."""

    version: str
    response_code: int
    name: Optional[str] = None
    cluster_name: Optional[str] = None
    tagline: Optional[str] = None

    @property
    def major(self) -> int:
        return major_version(self.version)


@dataclass(slots=True)
class Acknowledged:
    """Outcome of a structural change.

    ``acknowledged`` is False when not every participating node confirmed the
    change; the change may still have happened.
    """

    acknowledged: bool
    collection: str
    shards_acknowledged: Optional[bool] = None


@dataclass(slots=True)
class IndexResult:
    id: str
    collection: str
    schema_name: str
    version: int
    result: Optional[str] = None


@dataclass(slots=True)
class GetResult:
    """Point lookup outcome. ``found`` is False for a missing document."""

    found: bool
    id: str
    collection: str
    schema_name: str
    version: Optional[int] = None
    source: Optional[Dict[str, Any]] = None

    def decode(self, model: Type[M]) -> M:
        return _decode(model, self.source, collection=self.collection, doc_id=self.id)


@dataclass(slots=True)
class SearchHit:
    id: str
    collection: str
    schema_name: Optional[str] = None
    score: Optional[float] = None
    source: Optional[Dict[str, Any]] = None
    sort: Optional[List[Any]] = None

    def decode(self, model: Type[M]) -> M:
        return _decode(model, self.source, collection=self.collection, doc_id=self.id)


@dataclass(slots=True)
class SearchResult:
    """One window of hits plus the total number of matches."""

    hits: List[SearchHit] = field(default_factory=list)
    total_hits: int = 0
    # "gte" when the store reports only a lower bound for total_hits
    total_relation: str = "eq"
    took_ms: int = 0
    timed_out: bool = False
    max_score: Optional[float] = None

    def __iter__(self) -> Iterator[SearchHit]:
        return iter(self.hits)

    def __len__(self) -> int:
        return len(self.hits)

    def each(self, model: Type[M]) -> List[M]:
        """Decode every hit in order; the first undecodable hit raises DecodeError."""
        return [hit.decode(model) for hit in self.hits]


@dataclass(slots=True)
class UpdateResult:
    id: str
    collection: str
    schema_name: str
    version: int
    result: Optional[str] = None


# ----- Schema definitions -----


class IndexSettings(BaseModel):
    """Storage settings for a collection."""

    number_of_shards: int = Field(default=1, ge=1)
    number_of_replicas: int = Field(default=0, ge=0)


class FieldMapping(BaseModel):
    """Type and indexing options of one field.

    Options beyond ``type`` and ``store`` (analyzer, format, ...) are passed
    through to the store as given.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    store: Optional[bool] = None


class SchemaDefinition(BaseModel):
    """Settings and field mapping used to create a collection."""

    doc_type: str = "_doc"
    settings: IndexSettings = Field(default_factory=IndexSettings)
    properties: Dict[str, FieldMapping] = Field(default_factory=dict)

    def to_body(self, major: int) -> Dict[str, Any]:
        """Render the create-collection body for a server of the given major version.

        Servers before 7 expect mappings keyed by document type; later ones
        expect a single typeless mapping.
        """
        props = {name: fm.model_dump(exclude_none=True) for name, fm in self.properties.items()}
        mappings: Dict[str, Any] = {"properties": props}
        if major < 7:
            mappings = {self.doc_type: mappings}
        return {"settings": self.settings.model_dump(), "mappings": mappings}
