"""Tweet record used by the demo workflow, and the schema it is stored under."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hellosearch.models import FieldMapping, IndexSettings, SchemaDefinition


class SuggestField(BaseModel):
    """Completion suggester input."""

    input: List[str] = Field(default_factory=list)
    output: Optional[str] = None
    payload: Optional[Any] = None
    weight: Optional[int] = None


class Tweet(BaseModel):
    """A tweet as stored in the ``twitter`` collection.

    Unset optional fields are dropped when the record is serialized.
    """

    model_config = ConfigDict(populate_by_name=True)

    user: str
    message: str
    retweets: int = 0
    image: Optional[str] = None
    created: Optional[datetime] = None
    tags: Optional[List[str]] = None
    location: Optional[str] = None  # "lat,lon"
    suggest: Optional[SuggestField] = Field(default=None, alias="suggest_field")


def tweet_schema(
    major: int, *, doc_type: str = "tweet", shards: int = 1, replicas: int = 0
) -> SchemaDefinition:
    """Schema for tweets on a server of the given major version.

    Servers before 5 only know the "string" type; later ones split it into
    analyzed "text" and exact "keyword". ``user`` is exact so it can be both
    term-matched and sorted on.
    """
    text = "string" if major < 5 else "text"
    keyword = "string" if major < 5 else "keyword"
    return SchemaDefinition(
        doc_type=doc_type,
        settings=IndexSettings(number_of_shards=shards, number_of_replicas=replicas),
        properties={
            "user": FieldMapping(type=keyword),
            "message": FieldMapping(type=text, store=True),
            "image": FieldMapping(type=keyword),
            "created": FieldMapping(type="date"),
            "tags": FieldMapping(type=keyword),
            "location": FieldMapping(type="geo_point"),
            "suggest_field": FieldMapping(type="completion"),
        },
    )
