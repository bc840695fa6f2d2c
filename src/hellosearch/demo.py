"""End-to-end walkthrough of the document store client.

Connects, recreates the ``twitter`` collection, indexes two tweets, reads
one back, searches, and applies a scripted update. Run with:
  - hellosearch-demo
  - or: python -m hellosearch.demo (ensure PYTHONPATH includes ./src)

Library calls raise classified errors; only ``main()`` decides to abort.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from hellosearch.client import DocumentStoreClient, connect
from hellosearch.config import Settings, load_settings
from hellosearch.exceptions import HelloSearchError
from hellosearch.query import term_query
from hellosearch.tweets import Tweet, tweet_schema

logger = logging.getLogger("hellosearch.demo")

RAW_TWEET = '{"user" : "olivere", "message" : "It\'s a Raggy Waltz"}'


def run_demo(
    client: DocumentStoreClient,
    settings: Settings,
    out: Callable[[str], None] = print,
) -> None:
    """Run the walkthrough against a connected client, reporting through ``out``."""
    cfg = settings.demo
    index, doc_type = cfg.collection, cfg.schema_name

    info = client.ping()
    out(f"Store returned with code {info.response_code} and version {info.version}")
    out(f"Store version {client.server_version()}")

    if client.collection_exists(index):
        out(f"the {index} index already exists. Deleting it now.")
        if not client.delete_collection(index).acknowledged:
            out("Not acknowledged")

    schema = tweet_schema(info.major, doc_type=doc_type, shards=cfg.shards, replicas=cfg.replicas)
    if not client.create_collection(index, schema).acknowledged:
        out("Not acknowledged")
    if not client.collection_exists(index):
        out(f"Index {index} does not exist.")

    # One tweet from a typed record, one from a pre-serialized payload
    tweet1 = Tweet(user="olivere", message="Take Five", retweets=0)
    for doc_id, payload in (("1", tweet1), ("2", RAW_TWEET)):
        put = client.put_document(index, doc_type, doc_id, payload)
        out(f"Indexed tweet {put.id} to index {put.collection}, type {put.schema_name}")

    got = client.get_document(index, doc_type, "1")
    if got.found:
        out(f"Got document {got.id} in version {got.version} from index {got.collection}, type {got.schema_name}")
        t = got.decode(Tweet)
        out(f"Tweet by {t.user}: {t.message}")

    # Searches only see writes after a flush
    client.flush(index)

    result = client.search(
        index,
        term_query("user", "olivere"),
        sort=[("user", True)],
        offset=0,
        limit=10,
        pretty=True,
    )
    out(f"Query took {result.took_ms} milliseconds")
    if result.total_hits > 0:
        out(f"Found a total of {result.total_hits} tweets")
        for t in result.each(Tweet):
            out(f"Tweet by {t.user}: {t.message}")
    else:
        out("Found no tweets.")

    update = client.update_document(
        index,
        doc_type,
        "1",
        "ctx._source.retweets += num",
        params={"num": 1},
        upsert={"retweets": 0},
    )
    out(f"New version of tweet {update.id!r} is now {update.version}")


def main(settings: Optional[Settings] = None) -> int:
    """Load settings, connect, run the walkthrough, and map failures to an exit code."""
    try:
        settings = settings or load_settings()
    except HelloSearchError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("%s", exc)
        return 1
    logging.basicConfig(level=settings.app.log_level.upper())
    try:
        with connect(settings.store) as client:
            run_demo(client, settings)
    except HelloSearchError as exc:
        logger.error("Demo aborted: %s", exc)
        if exc.reason:
            logger.debug("Reason: %s", exc.reason)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
