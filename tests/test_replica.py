import asyncio
import json
from typing import Any

import httpx
import pytest

from catalogsync.exceptions import SearchError, SyncUnavailable
from catalogsync.replica.client import CatalogClient
from catalogsync.replica.listing import listing_from_payload
from catalogsync.replica.store import ReplicaStore

from conftest import FakeCatalog

# ---------- Helpers ----------


def patch_client_with_responder(conn: CatalogClient, responder: Any) -> None:
    def _client() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(responder), base_url="https://catalog.example.com"
        )

    setattr(conn, "_client", _client)


# ---------- Listing payloads ----------


def test_listing_from_payload_reads_nested_picture_and_oid() -> None:
    lst = listing_from_payload(
        {"_id": {"$oid": "abc"}, "name": "Loft", "images": {"picture_url": "https://x/1.jpg"}}
    )
    assert lst is not None
    assert lst.id == "abc"
    assert lst.picture_url == "https://x/1.jpg"
    assert lst.to_dict() == {"id": "abc", "name": "Loft", "picture_url": "https://x/1.jpg"}


def test_listing_without_id_is_skipped() -> None:
    assert listing_from_payload({"name": "anonymous"}) is None


# ---------- CatalogClient ----------


@pytest.mark.asyncio
async def test_search_listings_posts_phrase_and_paging() -> None:
    seen = {}

    def responder(request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/functions/searchListings":
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"result": [{"_id": "1"}, {"_id": "2"}, "junk"]})
        return httpx.Response(404)

    conn = CatalogClient(base_url="https://catalog.example.com")
    patch_client_with_responder(conn, responder)

    items = await conn.search_listings("Loft", page_number=1, page_size=20)
    assert [i["_id"] for i in items] == ["1", "2"]
    assert seen == {"searchPhrase": "Loft", "pageNumber": 1, "pageSize": 20}


@pytest.mark.asyncio
async def test_search_listings_error_body_raises_search_error() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "index unavailable"})

    conn = CatalogClient(base_url="https://catalog.example.com")
    patch_client_with_responder(conn, responder)

    with pytest.raises(SearchError, match="index unavailable"):
        await conn.search_listings("loft")


@pytest.mark.asyncio
async def test_search_listings_http_failure_raises_search_error() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    conn = CatalogClient(base_url="https://catalog.example.com")
    patch_client_with_responder(conn, responder)

    with pytest.raises(SearchError):
        await conn.search_listings("loft")


@pytest.mark.asyncio
async def test_fetch_listings_empty_makes_no_request() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    conn = CatalogClient(base_url="https://catalog.example.com")
    patch_client_with_responder(conn, responder)
    assert await conn.fetch_listings([]) == []


@pytest.mark.asyncio
async def test_fetch_listings_transport_error_raises_sync_unavailable() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    conn = CatalogClient(base_url="https://catalog.example.com", token="t")
    patch_client_with_responder(conn, responder)

    with pytest.raises(SyncUnavailable):
        await conn.fetch_listings(["1"])


# ---------- ReplicaStore ----------


@pytest.mark.asyncio
async def test_subscribe_materializes_only_subscribed_records(
    replica: ReplicaStore, fake_catalog: FakeCatalog
) -> None:
    await replica.subscribe("listing", ["2", "1"])
    assert fake_catalog.fetch_calls == [["1", "2"]]
    assert await replica.count() == 2

    listings = await replica.query_by_ids(["2", "1", "9"])
    assert [lst.id for lst in listings] == ["2", "1"]
    assert listings[0].name == "Loft near the park"


@pytest.mark.asyncio
async def test_failed_update_commits_nothing(
    replica: ReplicaStore, fake_catalog: FakeCatalog
) -> None:
    await replica.subscribe("listing", ["1"])
    fake_catalog.unreachable = True

    with pytest.raises(SyncUnavailable):
        await replica.subscribe("listing", ["5"])
    assert await replica.subscriptions.find("listing") == frozenset({"1"})
    assert await replica.count() == 1


@pytest.mark.asyncio
async def test_remove_all_subscriptions_empties_replica(replica: ReplicaStore) -> None:
    await replica.subscriptions.update(lambda subs: subs.add("listing", ["1", "2"]))
    await replica.subscriptions.update(lambda subs: subs.add("other", ["5"]))
    assert await replica.subscriptions.ids() == frozenset({"1", "2", "5"})

    await replica.subscriptions.update(lambda subs: subs.remove_all())
    assert await replica.subscriptions.count() == 0
    assert await replica.count() == 0


@pytest.mark.asyncio
async def test_delete_all_keeps_subscriptions(replica: ReplicaStore) -> None:
    await replica.subscribe("listing", ["1", "2"])
    assert await replica.delete_all() == 2
    assert await replica.count() == 0
    assert await replica.subscriptions.find("listing") == frozenset({"1", "2"})


@pytest.mark.asyncio
async def test_paused_session_defers_until_resume(
    replica: ReplicaStore, fake_catalog: FakeCatalog
) -> None:
    session = replica.sync_session
    session.pause()
    assert session.state == "paused"

    await replica.subscribe("listing", ["5", "6"])
    assert await replica.count() == 0
    assert await session.synchronize() is False

    assert await session.resume() is True
    assert session.state == "active"
    assert session.pending is False
    assert {lst.id for lst in await replica.query_by_ids(["5", "6"])} == {"5", "6"}


@pytest.mark.asyncio
async def test_synchronize_prunes_unsubscribed_listings(replica: ReplicaStore) -> None:
    await replica.upsert_listings([{"_id": "9", "name": "stray"}])
    await replica.subscribe("listing", ["1"])
    assert await replica.count() == 1

    await replica.upsert_listings([{"_id": "9", "name": "stray"}])
    assert await replica.sync_session.synchronize() is True
    assert [lst.id for lst in await replica.query_by_ids(["1", "9"])] == ["1"]


@pytest.mark.asyncio
async def test_resume_failure_is_logged_not_raised(
    replica: ReplicaStore, fake_catalog: FakeCatalog
) -> None:
    session = replica.sync_session
    assert await session.resume() is False  # already active: nothing to catch up

    session.pause()
    await replica.subscribe("listing", ["1"])
    fake_catalog.unreachable = True

    assert await session.resume() is False
    assert session.active
    assert session.pending is True


@pytest.mark.asyncio
async def test_overlapping_updates_commit_in_start_order(
    replica: ReplicaStore, fake_catalog: FakeCatalog
) -> None:
    fake_catalog.fetch_delays = [0.2]

    slow = asyncio.create_task(replica.subscribe("listing", ["1", "2"]))
    await asyncio.sleep(0.01)
    await replica.subscribe("listing", ["5"])
    await slow

    assert fake_catalog.fetch_calls == [["1", "2"], ["5"]]
    assert await replica.subscriptions.find("listing") == frozenset({"5"})
    assert [lst.id for lst in await replica.query_by_ids(["1", "2", "5"])] == ["5"]


@pytest.mark.asyncio
async def test_synchronize_waits_for_in_flight_update(
    replica: ReplicaStore, fake_catalog: FakeCatalog
) -> None:
    fake_catalog.fetch_delays = [0.2]

    update = asyncio.create_task(replica.subscribe("listing", ["3", "4"]))
    await asyncio.sleep(0.01)
    assert await replica.sync_session.synchronize() is True
    await update

    assert fake_catalog.fetch_calls[-1] == ["3", "4"]
    assert await replica.count() == 2
