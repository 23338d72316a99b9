import httpx
import pytest

from stake_sync.services.errors import LedgerQueryError, StakeUpdateNotFoundError
from stake_sync.services.subgraph import (
    SubgraphClient,
    latest_nonce_query,
    stake_update_query,
)
from tests.conftest import SUBGRAPH_URL, stake_update_row, subgraph_body


def test_latest_nonce_query_orders_by_nonce_desc():
    query = latest_nonce_query(7)
    assert "first: 1" in query
    assert "orderBy: nonce" in query
    assert "orderDirection: desc" in query
    assert "validatorId: 7" in query


def test_stake_update_query_selects_all_fields():
    query = stake_update_query(7, 4)
    assert "validatorId: 7, nonce: 4" in query
    for name in ("id", "validatorId", "totalStaked", "block", "nonce", "transactionHash", "logIndex"):
        assert name in query


@pytest.mark.asyncio
async def test_fetch_latest_nonce_posts_query(recording_transport):
    transport, handler = recording_transport(
        httpx.Response(200, json=subgraph_body([{"nonce": "5"}]))
    )
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    assert await client.fetch_latest_nonce(7) == 5

    request = handler.requests[0]
    assert request.method == "POST"
    assert str(request.url) == SUBGRAPH_URL
    assert handler.json_bodies()[0] == {"query": latest_nonce_query(7)}
    await client.close()


@pytest.mark.asyncio
async def test_fetch_latest_nonce_without_updates_is_zero(recording_transport):
    transport, _ = recording_transport(httpx.Response(200, json=subgraph_body([])))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    assert await client.fetch_latest_nonce(7) == 0


@pytest.mark.asyncio
async def test_fetch_latest_nonce_rejects_non_numeric(recording_transport):
    transport, _ = recording_transport(
        httpx.Response(200, json=subgraph_body([{"nonce": "five"}]))
    )
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(LedgerQueryError):
        await client.fetch_latest_nonce(7)


@pytest.mark.asyncio
async def test_fetch_stake_update_preserves_text(recording_transport):
    row = stake_update_row()
    transport, _ = recording_transport(httpx.Response(200, json=subgraph_body([row])))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    record = await client.fetch_stake_update(7, 4)

    assert record.id == row["id"]
    assert record.validator_id == row["validatorId"]
    assert record.total_staked == row["totalStaked"]
    assert record.block == row["block"]
    assert record.nonce == row["nonce"]
    assert record.transaction_hash == row["transactionHash"]
    assert record.log_index == row["logIndex"]


@pytest.mark.asyncio
async def test_fetch_stake_update_with_no_match(recording_transport):
    transport, _ = recording_transport(httpx.Response(200, json=subgraph_body([])))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(StakeUpdateNotFoundError):
        await client.fetch_stake_update(7, 0)


@pytest.mark.asyncio
async def test_fetch_stake_update_with_duplicate_match(recording_transport):
    rows = [stake_update_row(), stake_update_row(id="0xdef-1")]
    transport, _ = recording_transport(httpx.Response(200, json=subgraph_body(rows)))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(LedgerQueryError, match="got 2"):
        await client.fetch_stake_update(7, 4)


@pytest.mark.asyncio
async def test_fetch_stake_update_with_missing_field(recording_transport):
    row = stake_update_row()
    del row["transactionHash"]
    transport, _ = recording_transport(httpx.Response(200, json=subgraph_body([row])))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(LedgerQueryError):
        await client.fetch_stake_update(7, 4)


@pytest.mark.asyncio
async def test_graphql_errors_are_raised(recording_transport):
    transport, _ = recording_transport(
        httpx.Response(200, json={"data": None, "errors": [{"message": "indexer down"}]})
    )
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(LedgerQueryError, match="indexer down"):
        await client.fetch_latest_nonce(7)


@pytest.mark.asyncio
async def test_error_status_is_raised(recording_transport):
    transport, _ = recording_transport(httpx.Response(502, text="bad gateway"))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(LedgerQueryError, match="502"):
        await client.fetch_latest_nonce(7)


@pytest.mark.asyncio
async def test_invalid_json_is_raised(recording_transport):
    transport, _ = recording_transport(httpx.Response(200, text="<html>"))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(LedgerQueryError):
        await client.fetch_latest_nonce(7)


@pytest.mark.asyncio
async def test_network_error_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = SubgraphClient(SUBGRAPH_URL, transport=httpx.MockTransport(handler))

    with pytest.raises(LedgerQueryError, match="connection refused"):
        await client.fetch_latest_nonce(7)


@pytest.mark.asyncio
async def test_default_timeout_is_ten_seconds():
    client = SubgraphClient(SUBGRAPH_URL)
    http_client = await client._ensure_client()

    assert http_client.timeout.read == 10.0
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"data": None}, {"data": {}}])
async def test_body_without_stake_updates_is_not_nonce_zero(recording_transport, body):
    transport, _ = recording_transport(httpx.Response(200, json=body))
    client = SubgraphClient(SUBGRAPH_URL, transport=transport)

    with pytest.raises(LedgerQueryError, match="Unexpected subgraph response shape"):
        await client.fetch_latest_nonce(7)
