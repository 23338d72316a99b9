# tests/conftest.py
from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from stake_sync.core.settings import Settings
from stake_sync.schemas.subgraph import StakeUpdate

SUBGRAPH_URL = "https://subgraph.test/subgraphs/name/staking"
HEIMDALL_URL = "https://heimdall.test"
CHAIN_ID = "heimdall-80001"


def stake_update_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": "0xabc-12",
        "validatorId": "7",
        "totalStaked": "10000000000000000000000",
        "block": "15000000",
        "nonce": "4",
        "transactionHash": "0x9f2b3c4d5e6f708192a3b4c5d6e7f8091a2b3c4d5e6f708192a3b4c5d6e7f809",
        "logIndex": "12",
    }
    row.update(overrides)
    return row


def subgraph_body(rows: list[dict[str, Any]]) -> dict[str, Any]:
    return {"data": {"stakeUpdates": rows}}


def heimdall_body(nonce: int = 3, error: str = "") -> dict[str, Any]:
    return {
        "height": "1234",
        "result": {
            "ID": 7,
            "startEpoch": 1,
            "endEpoch": 0,
            "nonce": nonce,
            "power": 10000,
            "pubKey": "0x04aa",
            "signer": "0x1111111111111111111111111111111111111111",
            "last_updated": "0",
            "jailed": False,
            "accum": 0,
        },
        "error": error,
    }


class RecordingHandler:
    """httpx MockTransport handler that replays canned responses and keeps requests."""

    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def json_bodies(self) -> list[Any]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def stake_update() -> StakeUpdate:
    return StakeUpdate.model_validate(stake_update_row())


@pytest.fixture
def recording_transport() -> Callable[..., tuple[httpx.MockTransport, RecordingHandler]]:
    def factory(*responses: httpx.Response) -> tuple[httpx.MockTransport, RecordingHandler]:
        handler = RecordingHandler(list(responses))
        return httpx.MockTransport(handler), handler

    return factory


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ethereum_rpc_url="http://localhost:8545",
        polygon_sub_graph_url=SUBGRAPH_URL,
        heimdall_rest_url=HEIMDALL_URL,
        heimdall_chain_id=CHAIN_ID,
        _env_file=None,
    )
