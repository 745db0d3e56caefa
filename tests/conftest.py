"""Pytest configuration and fixtures."""

import json
import os
from typing import Any, Callable, Union

import httpx
import pytest

# Keep local .env values out of tests
os.environ["FUSION_API_URL"] = "https://fusion.test"
os.environ["ONEINCH_API_KEY"] = ""

from chainai.chains import CHAINS, NetworkRegistry
from chainai.config import get_settings
from chainai.rpc import RpcClient
from chainai.signing.local import LocalSigner

# Well-known development key (hardhat/anvil account #0). Never funded on mainnet.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

# Development account #1
RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
NATIVE = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

GWEI = 10**9


@pytest.fixture(autouse=True)
def fresh_settings():
    """Rebuild cached settings around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def signer() -> LocalSigner:
    return LocalSigner.from_private_key(TEST_PRIVATE_KEY)


@pytest.fixture
def eth_chain():
    return CHAINS[1]


@pytest.fixture
def bsc_chain():
    return CHAINS[56]


@pytest.fixture
def registry() -> NetworkRegistry:
    return NetworkRegistry(CHAINS)


RpcHandler = Union[Any, Callable[[list], Any], Exception]


def rpc_transport(handlers: dict[str, RpcHandler], calls: list = None) -> httpx.MockTransport:
    """MockTransport answering JSON-RPC methods from a dict.

    Values are returned as ``result``; callables get the params; a dict
    under the key "error" is returned as a JSON-RPC error object.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method = payload["method"]
        if calls is not None:
            calls.append((method, payload["params"]))

        if method not in handlers:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": payload["id"],
                      "error": {"code": -32601, "message": f"method {method} not found"}},
            )

        result = handlers[method]
        if callable(result):
            result = result(payload["params"])
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": payload["id"], "error": result["error"]}
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    return httpx.MockTransport(handler)


def make_rpc(handlers: dict[str, RpcHandler], calls: list = None) -> RpcClient:
    """RpcClient backed by rpc_transport."""
    return RpcClient("https://rpc.test", transport=rpc_transport(handlers, calls))
