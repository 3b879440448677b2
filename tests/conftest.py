import asyncio
import logging
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, patch
from eth_abi import encode
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes
from dishka import Provider, Scope, provide, make_async_container
from redis.asyncio import Redis
import os


TREASURY_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
REDEEMED_ON_CHAIN_SIGNATURE = "RedeemedOnChain(address,uint256,uint256,uint256)"

# Set test environment variables before imports
os.environ['REDIS_HOST'] = 'localhost'
os.environ['REDIS_PORT'] = '6379'
os.environ['REDIS_DB'] = '0'
os.environ['REDIS_PASSWORD'] = ''  # No password for mock
os.environ['DONATION_TREASURY_ADDRESS'] = TREASURY_ADDRESS
os.environ['EXPLORER_API_KEY'] = ''

from core.environment.config import Settings  # noqa: E402
from redemptions.connection import Web3Connection  # noqa: E402


class FakeConnection:
    """
    In-memory node serving a fixed set of logs.

    Parameters
    ----------
    logs : list[dict]
        Logs the node knows about
    latest_block : int
        Reported chain height
    fail_on_call : int | None
        1-based index of the get_logs call that raises
    delay : float
        Seconds each get_logs call takes
    """

    def __init__(self, logs=(), latest_block=1000, fail_on_call=None, delay=0.0):
        self.logs = list(logs)
        self.latest_block = latest_block
        self.fail_on_call = fail_on_call
        self.delay = delay
        self.calls = []
        self.block_number_calls = 0
        self.on_get_logs = None

    async def get_block_number(self):
        self.block_number_calls += 1
        return self.latest_block

    async def get_logs(self, address, from_block, to_block, topics):
        self.calls.append((from_block, to_block))
        if self.on_get_logs is not None:
            self.on_get_logs(len(self.calls))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on_call == len(self.calls):
            raise ConnectionError("node unreachable")
        return [log for log in self.logs if from_block <= log["blockNumber"] <= to_block]


class FakeNodeProvider(Provider):
    """
    Serves a FakeConnection in place of the web3 connection.
    """

    component = "redemptions"
    scope = Scope.APP

    def __init__(self, connection):
        super().__init__()
        self.connection = connection

    @provide
    def get_connection(self) -> Web3Connection:
        return self.connection


class FakeRedisProvider(Provider):
    """
    Serves a mocked Redis client.
    """

    component = "redis"
    scope = Scope.APP

    def __init__(self, redis_client):
        super().__init__()
        self.redis_client = redis_client

    @provide
    def get_redis(self) -> Redis:
        return self.redis_client


class FakeEnvironmentProvider(Provider):
    """
    Serves settings with per-test overrides.
    """

    component = "environment"
    scope = Scope.APP

    def __init__(self, settings):
        super().__init__()
        self.settings = settings

    @provide
    def get_environment(self) -> Settings:
        return self.settings


def build_redemption_log(
    merchant,
    rusd_amount,
    pol_amount,
    timestamp,
    block_number,
    log_index=0
):
    """Encode a RedeemedOnChain log the way eth_getLogs returns it."""
    return {
        "address": TREASURY_ADDRESS,
        "blockNumber": block_number,
        "blockHash": HexBytes(keccak(text=f"block:{block_number}")),
        "logIndex": log_index,
        "transactionIndex": log_index,
        "transactionHash": HexBytes(keccak(text=f"tx:{block_number}:{log_index}")),
        "topics": [
            HexBytes(keccak(text=REDEEMED_ON_CHAIN_SIGNATURE)),
            HexBytes(encode(["address"], [to_checksum_address(merchant)])),
        ],
        "data": HexBytes(encode(
            ["uint256", "uint256", "uint256"],
            [rusd_amount, pol_amount, timestamp]
        )),
    }


@pytest.fixture
def logger():
    return logging.getLogger("tests")


@pytest.fixture
def fake_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection


@pytest.fixture
def make_log():
    """Factory for encoded RedeemedOnChain logs."""
    return build_redemption_log


@pytest.fixture
def treasury_address():
    return TREASURY_ADDRESS


@pytest.fixture
def event_interface():
    from redemptions.abi_service import load_bundled_abi
    from redemptions.event_interface import EventInterface

    return EventInterface(load_bundled_abi())


@pytest_asyncio.fixture
async def mock_redis():
    """Mock Redis client for testing."""
    mock = AsyncMock()
    mock.ping = AsyncMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.setex = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()
    return mock


@pytest_asyncio.fixture
async def client(mock_redis):
    """
    Fixture for async test client with mocked Redis.

    Parameters
    ----------
    mock_redis : AsyncMock
        Mocked Redis client

    Yields
    ------
    AsyncClient
        Async HTTP client for testing
    """
    # Patch Redis before importing main app
    with patch('redis.asyncio.Redis', return_value=mock_redis):
        from main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest_asyncio.fixture
async def api_client(mock_redis):
    """
    Factory for async test clients backed by an in-memory node.

    Each client runs the real application with a container whose node
    connection, Redis client and settings are replaced.

    Parameters
    ----------
    mock_redis : AsyncMock
        Mocked Redis client

    Yields
    ------
    Callable
        ``factory(connection, **settings_overrides) -> AsyncClient``
    """
    from main import app
    from dishka.integrations.fastapi import FastapiProvider
    from core.environment.providers import EnvironmentProvider
    from core.logging.providers import LoggerProvider
    from core.redis.providers import CacheProvider, RedisProvider
    from redemptions.providers import RedemptionsProvider

    original_container = app.state.dishka_container
    opened = []

    def factory(connection, **settings_overrides):
        container = make_async_container(
            FastapiProvider(),
            EnvironmentProvider(),
            LoggerProvider(),
            RedemptionsProvider(),
            RedisProvider(),
            CacheProvider(),
            FakeEnvironmentProvider(Settings(**settings_overrides)),
            FakeRedisProvider(mock_redis),
            FakeNodeProvider(connection),
        )
        app.state.dishka_container = container
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        opened.append((container, client))
        return client

    yield factory

    for container, client in opened:
        await client.aclose()
        await container.close()
    app.state.dishka_container = original_container
