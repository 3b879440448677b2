import pytest
from unittest.mock import AsyncMock

from core.environment.config import Settings
from core.exceptions import InvalidInputException, TransportException
from redemptions.abi_service import load_bundled_abi
from redemptions.reconciler import RedemptionLogReconciler
from redemptions.usecases import GetOnchainRedemptionsUseCase

MERCHANT = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
ETHER = 10 ** 18


@pytest.fixture
def settings(treasury_address):
    return Settings(
        donation_treasury_address=treasury_address,
        explorer_url="https://amoy.polygonscan.com/",
        redis_host="localhost",
        redis_port=6379,
        redis_db=0,
        redis_password="",
        scan_timeout_seconds=5.0,
    )


@pytest.fixture
def cache():
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def abi_service():
    mock = AsyncMock()
    mock.get_abi = AsyncMock(return_value=load_bundled_abi())
    return mock


def make_use_case(logger, connection, abi_service, cache, settings):
    return GetOnchainRedemptionsUseCase(
        reconciler=RedemptionLogReconciler(logger),
        connection=connection,
        abi_service=abi_service,
        cache_service=cache,
        settings=settings
    )


class TestGetOnchainRedemptionsUseCase:
    """
    Tests for the redemption audit trail use case.
    """

    @pytest.mark.asyncio
    async def test_builds_response_with_explorer_links(
        self, logger, fake_connection, make_log, abi_service, cache, settings
    ):
        logs = [
            make_log(MERCHANT, 10 * ETHER, 2 * ETHER, 100, block_number=3),
            make_log(MERCHANT, 25 * ETHER, 5 * ETHER, 200, block_number=8),
        ]
        connection = fake_connection(logs, latest_block=50)
        use_case = make_use_case(logger, connection, abi_service, cache, settings)

        response = await use_case(from_block=None, to_block=None, chunk_size=5000, merchant=None)

        assert response.contract_address == settings.donation_treasury_address
        assert (response.from_block, response.to_block) == (0, 50)
        assert response.total_redemptions == 2
        newest = response.redemptions[0]
        assert newest.rusd_amount == "25.0"
        assert newest.pol_amount == "5.0"
        assert newest.tx_url == f"https://amoy.polygonscan.com/tx/{newest.tx_hash}"
        abi_service.get_abi.assert_awaited_once_with(settings.donation_treasury_address)
        cache.get.assert_not_awaited()
        cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bounded_range_is_cached(self, logger, fake_connection, abi_service, cache, settings):
        use_case = make_use_case(logger, fake_connection(), abi_service, cache, settings)

        response = await use_case(from_block=0, to_block=10, chunk_size=5000, merchant=MERCHANT.lower())

        cache_key = cache.set.await_args.args[0]
        assert cache_key == (
            f"redemptions:80002:{settings.donation_treasury_address.lower()}:0:10:{MERCHANT.lower()}"
        )
        assert cache.set.await_args.args[1] == response.model_dump()

    @pytest.mark.asyncio
    async def test_cached_response_skips_scan(self, logger, fake_connection, abi_service, cache, settings):
        cache.get = AsyncMock(return_value={
            "contract_address": settings.donation_treasury_address,
            "from_block": 0,
            "to_block": 10,
            "merchant": None,
            "redemptions": [],
            "total_redemptions": 0,
        })
        connection = fake_connection()
        use_case = make_use_case(logger, connection, abi_service, cache, settings)

        response = await use_case(from_block=0, to_block=10, chunk_size=5000, merchant=None)

        assert response.total_redemptions == 0
        assert connection.calls == []
        abi_service.get_abi.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_failure_raises_typed_exception(
        self, logger, fake_connection, abi_service, cache, settings
    ):
        use_case = make_use_case(logger, fake_connection(fail_on_call=1), abi_service, cache, settings)

        with pytest.raises(TransportException) as exc_info:
            await use_case(from_block=0, to_block=10, chunk_size=5000, merchant=None)

        assert exc_info.value.message == "node unreachable"
        assert exc_info.value.hint == "Network error: RPC node not responding"
        assert exc_info.value.get_status_code() == 502
        cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_defaulted_range_raises_bad_request(
        self, logger, fake_connection, abi_service, cache, settings
    ):
        use_case = make_use_case(logger, fake_connection(latest_block=100000), abi_service, cache, settings)

        with pytest.raises(InvalidInputException) as exc_info:
            await use_case(from_block=None, to_block=10, chunk_size=5000, merchant=None)

        assert exc_info.value.get_status_code() == 400
