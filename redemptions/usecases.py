from redemptions.abi_service import ABIService
from redemptions.connection import BlockchainConnection
from redemptions.event_interface import EventInterface
from redemptions.reconciler import RedemptionLogReconciler
from redemptions.schemas import RedemptionResponse, RedemptionsResponse
from core.exceptions import exception_for_kind
from core.redis.providers import CacheService
from core.environment.config import Settings


class GetOnchainRedemptionsUseCase:
    """
    Use case for building the on-chain redemption audit trail.

    Parameters
    ----------
    reconciler : RedemptionLogReconciler
        Redemption log scanner
    connection : BlockchainConnection
        Read-only node connection
    abi_service : ABIService
        Treasury ABI resolver
    cache_service : CacheService
        Cache service instance
    settings : Settings
        Application settings
    """

    def __init__(
        self,
        reconciler: RedemptionLogReconciler,
        connection: BlockchainConnection,
        abi_service: ABIService,
        cache_service: CacheService,
        settings: Settings
    ):
        self.reconciler = reconciler
        self.connection = connection
        self.abi_service = abi_service
        self.cache = cache_service
        self.settings = settings

    async def __call__(
        self,
        from_block: int | None,
        to_block: int | None,
        chunk_size: int,
        merchant: str | None
    ) -> RedemptionsResponse:
        """
        Execute use case.

        Parameters
        ----------
        from_block : int | None
            Starting block number
        to_block : int | None
            Ending block number
        chunk_size : int
            Blocks per log query
        merchant : str | None
            Merchant filter

        Returns
        -------
        RedemptionsResponse
            Redemptions response

        Raises
        ------
        BaseCustomException
            Exception matching the scan failure kind
        """
        contract_address = self.settings.donation_treasury_address

        # only fully bounded ranges are stable enough to cache
        cache_key = None
        if from_block is not None and to_block is not None:
            cache_key = (
                f"redemptions:{self.settings.chain_id}:{contract_address.lower()}:"
                f"{from_block}:{to_block}:{merchant or '*'}"
            )
            cached = await self.cache.get(cache_key)
            if cached:
                return RedemptionsResponse(**cached)

        abi = await self.abi_service.get_abi(contract_address)

        result = await self.reconciler.fetch_redemptions(
            connection=self.connection,
            contract_address=contract_address,
            event_interface=EventInterface(abi),
            from_block=from_block,
            to_block=to_block,
            chunk_size=chunk_size,
            merchant=merchant,
            timeout=self.settings.scan_timeout_seconds
        )

        if not result.success:
            raise exception_for_kind(result.error.kind, result.error.message, result.error.hint)

        response = RedemptionsResponse(
            contract_address=contract_address,
            from_block=result.from_block,
            to_block=result.to_block,
            merchant=merchant,
            redemptions=[
                RedemptionResponse(
                    **record.model_dump(),
                    tx_url=self.settings.get_explorer_link(record.tx_hash)
                )
                for record in result.data
            ],
            total_redemptions=len(result.data)
        )

        if cache_key:
            await self.cache.set(cache_key, response.model_dump(), ttl=300)

        return response
