from dishka import Provider, Scope, provide, FromComponent
from redemptions.abi_service import ABIService
from redemptions.connection import Web3Connection
from redemptions.reconciler import RedemptionLogReconciler
from redemptions.usecases import GetOnchainRedemptionsUseCase
from typing import Annotated
from web3 import AsyncWeb3
from core.environment.config import Settings
from core.redis.providers import CacheService
import logging


class RedemptionsProvider(Provider):
    """
    Provider for redemption audit dependencies.
    """

    component = "redemptions"

    @provide(scope=Scope.APP)
    def get_web3_client(
        self,
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> AsyncWeb3:
        """
        Provide Web3 client for the treasury chain.

        Parameters
        ----------
        settings : Settings
            Application settings

        Returns
        -------
        AsyncWeb3
            Web3 client
        """
        return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url))

    @provide(scope=Scope.APP)
    def get_connection(
        self,
        web3_client: Annotated[AsyncWeb3, FromComponent("redemptions")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> Web3Connection:
        """
        Provide read-only blockchain connection.
        """
        return Web3Connection(web3=web3_client, logger=logger)

    @provide(scope=Scope.APP)
    def get_reconciler(
        self,
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> RedemptionLogReconciler:
        """
        Provide redemption log reconciler.

        Parameters
        ----------
        settings : Settings
            Application settings
        logger : logging.Logger
            Logger instance

        Returns
        -------
        RedemptionLogReconciler
            Reconciler configured with scan concurrency and lookback
        """
        return RedemptionLogReconciler(
            logger=logger,
            concurrency=settings.scan_concurrency,
            lookback_blocks=settings.scan_lookback_blocks
        )

    @provide(scope=Scope.APP)
    def get_abi_service(
        self,
        cache_service: Annotated[CacheService, FromComponent("cache")],
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> ABIService:
        """
        Provide ABI service.

        Parameters
        ----------
        cache_service : CacheService
            Cache service instance
        settings : Settings
            Application settings
        logger : logging.Logger
            Logger instance

        Returns
        -------
        ABIService
            ABI service instance
        """
        return ABIService(
            cache_service=cache_service,
            logger=logger,
            explorer_api_url=settings.explorer_api_url,
            explorer_api_key=settings.explorer_api_key,
            chain_id=settings.chain_id
        )

    @provide(scope=Scope.REQUEST)
    def get_onchain_redemptions_use_case(
        self,
        reconciler: Annotated[RedemptionLogReconciler, FromComponent("redemptions")],
        connection: Annotated[Web3Connection, FromComponent("redemptions")],
        abi_service: Annotated[ABIService, FromComponent("redemptions")],
        cache_service: Annotated[CacheService, FromComponent("cache")],
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> GetOnchainRedemptionsUseCase:
        """
        Provide get on-chain redemptions use case.
        """
        return GetOnchainRedemptionsUseCase(
            reconciler=reconciler,
            connection=connection,
            abi_service=abi_service,
            cache_service=cache_service,
            settings=settings
        )
