import asyncio
import aiohttp
import json
import logging
from pathlib import Path

from core.redis.providers import CacheService
from redemptions.reconciler import REDEMPTION_EVENT

BUNDLED_ABI_PATH = Path(__file__).parent / "abi" / "DonationTreasury.json"


def load_bundled_abi() -> list[dict[str, any]]:
    """
    Load the DonationTreasury ABI shipped with the service.

    Returns
    -------
    list[dict[str, any]]
        Contract ABI
    """
    with BUNDLED_ABI_PATH.open(encoding="utf-8") as f:
        return json.load(f)


class ABIService:
    """
    Service for resolving the DonationTreasury ABI.

    Verified ABIs are fetched from the block explorer when an API key is
    configured and cached; the bundled ABI is used otherwise.

    Parameters
    ----------
    cache_service : CacheService
        Cache service for storing ABIs
    logger : logging.Logger
        Logger instance
    explorer_api_url : str
        Explorer API endpoint (Etherscan v2 compatible)
    explorer_api_key : str
        Explorer API key
    chain_id : int
        Chain id passed to the explorer
    """

    def __init__(
        self,
        cache_service: CacheService,
        logger: logging.Logger,
        explorer_api_url: str,
        explorer_api_key: str,
        chain_id: int
    ):
        self.cache = cache_service
        self.logger = logger
        self.explorer_api_url = explorer_api_url
        self.explorer_api_key = explorer_api_key
        self.chain_id = chain_id

    async def get_abi(self, contract_address: str) -> list[dict[str, any]]:
        """
        Get contract ABI from cache, explorer API or bundled file.

        Parameters
        ----------
        contract_address : str
            Contract address

        Returns
        -------
        list[dict[str, any]]
            Contract ABI defining the redemption event
        """
        if not self.explorer_api_key:
            return load_bundled_abi()

        cache_key = f"abi:{self.chain_id}:{contract_address.lower()}"

        cached = await self.cache.get(cache_key)
        if cached and isinstance(cached, list):
            self.logger.debug(f"ABI found in cache for {contract_address}")
            return cached

        abi = await self._fetch_from_explorer(contract_address)

        if isinstance(abi, list) and self._defines_redemption_event(abi):
            self.logger.info(f"Explorer ABI loaded for {contract_address}: {len(abi)} items")
            await self.cache.set(cache_key, abi, ttl=86400 * 7)
            return abi

        self.logger.warning(f"No usable explorer ABI for {contract_address}, using bundled ABI")
        return load_bundled_abi()

    def _defines_redemption_event(self, abi: list[dict[str, any]]) -> bool:
        return any(
            isinstance(item, dict) and item.get("type") == "event" and item.get("name") == REDEMPTION_EVENT
            for item in abi
        )

    async def _fetch_from_explorer(self, contract_address: str) -> list[dict[str, any]]:
        """
        Fetch ABI from blockchain explorer API.

        Parameters
        ----------
        contract_address : str
            Contract address

        Returns
        -------
        list[dict[str, any]]
            Contract ABI, empty if the explorer has none
        """
        params = {
            "chainid": str(self.chain_id),
            "module": "contract",
            "action": "getabi",
            "address": contract_address,
            "apikey": self.explorer_api_key
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(self.explorer_api_url, params=params) as response:
                    if response.status != 200:
                        self.logger.warning(f"Explorer returned HTTP {response.status} for {contract_address}")
                        return []
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Explorer ABI request failed for {contract_address}: {e}")
            return []

        if data.get("status") == "1" and data.get("result"):
            try:
                return json.loads(data["result"])
            except (TypeError, ValueError) as e:
                self.logger.warning(f"Explorer returned malformed ABI for {contract_address}: {e}")
        return []
