import logging
from typing import Any, Protocol, Sequence

from eth_utils import to_checksum_address
from web3 import AsyncWeb3

from redemptions.tx_errors import to_transport_exception


class BlockchainConnection(Protocol):
    """
    Read-only view of a chain node needed to scan event logs.
    """

    async def get_block_number(self) -> int:
        """Return the latest block height."""

    async def get_logs(
        self,
        address: str,
        from_block: int,
        to_block: int,
        topics: Sequence[str]
    ) -> list[Any]:
        """Return logs of ``address`` matching ``topics`` in [from_block, to_block]."""


class Web3Connection:
    """
    ``BlockchainConnection`` backed by an ``AsyncWeb3`` client.

    Every node failure is re-raised as a typed ``TransportException``.

    Parameters
    ----------
    web3 : AsyncWeb3
        Web3 client instance
    logger : logging.Logger
        Logger instance
    """

    def __init__(self, web3: AsyncWeb3, logger: logging.Logger):
        self.web3 = web3
        self.logger = logger

    async def get_block_number(self) -> int:
        """
        Get latest block height.

        Returns
        -------
        int
            Latest block number

        Raises
        ------
        TransportException
            If the node call fails
        """
        try:
            return int(await self.web3.eth.block_number)
        except Exception as e:
            self.logger.warning(f"Error fetching latest block number: {e}")
            raise to_transport_exception(e) from e

    async def get_logs(
        self,
        address: str,
        from_block: int,
        to_block: int,
        topics: Sequence[str]
    ) -> list[Any]:
        """
        Fetch logs for a specific block range.

        Parameters
        ----------
        address : str
            Contract address
        from_block : int
            Starting block number
        to_block : int
            Ending block number
        topics : Sequence[str]
            Topic0 hashes to filter on

        Returns
        -------
        list[Any]
            List of log entries

        Raises
        ------
        TransportException
            If the node call fails
        """
        filter_params = {
            'address': to_checksum_address(address),
            'fromBlock': from_block,
            'toBlock': to_block
        }
        if topics:
            filter_params['topics'] = [list(topics)]

        try:
            logs = await self.web3.eth.get_logs(filter_params)
        except Exception as e:
            self.logger.warning(f"Error fetching logs for chunk {from_block}-{to_block}: {e}")
            raise to_transport_exception(e) from e

        if logs:
            self.logger.debug(f"Chunk {from_block}-{to_block}: found {len(logs)} logs")
        return list(logs)
