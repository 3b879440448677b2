import asyncio
import logging
import math
from typing import Any, Iterator, Mapping

from eth_utils import is_address, to_checksum_address

from core.exceptions import (
    BaseCustomException,
    DecodeException,
    ErrorKind,
    InvalidAddressException,
    InvalidInputException,
    ScanCancelledException,
    TransportException,
)
from redemptions.connection import BlockchainConnection
from redemptions.entities import BlockRange, RedemptionRecord, ScanError, ScanResult
from redemptions.event_interface import EventInterface, to_hex
from redemptions.tx_errors import (
    TX_ERROR_MESSAGES,
    TxErrorKind,
    describe_failure,
    to_transport_exception,
)
from redemptions.units import format_ether

REDEMPTION_EVENT = "RedeemedOnChain"
DEFAULT_CHUNK_SIZE = 5000
DEFAULT_LOOKBACK_BLOCKS = 50000
GENERIC_FAILURE_MESSAGE = "Failed to fetch on-chain redemptions"


def iter_chunks(from_block: int, to_block: int, chunk_size: int) -> Iterator[BlockRange]:
    """
    Split an inclusive block range into consecutive sub-ranges.

    Every sub-range spans ``chunk_size`` blocks except possibly the last.

    Parameters
    ----------
    from_block : int
        First block
    to_block : int
        Last block
    chunk_size : int
        Maximum blocks per sub-range

    Yields
    ------
    BlockRange
        Sub-ranges in ascending order
    """
    for start in range(from_block, to_block + 1, chunk_size):
        yield BlockRange(from_block=start, to_block=min(start + chunk_size - 1, to_block))


def count_chunks(from_block: int, to_block: int, chunk_size: int) -> int:
    """Number of sub-ranges ``iter_chunks`` yields for the same arguments."""
    return math.ceil((to_block - from_block + 1) / chunk_size)


class RedemptionLogReconciler:
    """
    Scanner for ``RedeemedOnChain`` events of the DonationTreasury contract.

    Queries the node in block chunks to stay under provider limits on
    ``eth_getLogs``, decodes every log, filters by merchant and returns
    records newest first. No partial results: any failure aborts the scan.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance
    concurrency : int
        Maximum number of chunk queries in flight (1 = sequential)
    lookback_blocks : int
        Blocks scanned back from the latest block when ``from_block`` is omitted
    """

    def __init__(
        self,
        logger: logging.Logger,
        concurrency: int = 1,
        lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.logger = logger
        self.concurrency = concurrency
        self.lookback_blocks = lookback_blocks

    async def fetch_redemptions(
        self,
        connection: BlockchainConnection | None,
        contract_address: str | None,
        event_interface: EventInterface | None,
        from_block: int | None = None,
        to_block: int | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        merchant: str | None = None,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None
    ) -> ScanResult:
        """
        Load on-chain merchant redemptions.

        Parameters
        ----------
        connection : BlockchainConnection | None
            Read-only node connection
        contract_address : str | None
            DonationTreasury contract address
        event_interface : EventInterface | None
            Treasury event interface
        from_block : int | None
            Start block, defaults to ``latest - lookback_blocks`` (min 0)
        to_block : int | None
            End block, defaults to the latest block
        chunk_size : int
            Blocks per ``eth_getLogs`` call
        merchant : str | None
            Only keep redemptions of this merchant (case-insensitive)
        cancel_event : asyncio.Event | None
            When set, no further chunk queries are issued
        timeout : float | None
            Seconds allowed for the whole scan

        Returns
        -------
        ScanResult
            Records newest first, or a structured failure
        """
        state: dict[str, int] = {}
        scan = self._scan(
            connection, contract_address, event_interface, from_block, to_block,
            chunk_size, merchant, cancel_event, state
        )

        try:
            if timeout is None:
                records = await scan
            else:
                records = await asyncio.wait_for(scan, timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Redemption scan timed out after {timeout}s")
            return ScanResult.failure(
                ScanError(kind=ErrorKind.CANCELLED, message=f"Scan timed out after {timeout}s"),
                **state
            )
        except TransportException as e:
            self.logger.error(f"Redemption scan failed: {e.message}")
            kind = e.error_kind or TxErrorKind.UNKNOWN
            return ScanResult.failure(
                ScanError(
                    kind=ErrorKind.TRANSPORT,
                    message=describe_failure(e, GENERIC_FAILURE_MESSAGE),
                    hint=TX_ERROR_MESSAGES[kind]
                ),
                **state
            )
        except BaseCustomException as e:
            self.logger.error(f"Redemption scan failed: {e.message}")
            return ScanResult.failure(
                ScanError(kind=e.kind, message=describe_failure(e, GENERIC_FAILURE_MESSAGE)),
                **state
            )

        return ScanResult.ok(records, from_block=state["from_block"], to_block=state["to_block"])

    async def _scan(
        self,
        connection: BlockchainConnection | None,
        contract_address: str | None,
        event_interface: EventInterface | None,
        from_block: int | None,
        to_block: int | None,
        chunk_size: int,
        merchant: str | None,
        cancel_event: asyncio.Event | None,
        state: dict[str, int]
    ) -> list[RedemptionRecord]:
        self._validate(connection, contract_address, event_interface, from_block, to_block, chunk_size, merchant)
        topic = event_interface.topic_hash(REDEMPTION_EVENT)

        # latest height is read once so every chunk sees the same upper bound
        if from_block is None or to_block is None:
            latest_block = await self._call(connection.get_block_number())
            if from_block is None:
                from_block = max(latest_block - self.lookback_blocks, 0)
            if to_block is None:
                to_block = latest_block

        state["from_block"] = from_block
        state["to_block"] = to_block

        if from_block > to_block:
            raise InvalidInputException(f"Invalid range: fromBlock {from_block} > toBlock {to_block}")

        total_chunks = count_chunks(from_block, to_block, chunk_size)
        self.logger.info(
            f"Scanning {REDEMPTION_EVENT} logs of {contract_address} from block {from_block} "
            f"to {to_block} ({to_block - from_block + 1:,} blocks, {total_chunks:,} chunks)"
        )

        logs = await self._collect_logs(
            connection, contract_address, topic, iter_chunks(from_block, to_block, chunk_size), cancel_event
        )
        records = [self._decode(event_interface, log) for log in logs]

        if merchant:
            records = [record for record in records if record.merchant.lower() == merchant.lower()]

        records.sort(key=lambda r: (r.timestamp, r.block_number, r.log_index), reverse=True)

        self.logger.info(f"Fetched {len(logs)} redemption logs, {len(records)} after filtering")
        return records

    def _validate(
        self,
        connection: BlockchainConnection | None,
        contract_address: str | None,
        event_interface: EventInterface | None,
        from_block: int | None,
        to_block: int | None,
        chunk_size: int,
        merchant: str | None
    ) -> None:
        if connection is None:
            raise InvalidInputException("Provider not found")
        if not contract_address:
            raise InvalidInputException("DonationTreasury address missing")
        if not is_address(contract_address):
            raise InvalidAddressException(f"Invalid DonationTreasury address: {contract_address}")
        if event_interface is None:
            raise InvalidInputException("DonationTreasury ABI missing")
        if not event_interface.has_event(REDEMPTION_EVENT):
            raise InvalidInputException(f"DonationTreasury ABI does not define {REDEMPTION_EVENT}")
        if chunk_size < 1:
            raise InvalidInputException(f"Invalid chunk size: {chunk_size}")
        for name, value in (("fromBlock", from_block), ("toBlock", to_block)):
            if value is not None and value < 0:
                raise InvalidInputException(f"Invalid {name}: {value}")
        if from_block is not None and to_block is not None and from_block > to_block:
            raise InvalidInputException(f"Invalid range: fromBlock {from_block} > toBlock {to_block}")
        if merchant and not is_address(merchant):
            raise InvalidAddressException(f"Invalid merchant address: {merchant}")

    async def _collect_logs(
        self,
        connection: BlockchainConnection,
        contract_address: str,
        topic: str,
        chunks: Iterator[BlockRange],
        cancel_event: asyncio.Event | None
    ) -> list[Any]:
        """
        Query chunks in windows of ``concurrency`` and keep chunk order.
        """
        logs: list[Any] = []
        window: list[BlockRange] = []

        async def flush() -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelledException(
                    f"Scan cancelled before block {window[0].from_block}"
                )
            results = await asyncio.gather(
                *(
                    self._call(connection.get_logs(contract_address, chunk.from_block, chunk.to_block, [topic]))
                    for chunk in window
                ),
                return_exceptions=True
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            for part in results:
                logs.extend(part)
            window.clear()

        for chunk in chunks:
            window.append(chunk)
            if len(window) >= self.concurrency:
                await flush()
        if window:
            await flush()

        return logs

    @staticmethod
    async def _call(awaitable):
        try:
            return await awaitable
        except BaseCustomException:
            raise
        except Exception as e:
            raise to_transport_exception(e) from e

    @staticmethod
    def _decode(event_interface: EventInterface, log: Mapping[str, Any]) -> RedemptionRecord:
        args = event_interface.decode_log(REDEMPTION_EVENT, log)
        try:
            return RedemptionRecord(
                merchant=to_checksum_address(args["merchant"]),
                rusd_amount=format_ether(args["rusdAmount"]),
                pol_amount=format_ether(args["polAmount"]),
                timestamp=int(args["timestamp"]),
                tx_hash=to_hex(log["transactionHash"]),
                block_number=int(log["blockNumber"]),
                log_index=int(log.get("logIndex") or 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeException(
                f"Malformed {REDEMPTION_EVENT} log in block {log.get('blockNumber')}: {e}"
            ) from e
