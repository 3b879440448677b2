from pydantic import BaseModel, ConfigDict, Field

from core.exceptions import ErrorKind


class BlockRange(BaseModel):
    """
    Inclusive block sub-range covered by a single log query.

    Attributes
    ----------
    from_block : int
        First block of the range
    to_block : int
        Last block of the range
    """
    from_block: int
    to_block: int

    model_config = ConfigDict(frozen=True)

    @property
    def size(self) -> int:
        return self.to_block - self.from_block + 1


class RedemptionRecord(BaseModel):
    """
    Entity representing one decoded RedeemedOnChain event.

    Attributes
    ----------
    merchant : str
        Checksummed address of the redeeming merchant
    rusd_amount : str
        Redeemed RUSD as an exact decimal string
    pol_amount : str
        POL paid out as an exact decimal string
    timestamp : int
        Event time in seconds since epoch, as emitted on-chain
    tx_hash : str
        Transaction hash
    block_number : int
        Block number where event occurred
    log_index : int
        Log index in the block
    """
    merchant: str
    rusd_amount: str
    pol_amount: str
    timestamp: int
    tx_hash: str
    block_number: int
    log_index: int = 0

    model_config = ConfigDict(from_attributes=True)


class ScanError(BaseModel):
    """
    Structured failure of a redemption scan.

    Attributes
    ----------
    kind : ErrorKind
        Failure category
    message : str
        Most specific available cause
    hint : str | None
        User-facing explanation for transport failures
    """
    kind: ErrorKind
    message: str
    hint: str | None = None


class ScanResult(BaseModel):
    """
    Outcome of a redemption scan.

    Attributes
    ----------
    success : bool
        Whether the scan completed
    data : list[RedemptionRecord]
        Records, newest first (empty on failure)
    error : ScanError | None
        Failure details
    from_block : int | None
        First scanned block, once resolved
    to_block : int | None
        Last scanned block, once resolved
    """
    success: bool
    data: list[RedemptionRecord] = Field(default_factory=list)
    error: ScanError | None = None
    from_block: int | None = None
    to_block: int | None = None

    @classmethod
    def ok(
        cls,
        records: list[RedemptionRecord],
        from_block: int,
        to_block: int
    ) -> "ScanResult":
        return cls(success=True, data=records, from_block=from_block, to_block=to_block)

    @classmethod
    def failure(
        cls,
        error: ScanError,
        from_block: int | None = None,
        to_block: int | None = None
    ) -> "ScanResult":
        return cls(success=False, error=error, from_block=from_block, to_block=to_block)
