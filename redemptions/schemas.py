from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _validate_address(v: str | None, label: str) -> str | None:
    if v is None:
        return v
    if not v.startswith('0x') or len(v) != 42:
        raise ValueError(f'Invalid {label} address format')
    try:
        int(v[2:], 16)
    except ValueError:
        raise ValueError(f'Invalid {label} address format')
    return v.lower()


class GetRedemptionsRequest(BaseModel):
    """
    Request schema for scanning on-chain redemptions.

    Attributes
    ----------
    from_block : int | None
        Starting block number (defaults to the configured lookback window)
    to_block : int | None
        Ending block number (defaults to the latest block)
    chunk_size : int
        Blocks per log query
    merchant : str | None
        Only return redemptions of this merchant
    """
    from_block: int | None = Field(default=None, ge=0, description="Starting block number")
    to_block: int | None = Field(default=None, ge=0, description="Ending block number")
    chunk_size: int = Field(default=5000, gt=0, le=100000, description="Blocks per log query")
    merchant: str | None = Field(default=None, description="Merchant wallet address filter")

    @field_validator('merchant')
    @classmethod
    def validate_merchant(cls, v: str | None) -> str | None:
        return _validate_address(v, 'merchant')

    @model_validator(mode='after')
    def validate_range(self) -> 'GetRedemptionsRequest':
        if self.from_block is not None and self.to_block is not None and self.from_block > self.to_block:
            raise ValueError('from_block must not be greater than to_block')
        return self

    model_config = ConfigDict(from_attributes=True)


class RedemptionResponse(BaseModel):
    """
    Response schema for a single redemption.

    Attributes
    ----------
    merchant : str
        Merchant address
    rusd_amount : str
        Redeemed RUSD
    pol_amount : str
        POL paid out
    timestamp : int
        Redemption time (unix seconds)
    tx_hash : str
        Transaction hash
    block_number : int
        Block number
    log_index : int
        Log index
    tx_url : str
        Block explorer link of the transaction
    """
    merchant: str
    rusd_amount: str
    pol_amount: str
    timestamp: int
    tx_hash: str
    block_number: int
    log_index: int
    tx_url: str

    model_config = ConfigDict(from_attributes=True)


class RedemptionsResponse(BaseModel):
    """
    Response schema for a redemption scan.

    Attributes
    ----------
    contract_address : str
        DonationTreasury address
    from_block : int
        First scanned block
    to_block : int
        Last scanned block
    merchant : str | None
        Merchant filter applied
    redemptions : list[RedemptionResponse]
        Redemptions, newest first
    total_redemptions : int
        Number of redemptions
    """
    contract_address: str
    from_block: int
    to_block: int
    merchant: str | None
    redemptions: list[RedemptionResponse]
    total_redemptions: int

    model_config = ConfigDict(from_attributes=True)
