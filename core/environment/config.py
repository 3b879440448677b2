import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings using Pydantic Settings.

    Attributes
    ----------
    rpc_url : str
        JSON-RPC endpoint of the chain the treasury lives on
    chain_id : int
        Chain id (Polygon Amoy by default)
    donation_treasury_address : str
        DonationTreasury contract address emitting redemption events
    explorer_url : str
        Block explorer base URL used for transaction links
    explorer_api_url : str
        Explorer API endpoint for fetching verified ABIs
    explorer_api_key : str
        Explorer API key (optional, bundled ABI is used when empty)
    redis_host : str
        Redis host for caching
    redis_port : int
        Redis port
    redis_db : int
        Redis database number
    redis_password : str
        Redis password (optional)
    scan_chunk_size : int
        Default number of blocks per log query
    scan_lookback_blocks : int
        How far back an open-ended scan starts from the latest block
    scan_concurrency : int
        Maximum number of chunk queries in flight
    scan_timeout_seconds : float
        Upper bound for a whole scan
    """

    rpc_url: str = "https://rpc-amoy.polygon.technology/"
    chain_id: int = 80002
    donation_treasury_address: str

    explorer_url: str = "https://amoy.polygonscan.com"
    explorer_api_url: str = "https://api.etherscan.io/v2/api"
    explorer_api_key: str = ""

    redis_host: str
    redis_port: int
    redis_db: int
    redis_password: str

    scan_chunk_size: int = 5000
    scan_lookback_blocks: int = 50000
    scan_concurrency: int = 1
    scan_timeout_seconds: float = 120.0

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    def get_explorer_link(self, value: str, kind: str = "tx") -> str:
        """
        Get block explorer link for a transaction or address.

        Parameters
        ----------
        value : str
            Transaction hash or address
        kind : str
            Explorer path segment (tx, address, block)

        Returns
        -------
        str
            Full explorer URL
        """
        return f"{self.explorer_url.rstrip('/')}/{kind}/{value}"
