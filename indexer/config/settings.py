"""
Indexer settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from indexer.config.constants import (
    BALANCE_KEY_SCOPES,
    BALANCE_SCOPE_CHAIN,
    DEFAULT_FINALITY_DEPTH,
    FEED_RECONNECT_DELAY_BASE,
    FEED_RECONNECT_DELAY_MAX,
    REGISTRY_CONTRACT,
    STORE_COMMIT_MAX_RETRIES,
    STORE_COMMIT_RETRY_DELAY_BASE,
    TOKEN_CONTRACT,
)


class Settings(BaseSettings):
    """Indexer settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Chains
    supported_chain_ids: str = "1,137,42161,10,8453"  # Comma-separated list
    rpc_urls: str = ""  # Comma-separated "chain_id=url" pairs

    # Contracts
    registry_contract: str = REGISTRY_CONTRACT
    token_contract: str = TOKEN_CONTRACT
    registry_contract_address: str | None = None
    token_contract_address: str | None = None

    # Materialized views
    balance_key_scope: str = Field(
        default=BALANCE_SCOPE_CHAIN,
        description=(
            "TokenBalance keying: 'chain' scopes balances by (chain_id, address), "
            "'address' merges the same address across chains"
        )
    )

    # Reorg handling
    finality_depth: int = Field(
        default=DEFAULT_FINALITY_DEPTH,
        ge=0,
        description="Blocks behind the latest applied block treated as final"
    )

    # Store commit retries
    store_commit_max_retries: int = Field(
        default=STORE_COMMIT_MAX_RETRIES,
        gt=0,
        description="Commit attempts per event before giving up"
    )
    store_commit_retry_delay_base: float = Field(
        default=STORE_COMMIT_RETRY_DELAY_BASE,
        ge=0,
        description="Base delay in seconds for exponential commit backoff"
    )

    # Feed settings
    feed_reconnect_delay_base: float = Field(
        default=FEED_RECONNECT_DELAY_BASE,
        ge=0,
        description="Base delay in seconds before reconnecting a feed"
    )
    feed_reconnect_delay_max: float = Field(
        default=FEED_RECONNECT_DELAY_MAX,
        gt=0,
        description="Maximum reconnect delay in seconds"
    )
    feed_poll_interval: int = Field(
        default=3, ge=1, description="Web3 feed polling interval in seconds"
    )
    feed_chunk_size: int = Field(
        default=2000, gt=0, description="Blocks per eth_getLogs request"
    )
    feed_confirmations: int = Field(
        default=12, ge=0, description="Blocks a log must be buried under before it is emitted"
    )

    # Application
    environment: str = "production"
    log_level: str = "INFO"
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('balance_key_scope')
    @classmethod
    def validate_balance_key_scope(cls, v: str) -> str:
        """Validate TokenBalance keying scope."""
        v = v.strip().lower()
        if v not in BALANCE_KEY_SCOPES:
            raise ValueError(
                f'Invalid BALANCE_KEY_SCOPE: {v}. '
                f'Expected one of: {", ".join(BALANCE_KEY_SCOPES)}'
            )
        return v

    @field_validator('supported_chain_ids')
    @classmethod
    def validate_supported_chain_ids(cls, v: str) -> str:
        """Validate chain id list is non-empty."""
        if not any(part.strip() for part in v.split(",")):
            raise ValueError('SUPPORTED_CHAIN_IDS must list at least one chain')
        return v

    @field_validator('registry_contract_address', 'token_contract_address')
    @classmethod
    def validate_contract_address(cls, v: str | None) -> str | None:
        """Validate contract address format."""
        if v is None:
            return v
        if not v.startswith('0x') or len(v) != 42:
            raise ValueError(f'Invalid contract address: {v}')
        return v.lower()

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL uses an async driver."""
        if not v.startswith(('postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql+asyncpg:// '
                'or sqlite+aiosqlite://'
            )
        return v

    @model_validator(mode='after')
    def warn_address_scope(self) -> 'Settings':
        """Flag address-only balance keying."""
        if self.balance_key_scope != BALANCE_SCOPE_CHAIN:
            logger.warning(
                'BALANCE_KEY_SCOPE=address merges balances of the same address '
                'across chains. Use "chain" unless this is intended.'
            )
        return self

    def get_supported_chain_ids(self) -> list[int]:
        """Parse chain IDs from comma-separated string."""
        result = []
        for id_ in self.supported_chain_ids.split(","):
            id_stripped = id_.strip()
            if not id_stripped:
                continue
            try:
                result.append(int(id_stripped))
            except ValueError:
                logger.warning(f"Invalid chain ID: {id_stripped}")
                continue
        return result

    def get_rpc_urls(self) -> dict[int, str]:
        """Parse "chain_id=url" pairs into a mapping."""
        result: dict[int, str] = {}
        for pair in self.rpc_urls.split(","):
            if "=" not in pair:
                continue
            chain_id, url = pair.split("=", 1)
            try:
                result[int(chain_id.strip())] = url.strip()
            except ValueError:
                logger.warning(f"Invalid RPC URL entry: {pair}")
        return result


# Global settings instance
settings = Settings()
