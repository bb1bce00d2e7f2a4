"""
Indexer constants.

Sentinel addresses, supported chains, event names and retry defaults.
"""

# Mint/burn sentinel (as `from` it is a mint, as `to` it is a burn)
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Supported chains
CHAIN_NAMES = {
    1: "ethereum",
    137: "polygon",
    42161: "arbitrum",
    10: "optimism",
    8453: "base",
}

# Default contract identifiers
REGISTRY_CONTRACT = "ChainMindRegistry"
TOKEN_CONTRACT = "ChainMindToken"

# Event names
USER_REGISTERED = "UserRegistered"
PORTFOLIO_UPDATED = "PortfolioUpdated"
ALERT_CREATED = "AlertCreated"
TRANSFER = "Transfer"
APPROVAL = "Approval"

# TokenBalance keying scopes
BALANCE_SCOPE_CHAIN = "chain"  # (chain_id, address)
BALANCE_SCOPE_ADDRESS = "address"  # address only, merged across chains
BALANCE_KEY_SCOPES = (BALANCE_SCOPE_CHAIN, BALANCE_SCOPE_ADDRESS)

# Store commit retry settings
STORE_COMMIT_MAX_RETRIES = 5  # Attempts per event before giving up
STORE_COMMIT_RETRY_DELAY_BASE = 0.5  # Seconds; 0.5s, 1s, 2s, 4s...

# Feed reconnect settings
FEED_RECONNECT_DELAY_BASE = 1.0  # Seconds
FEED_RECONNECT_DELAY_MAX = 60.0  # Cap for exponential backoff

# Reorg safety
DEFAULT_FINALITY_DEPTH = 64  # Blocks behind the head considered final

# Event listing
DEFAULT_EVENTS_LIMIT = 100
MAX_EVENTS_LIMIT = 10000
