"""Network, endpoint and timing configuration.

Values are read from the environment (optionally via a ``.env`` file); every
setting has a default that targets the Sepolia test network.
"""

import os
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

from .types import ChainId, as_chain_id

load_dotenv()


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class ChainDescriptor:
    """Everything a wallet needs to add the chain (``wallet_addEthereumChain``)."""

    chain_id: ChainId
    chain_name: str
    native_currency: NativeCurrency
    rpc_urls: tuple[str, ...]
    block_explorer_urls: tuple[str, ...]

    def as_add_chain_params(self) -> dict:
        return {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "nativeCurrency": {
                "name": self.native_currency.name,
                "symbol": self.native_currency.symbol,
                "decimals": self.native_currency.decimals,
            },
            "rpcUrls": list(self.rpc_urls),
            "blockExplorerUrls": list(self.block_explorer_urls),
        }

    @property
    def explorer_url(self) -> str:
        return self.block_explorer_urls[0].rstrip("/") if self.block_explorer_urls else ""

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"


SEPOLIA = ChainDescriptor(
    chain_id=as_chain_id(11155111),
    chain_name="Sepolia Testnet",
    native_currency=NativeCurrency(name="ETH", symbol="ETH", decimals=18),
    rpc_urls=(
        "https://rpc.sepolia.org",
        "https://sepolia.gateway.tenderly.co",
        "https://ethereum-sepolia.blockpi.network/v1/rpc/public",
    ),
    block_explorer_urls=("https://sepolia.etherscan.io/",),
)

# Read-only endpoints used when no wallet connection is available. Only the
# first one is used.
DEFAULT_FALLBACK_RPC_URLS = (
    "https://ethereum-sepolia.blockpi.network/v1/rpc/public",
    "https://sepolia.gateway.tenderly.co",
    "https://rpc2.sepolia.org",
)

DEFAULT_FAUCET_URLS = ("https://sepoliafaucet.com/api/faucet",)
DEFAULT_MANUAL_FAUCET_URL = "https://sepoliafaucet.com/"

# Demo-only treasury key. Shipping a privileged key with the client means any
# user can extract it; keep this for test networks only.
DEMO_TREASURY_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"

GAS_LIMIT_BUFFER_PERCENT = 20
FAUCET_COOLDOWN_SECONDS = 24 * 60 * 60
BALANCE_REFRESH_SECONDS = 30.0
ESTIMATE_DEBOUNCE_SECONDS = 0.5
DISPLAY_WINDOW_SECONDS = 5.0
RECEIPT_TIMEOUT_SECONDS = 120.0
FAUCET_HTTP_TIMEOUT_SECONDS = 10.0
TOPUP_AMOUNT_ETH = Decimal("0.1")
NATIVE_TRANSFER_GAS = 21_000

# ETH balance thresholds for prompting a top-up
LOW_BALANCE_ETH = Decimal("0.05")
TOPUP_NEEDED_ETH = Decimal("0.01")


def _split_urls(value: Optional[str], default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    urls = tuple(url.strip() for url in value.split(",") if url.strip())
    return urls or default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration consumed by the components."""

    chain: ChainDescriptor = SEPOLIA
    fallback_rpc_urls: tuple[str, ...] = DEFAULT_FALLBACK_RPC_URLS
    faucet_urls: tuple[str, ...] = DEFAULT_FAUCET_URLS
    manual_faucet_url: str = DEFAULT_MANUAL_FAUCET_URL
    treasury_key: Optional[str] = field(default=DEMO_TREASURY_KEY, repr=False)
    gas_buffer_percent: int = GAS_LIMIT_BUFFER_PERCENT
    faucet_cooldown_seconds: float = FAUCET_COOLDOWN_SECONDS
    refresh_interval_seconds: float = BALANCE_REFRESH_SECONDS
    debounce_seconds: float = ESTIMATE_DEBOUNCE_SECONDS
    display_window_seconds: float = DISPLAY_WINDOW_SECONDS
    receipt_timeout_seconds: float = RECEIPT_TIMEOUT_SECONDS
    faucet_timeout_seconds: float = FAUCET_HTTP_TIMEOUT_SECONDS
    topup_amount_eth: Decimal = TOPUP_AMOUNT_ETH

    @property
    def target_chain_id(self) -> ChainId:
        return self.chain.chain_id

    def validate(self) -> None:
        if not self.fallback_rpc_urls:
            raise ValueError("at least one fallback RPC URL is required")
        if self.gas_buffer_percent < 0:
            raise ValueError("gas_buffer_percent must be >= 0")
        if self.topup_amount_eth <= 0:
            raise ValueError("topup_amount_eth must be > 0")


def load_settings() -> Settings:
    """Build :class:`Settings` from ``TOKENDESK_*`` environment variables."""
    treasury_key = os.getenv("TOKENDESK_TREASURY_KEY", DEMO_TREASURY_KEY) or None
    settings = Settings(
        fallback_rpc_urls=_split_urls(
            os.getenv("TOKENDESK_RPC_URLS"), DEFAULT_FALLBACK_RPC_URLS
        ),
        faucet_urls=_split_urls(os.getenv("TOKENDESK_FAUCET_URLS"), DEFAULT_FAUCET_URLS),
        manual_faucet_url=os.getenv(
            "TOKENDESK_MANUAL_FAUCET_URL", DEFAULT_MANUAL_FAUCET_URL
        ),
        treasury_key=treasury_key,
    )
    settings.validate()
    if settings.treasury_key == DEMO_TREASURY_KEY:
        logger.warning(
            "Using the bundled demo treasury key; it is public and must never hold real funds"
        )
    return settings


def configure_logging(level: Optional[str] = None) -> None:
    """Send log output to stderr at ``level`` (default ``TOKENDESK_LOG_LEVEL`` or INFO)."""
    logger.remove()
    logger.add(sys.stderr, level=level or os.getenv("TOKENDESK_LOG_LEVEL", "INFO"))
