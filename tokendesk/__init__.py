"""
TokenDesk - wallet dashboard core for ERC-20 test tokens

Wallet session management, single-network enforcement, gas-estimated token
transfers and automated gas top-ups on top of web3.py.
"""

from .app import TokenDesk
from .config import SEPOLIA, Settings, configure_logging, load_settings
from .errors import ErrorKind, ProviderRpcError, TokenDeskError, normalize_error
from .models import (
    ConnectionState,
    Session,
    TransactionState,
    TransactionStatus,
    TransferRequest,
)
from .wallet import LocalWallet, WalletProvider

__version__ = "0.1.0"

__all__ = [
    "TokenDesk",
    "LocalWallet",
    "WalletProvider",
    "Settings",
    "SEPOLIA",
    "load_settings",
    "configure_logging",
    "TokenDeskError",
    "ProviderRpcError",
    "ErrorKind",
    "normalize_error",
    "ConnectionState",
    "Session",
    "TransactionState",
    "TransactionStatus",
    "TransferRequest",
]
