"""Error taxonomy and normalization.

Wallets, nodes and HTTP faucets fail in many shapes: EIP-1193 errors with
numeric codes, web3 exceptions carrying a JSON-RPC error payload, bare
``ValueError({"code": ..., "message": ...})`` from older providers, or plain
connection errors. :func:`normalize_error` maps all of them onto a small closed
set of :class:`ErrorKind` values so nothing untyped reaches the rest of the
package.

Classification beyond the structured codes is substring based on the message
text. It is best effort, not guaranteed correct.
"""

import asyncio
from enum import Enum
from typing import Any, Optional

# EIP-1193 / JSON-RPC error codes
USER_REJECTED_CODE = 4001
UNRECOGNIZED_CHAIN_CODE = 4902
INTERNAL_RPC_ERROR_CODE = -32603


class ErrorKind(str, Enum):
    """Closed set of failure categories surfaced to callers."""

    PROVIDER_MISSING = "provider_missing"
    NO_ACCOUNTS = "no_accounts"
    UNSUPPORTED_NETWORK = "unsupported_network"
    USER_REJECTED = "user_rejected"
    RPC_FAULT = "rpc_fault"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    GAS_ESTIMATION_FAILED = "gas_estimation_failed"
    UNSUPPORTED_TOKEN = "unsupported_token"
    TREASURY_INSUFFICIENT_FUNDS = "treasury_insufficient_funds"
    NETWORK_FAILURE = "network_failure"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"


class TokenDeskError(Exception):
    """Base class for every normalized failure."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class ProviderMissingError(TokenDeskError):
    kind = ErrorKind.PROVIDER_MISSING

    def __init__(self, message: str = "Wallet not found. Please install a wallet."):
        super().__init__(message)


class NoAccountsError(TokenDeskError):
    kind = ErrorKind.NO_ACCOUNTS

    def __init__(self, message: str = "No accounts found. Please unlock your wallet."):
        super().__init__(message)


class UnsupportedNetworkError(TokenDeskError):
    kind = ErrorKind.UNSUPPORTED_NETWORK


class SwitchInProgressError(UnsupportedNetworkError):
    """A network switch was requested while another one is outstanding."""

    def __init__(self, message: str = "A network switch is already in progress"):
        super().__init__(message)


class UnsupportedTokenError(TokenDeskError):
    kind = ErrorKind.UNSUPPORTED_TOKEN

    def __init__(self, symbol: str):
        super().__init__(f"Token {symbol} not supported")
        self.symbol = symbol


class InsufficientBalanceError(TokenDeskError):
    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, message: str = "Insufficient token balance"):
        super().__init__(message)


class TreasuryInsufficientFundsError(TokenDeskError):
    kind = ErrorKind.TREASURY_INSUFFICIENT_FUNDS


class ValidationError(TokenDeskError):
    """A request failed local validation; ``field`` names the offending input."""

    kind = ErrorKind.INVALID_REQUEST

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class ProviderRpcError(Exception):
    """EIP-1193 style error raised by a wallet provider."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def __repr__(self) -> str:
        return f"ProviderRpcError(code={self.code}, message={self.message!r})"


def error_code(exc: BaseException) -> Optional[int]:
    """Dig a numeric JSON-RPC error code out of an exception, if it carries one."""
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code

    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), int):
            return error["code"]

    if exc.args and isinstance(exc.args[0], dict):
        code = exc.args[0].get("code")
        if isinstance(code, int):
            return code
    return None


def error_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    if exc.args and isinstance(exc.args[0], dict):
        message = exc.args[0].get("message")
        if isinstance(message, str):
            return message
    return str(exc)


def normalize_error(exc: BaseException) -> TokenDeskError:
    """Map any failure onto a :class:`TokenDeskError` with a human message."""
    if isinstance(exc, TokenDeskError):
        return exc

    code = error_code(exc)
    if code == USER_REJECTED_CODE:
        return TokenDeskError("Transaction rejected by user", ErrorKind.USER_REJECTED)
    if code == INTERNAL_RPC_ERROR_CODE:
        return TokenDeskError("Internal JSON-RPC error", ErrorKind.RPC_FAULT)

    message = error_message(exc)
    if "insufficient funds" in message:
        return TokenDeskError(
            "Insufficient funds for transaction", ErrorKind.INSUFFICIENT_FUNDS
        )
    if "gas" in message:
        return TokenDeskError(
            "Gas estimation failed - check your balance",
            ErrorKind.GAS_ESTIMATION_FAILED,
        )
    if "network" in message or isinstance(
        exc, (ConnectionError, asyncio.TimeoutError)
    ):
        return TokenDeskError(
            "Network connection failed - please try again", ErrorKind.NETWORK_FAILURE
        )
    return TokenDeskError(message or "Unknown error occurred", ErrorKind.UNKNOWN)


def describe_error(exc: BaseException) -> str:
    """Human-readable message for any failure."""
    return normalize_error(exc).message
