"""Strongly-typed data models for wallet sessions, transfers and top-ups."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from .errors import TokenDeskError, ValidationError
from .types import Address, ChainId, is_address, parse_amount


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class TransactionStatus(str, Enum):
    """Lifecycle of a submitted transfer as shown to the user."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class RecordStatus(str, Enum):
    """Status of an entry in the transaction history."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Session:
    """Wallet connection state owned by :class:`tokendesk.session.WalletSession`.

    ``connection`` is the signing web3 handle bound to the wallet; it is only
    present while connected.
    """

    address: Optional[Address] = None
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    last_error: Optional[TokenDeskError] = None
    connection: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        connected = self.connection_state == ConnectionState.CONNECTED
        if connected and self.address is None:
            raise ValueError("a connected session requires an address")
        if not connected and self.address is not None:
            raise ValueError("only a connected session may carry an address")

    @property
    def is_connected(self) -> bool:
        return self.connection_state == ConnectionState.CONNECTED

    @property
    def is_connecting(self) -> bool:
        return self.connection_state == ConnectionState.CONNECTING

    @classmethod
    def connected(cls, address: Address, connection: Any) -> "Session":
        return cls(
            address=address,
            connection_state=ConnectionState.CONNECTED,
            connection=connection,
        )

    @classmethod
    def disconnected(cls, error: Optional[TokenDeskError] = None) -> "Session":
        return cls(last_error=error)


@dataclass(frozen=True)
class NetworkState:
    chain_id: ChainId
    is_supported: bool


@dataclass(frozen=True)
class TokenDescriptor:
    """Static token metadata. ``decimals`` is the registry value; transfers
    re-read the on-chain value before converting amounts."""

    symbol: str
    name: str
    contract_address: Address
    decimals: int

    def validate(self) -> None:
        if not self.symbol:
            raise ValueError("token symbol must not be empty")
        if not is_address(self.contract_address):
            raise ValueError("token contract address must be a 20 byte hex address")
        if self.decimals < 0:
            raise ValueError("decimals must be >= 0")


@dataclass(frozen=True)
class TransferRequest:
    """A single token transfer as entered by the user.

    Values are kept as entered; :meth:`validate` checks them before any
    network call is made.
    """

    recipient: str
    amount: str
    token: str

    def errors(self) -> dict[str, str]:
        """Return every field error, keyed by field name."""
        found: dict[str, str] = {}
        if not is_address(self.recipient):
            found["recipient"] = "Invalid Ethereum address format"

        if not self.amount:
            found["amount"] = "Amount is required"
        else:
            try:
                amount = parse_amount(self.amount)
            except ValueError:
                amount = None
            if amount is None or amount <= 0:
                found["amount"] = "Amount must be a positive number"

        if not self.token:
            found["token"] = "Token is required"
        return found

    def validate(self) -> None:
        """Raise :class:`ValidationError` for the first invalid field."""
        for name, message in self.errors().items():
            raise ValidationError(name, message)

    def is_valid(self) -> bool:
        return not self.errors()

    @property
    def decimal_amount(self) -> Decimal:
        return parse_amount(self.amount)

    @classmethod
    def create(cls, recipient: str, amount: Any, token: str) -> "TransferRequest":
        """Create a TransferRequest, accepting numeric amounts."""
        return cls(
            recipient=recipient.strip(),
            amount=str(amount).strip(),
            token=token.strip(),
        )


@dataclass(frozen=True)
class GasEstimate:
    gas_limit: int
    gas_price: int

    @property
    def total_cost(self) -> int:
        return self.gas_limit * self.gas_price


@dataclass(frozen=True)
class TransactionRecord:
    """One submitted transfer in the user-visible history."""

    hash: str
    status: RecordStatus
    recipient: str
    amount: str
    token: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def with_status(self, status: RecordStatus) -> "TransactionRecord":
        return replace(self, status=status)

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "status": self.status.value,
            "to": self.recipient,
            "amount": self.amount,
            "token": self.token,
            "timestamp": int(self.created_at.timestamp() * 1000),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TransactionRecord":
        return cls(
            hash=data["hash"],
            status=RecordStatus(data["status"]),
            recipient=data["to"],
            amount=data["amount"],
            token=data["token"],
            created_at=datetime.fromtimestamp(data["timestamp"] / 1000, tz=timezone.utc),
        )


@dataclass(frozen=True)
class TransactionState:
    status: TransactionStatus = TransactionStatus.IDLE
    hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TransactionStatus.SUCCESS, TransactionStatus.ERROR)


@dataclass
class FaucetState:
    """Cooldown bookkeeping. In memory only: a restart forgets it."""

    last_request_at: Optional[datetime] = None


@dataclass(frozen=True)
class TopupResult:
    success: bool
    source: str
    hash: Optional[str] = None
    amount: Optional[str] = None
    message: Optional[str] = None
    manual_url: Optional[str] = None
    data: Any = field(default=None, repr=False)


@dataclass(frozen=True)
class TokenBalance:
    token: TokenDescriptor
    balance: Decimal
    available: bool = True

    def formatted(self, places: int = 4) -> str:
        return f"{self.balance:.{places}f}"


@dataclass(frozen=True)
class TokenFaucetResult:
    """Outcome of one token's faucet request."""

    token: str
    success: bool
    source: Optional[str] = None
    error: Optional[str] = None
