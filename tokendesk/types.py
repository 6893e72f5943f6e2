"""Type definitions and coercion helpers for wallet addresses, chain ids and amounts.

These converters are used by the dataclasses in :mod:`tokendesk.models` and by the
components that talk to the wallet, so every value crossing a component boundary
has one canonical shape.
"""

import re
from decimal import Decimal, InvalidOperation, localcontext
from typing import NewType, Union

from eth_utils import to_checksum_address

Address = NewType("Address", str)
ChainId = NewType("ChainId", str)

ChainIdLike = Union[int, str]

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_address(value: object) -> bool:
    """Return True for a 0x-prefixed, 40 hex digit string (any casing)."""
    return isinstance(value, str) and ADDRESS_PATTERN.match(value) is not None


def as_address(value: str) -> Address:
    """Convert a hex address string to its checksummed form.

    Raises ValueError for anything that is not 20 bytes of hex.
    """
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    if not is_address(value):
        raise ValueError(f"address must be 0x followed by 40 hex digits, got {value!r}")
    return Address(to_checksum_address(value))


def as_chain_id(value: ChainIdLike) -> ChainId:
    """Normalize a chain id to a lowercase 0x-prefixed hex string.

    Wallets report chain ids as hex strings ("0xaa36a7"), nodes as ints
    (11155111). Both compare equal after normalization.
    """
    if isinstance(value, bool):
        raise TypeError("expected int or str, got bool")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip().lower()
        if not text:
            raise ValueError("chain id must not be empty")
        try:
            number = int(text, 16) if text.startswith("0x") else int(text)
        except ValueError:
            raise ValueError(f"invalid chain id {value!r}") from None
    else:
        raise TypeError(f"expected int or str, got {type(value).__name__}")

    if number <= 0:
        raise ValueError("chain id must be > 0")
    return ChainId(hex(number))


def chain_id_to_int(value: ChainIdLike) -> int:
    return int(as_chain_id(value), 16)


def parse_amount(value: str) -> Decimal:
    """Parse a human-entered decimal amount string.

    Raises ValueError if the string is not a finite number.
    """
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        raise ValueError(f"invalid amount {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"invalid amount {value!r}")
    return amount


def to_base_units(amount: Union[str, Decimal], decimals: int) -> int:
    """Convert a human amount to the token's integer unit.

    "1.5" with 6 decimals becomes 1500000. More fractional digits than the
    token supports is an error rather than a silent truncation.
    """
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    value = parse_amount(amount) if isinstance(amount, str) else amount
    with localcontext() as ctx:
        ctx.prec = 999
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"amount {value} has more than {decimals} decimal places")
    return int(scaled)


def from_base_units(value: int, decimals: int) -> Decimal:
    """Convert an integer token amount to a human Decimal."""
    with localcontext() as ctx:
        ctx.prec = 999
        return Decimal(value).scaleb(-decimals)


def short_address(address: str) -> str:
    """Shorten an address for display: 0x1234...abcd."""
    return f"{address[:6]}...{address[-4:]}"


def to_hex_hash(value: Union[bytes, str]) -> str:
    """Render a transaction hash (bytes, HexBytes or str) as a 0x-prefixed hex string."""
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return "0x" + bytes(value).hex()
