"""Builder pattern for constructing legacy (gasPrice) transactions.

The test network is always driven with legacy pricing, so every transaction
this package signs goes through :class:`LegacyTransactionBuilder`.
"""

from dataclasses import dataclass
from typing import Optional

from eth_utils import to_checksum_address

from .config import NATIVE_TRANSFER_GAS
from .types import ChainIdLike, chain_id_to_int


@dataclass
class LegacyTransactionBuilder:
    """
    Fluent builder for unsigned legacy transaction dicts.

    Example:
        tx = (LegacyTransactionBuilder(chain_id=11155111)
            .set_to("0xRecipient...")
            .set_value(10**17)
            .set_gas_price(2_000_000_000)
            .set_nonce(4)
            .build())
    """

    chain_id: int = 1
    to: Optional[str] = None
    value: int = 0
    data: str = "0x"
    gas_limit: int = NATIVE_TRANSFER_GAS
    gas_price: int = 0
    nonce: int = 0

    def set_chain_id(self, chain_id: ChainIdLike) -> "LegacyTransactionBuilder":
        self.chain_id = chain_id_to_int(chain_id)
        return self

    def set_to(self, to: str) -> "LegacyTransactionBuilder":
        self.to = to_checksum_address(to)
        return self

    def set_value(self, value: int) -> "LegacyTransactionBuilder":
        self.value = value
        return self

    def set_data(self, data: str) -> "LegacyTransactionBuilder":
        self.data = data or "0x"
        return self

    def set_gas(self, gas_limit: int) -> "LegacyTransactionBuilder":
        """Set the gas limit."""
        self.gas_limit = gas_limit
        return self

    def set_gas_price(self, gas_price: int) -> "LegacyTransactionBuilder":
        self.gas_price = gas_price
        return self

    def set_nonce(self, nonce: int) -> "LegacyTransactionBuilder":
        self.nonce = nonce
        return self

    def validate(self) -> None:
        if self.chain_id <= 0:
            raise ValueError("chain_id must be > 0")
        if self.gas_limit <= 0:
            raise ValueError("gas_limit must be > 0")
        if self.gas_price < 0:
            raise ValueError("gas_price must be >= 0")
        if self.value < 0:
            raise ValueError("value must be >= 0")
        if self.nonce < 0:
            raise ValueError("nonce must be >= 0")
        if self.to is None and self.data in ("", "0x"):
            raise ValueError("a transaction without a recipient needs data")

    def build(self) -> dict:
        """
        Build and validate the transaction dict.

        Returns:
            A dict accepted by ``eth_account.Account.sign_transaction``

        Raises:
            ValueError: If validation fails
        """
        self.validate()
        tx = {
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "gas": self.gas_limit,
            "gasPrice": self.gas_price,
            "value": self.value,
            "data": self.data,
        }
        if self.to is not None:
            tx["to"] = self.to
        return tx

    @classmethod
    def from_request(cls, request: dict, chain_id: ChainIdLike) -> "LegacyTransactionBuilder":
        """Start from an ``eth_sendTransaction`` parameter object."""
        builder = cls().set_chain_id(chain_id)
        if request.get("to"):
            builder.set_to(request["to"])
        builder.set_value(_as_int(request.get("value", 0)))
        builder.set_data(request.get("data") or request.get("input") or "0x")
        if request.get("gas") is not None:
            builder.set_gas(_as_int(request["gas"]))
        if request.get("gasPrice") is not None:
            builder.set_gas_price(_as_int(request["gasPrice"]))
        if request.get("nonce") is not None:
            builder.set_nonce(_as_int(request["nonce"]))
        return builder


def _as_int(value) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)
