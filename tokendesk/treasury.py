"""Privileged treasury signer used for automated gas top-ups.

DEMO ONLY. The treasury key ships with the client, so anyone running it can
extract the key and drain the account. Use it on test networks only and keep
the balance small.
"""

from decimal import Decimal
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import from_wei, to_wei
from loguru import logger
from web3 import AsyncWeb3

from .builder import LegacyTransactionBuilder
from .config import NATIVE_TRANSFER_GAS, RECEIPT_TIMEOUT_SECONDS
from .errors import TreasuryInsufficientFundsError
from .provider import ProviderResolver
from .types import to_hex_hash


class TreasuryWallet:
    """Send native currency from the treasury account."""

    def __init__(
        self,
        private_key: str,
        resolver: ProviderResolver,
        receipt_timeout: float = RECEIPT_TIMEOUT_SECONDS,
    ):
        self.account: LocalAccount = Account.from_key(private_key)
        self.resolver = resolver
        self.receipt_timeout = receipt_timeout

    @property
    def address(self) -> str:
        return self.account.address

    async def balance(self, connection: Optional[AsyncWeb3] = None) -> Decimal:
        """Treasury balance in ETH."""
        w3 = self.resolver.resolve(connection)
        wei = await w3.eth.get_balance(self.address)
        return Decimal(str(from_wei(wei, "ether")))

    async def send(
        self,
        to: str,
        amount_eth: Decimal,
        connection: Optional[AsyncWeb3] = None,
    ) -> tuple[str, bool]:
        """
        Transfer ``amount_eth`` to ``to`` and wait for the receipt.

        Returns:
            ``(tx_hash, success)`` where success means receipt status 1

        Raises:
            TreasuryInsufficientFundsError: balance below the amount; nothing is sent
        """
        w3 = self.resolver.resolve(connection)
        amount_wei = to_wei(amount_eth, "ether")

        balance_wei = await w3.eth.get_balance(self.address)
        if balance_wei < amount_wei:
            raise TreasuryInsufficientFundsError(
                f"Treasury insufficient funds. Has: {from_wei(balance_wei, 'ether')} ETH"
            )

        tx = (
            LegacyTransactionBuilder()
            .set_chain_id(await w3.eth.chain_id)
            .set_to(to)
            .set_value(amount_wei)
            .set_gas(NATIVE_TRANSFER_GAS)
            .set_gas_price(await w3.eth.gas_price)
            .set_nonce(await w3.eth.get_transaction_count(self.address, "pending"))
            .build()
        )
        signed = self.account.sign_transaction(tx)
        tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash_hex = to_hex_hash(tx_hash)
        logger.info(f"Treasury transaction sent: {tx_hash_hex}")

        receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        return tx_hash_hex, receipt["status"] == 1
