"""Token and native balance reads with periodic refresh."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from eth_utils import from_wei
from loguru import logger

from .config import BALANCE_REFRESH_SECONDS
from .models import TokenBalance, TokenDescriptor
from .provider import ProviderResolver
from .scheduling import PeriodicTask
from .tokens import TokenRegistry, get_token_contract
from .types import from_base_units


class BalanceReader:
    """Read balances through the user's connection or the fallback endpoint."""

    def __init__(self, resolver: ProviderResolver, registry: Optional[TokenRegistry] = None):
        self.resolver = resolver
        self.registry = registry if registry is not None else TokenRegistry()

    async def _token_balance(self, w3, token: TokenDescriptor, address: str) -> TokenBalance:
        try:
            contract = get_token_contract(w3, token.contract_address)
            raw = await contract.functions.balanceOf(address).call()
        except Exception as e:
            logger.warning(f"{token.symbol} balance unavailable: {e}")
            return TokenBalance(token=token, balance=Decimal(0), available=False)
        return TokenBalance(token=token, balance=from_base_units(raw, token.decimals))

    async def fetch(self, address: str, connection=None) -> list[TokenBalance]:
        """Read every registered token concurrently; a failing token is marked unavailable."""
        w3 = self.resolver.resolve(connection)
        return list(
            await asyncio.gather(
                *(self._token_balance(w3, token, address) for token in self.registry)
            )
        )

    async def native_balance(self, address: str, connection=None) -> Decimal:
        w3 = self.resolver.resolve(connection)
        wei = await w3.eth.get_balance(address)
        return Decimal(str(from_wei(wei, "ether")))


class BalanceRefresher:
    """Keep a balance snapshot for one address fresh every ``interval`` seconds."""

    def __init__(
        self,
        reader: BalanceReader,
        interval: float = BALANCE_REFRESH_SECONDS,
        on_update: Optional[Callable[[list[TokenBalance]], None]] = None,
    ):
        self.reader = reader
        self.on_update = on_update
        self.address: Optional[str] = None
        self.connection = None
        self.balances: list[TokenBalance] = []
        self.last_updated: Optional[datetime] = None
        self.loading = False
        self._task = PeriodicTask(interval, self.refresh, name="balances")

    @property
    def running(self) -> bool:
        return self._task.running

    def track(self, address: Optional[str], connection=None) -> None:
        """Switch the tracked address; ``None`` clears the snapshot."""
        self.address = address
        self.connection = connection
        if address is None:
            self.balances = []
            self.last_updated = None

    async def refresh(self) -> list[TokenBalance]:
        if self.address is None:
            return self.balances
        self.loading = True
        try:
            self.balances = await self.reader.fetch(self.address, self.connection)
            self.last_updated = datetime.now(timezone.utc)
        finally:
            self.loading = False
        if self.on_update is not None:
            self.on_update(self.balances)
        return self.balances

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()
