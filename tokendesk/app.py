"""The :class:`TokenDesk` facade: one object wiring every component together."""

import webbrowser
from decimal import Decimal
from typing import Any, Callable, Optional

from loguru import logger

from .balances import BalanceReader, BalanceRefresher
from .config import LOW_BALANCE_ETH, TOPUP_NEEDED_ETH, Settings
from .errors import ErrorKind, ProviderMissingError, TokenDeskError, UnsupportedNetworkError
from .faucet import FaucetEndpoint, PostJson, TreasuryFaucet
from .history import TransactionHistory
from .models import (
    GasEstimate,
    Session,
    TokenBalance,
    TokenFaucetResult,
    TopupResult,
    TransactionState,
    TransferRequest,
)
from .network import NetworkGuard
from .provider import ProviderResolver
from .session import WalletSession
from .tokens import TokenRegistry
from .transfer import GasEstimator, TransferOrchestrator
from .treasury import TreasuryWallet
from .wallet import WalletProvider, connect_wallet


class TokenDesk:
    """
    Wallet dashboard state and operations for a single test network.

    Example:
        desk = TokenDesk(LocalWallet(key, rpc_url, SEPOLIA.chain_id))
        await desk.start()
        await desk.connect()
        state = await desk.send_token(TransferRequest.create(to, "1.5", "USDC"))
        await desk.close()
    """

    def __init__(
        self,
        wallet: Optional[WalletProvider],
        settings: Optional[Settings] = None,
        *,
        resolver: Optional[ProviderResolver] = None,
        registry: Optional[TokenRegistry] = None,
        history: Optional[TransactionHistory] = None,
        connection_factory: Callable[[WalletProvider], Any] = connect_wallet,
        post_json: Optional[PostJson] = None,
        opener: Callable[[str], Any] = webbrowser.open,
    ):
        self.settings = settings or Settings()
        self.settings.validate()
        self.resolver = resolver or ProviderResolver(self.settings.fallback_rpc_urls)
        self.registry = registry if registry is not None else TokenRegistry()
        self.history = history if history is not None else TransactionHistory()

        self.network = NetworkGuard(wallet, self.settings.chain)
        self.session = WalletSession(wallet, self.network, self.resolver, connection_factory)
        self.transfers = TransferOrchestrator(
            registry=self.registry,
            history=self.history,
            resolver=self.resolver,
            gas_buffer_percent=self.settings.gas_buffer_percent,
            receipt_timeout=self.settings.receipt_timeout_seconds,
            display_window=self.settings.display_window_seconds,
        )
        self.estimator = GasEstimator(self.transfers, self.settings.debounce_seconds)

        treasury = None
        if self.settings.treasury_key:
            treasury = TreasuryWallet(
                self.settings.treasury_key,
                self.resolver,
                receipt_timeout=self.settings.receipt_timeout_seconds,
            )
        self.faucet = TreasuryFaucet(
            treasury=treasury,
            endpoints=[FaucetEndpoint.from_url(url) for url in self.settings.faucet_urls],
            manual_url=self.settings.manual_faucet_url,
            amount_eth=self.settings.topup_amount_eth,
            cooldown_seconds=self.settings.faucet_cooldown_seconds,
            http_timeout=self.settings.faucet_timeout_seconds,
            display_window=self.settings.display_window_seconds,
            post_json=post_json,
            opener=opener,
        )
        self.balances = BalanceRefresher(
            BalanceReader(self.resolver, self.registry),
            self.settings.refresh_interval_seconds,
        )
        self.session.subscribe(self._on_session)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def address(self) -> Optional[str]:
        return self.session.address

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    @property
    def last_error(self) -> Optional[TokenDeskError]:
        return self.session.last_error

    @property
    def is_wrong_network(self) -> bool:
        return self.network.is_wrong_network

    @property
    def transaction(self) -> TransactionState:
        return self.transfers.transaction

    def _on_session(self, session: Session) -> None:
        self.balances.track(session.address, session.connection)
        if not session.is_connected:
            self.estimator.clear()

    def _require_connection(self) -> Any:
        if not self.session.is_connected:
            raise ProviderMissingError("Wallet not connected")
        return self.session.connection

    def _require_network(self) -> None:
        if self.network.is_wrong_network:
            raise UnsupportedNetworkError(
                f"Wrong network - please switch to {self.settings.chain.chain_name}"
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Adopt an existing wallet authorization and start balance refresh."""
        await self.session.initialize()
        await self.network.check_network()
        self.balances.start()
        if self.session.is_connected:
            await self.balances.refresh()

    async def close(self) -> None:
        await self.balances.stop()
        self.estimator.clear()
        self.transfers.close()
        self.faucet.close()
        await self.session.dispose()
        logger.debug("TokenDesk closed")

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------
    async def connect(self) -> Session:
        session = await self.session.connect()
        if session.is_connected:
            await self.balances.refresh()
        return session

    def disconnect(self) -> Session:
        return self.session.disconnect()

    def clear_error(self) -> Session:
        return self.session.clear_error()

    async def switch_network(self) -> None:
        if self.network.wallet is None:
            raise ProviderMissingError()
        await self.network.switch_network()

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------
    async def estimate_gas(self, request: TransferRequest) -> GasEstimate:
        connection = self._require_connection()
        return await self.transfers.estimate_gas(request, connection)

    def update_estimate(self, request: TransferRequest):
        """Schedule a debounced estimate for the form's current values."""
        return self.estimator.update(
            request, self.session.connection, wrong_network=self.network.is_wrong_network
        )

    async def send_token(self, request: TransferRequest) -> TransactionState:
        connection = self._require_connection()
        self._require_network()
        state = await self.transfers.send_token(request, connection)
        if state.hash is not None:
            await self.balances.refresh()
        return state

    def reset_transaction(self) -> None:
        self.transfers.reset_transaction()

    def recent_transactions(self, limit: int = 5):
        return self.history.recent(limit)

    # ------------------------------------------------------------------
    # Balances and top-up
    # ------------------------------------------------------------------
    async def refresh_balances(self) -> list[TokenBalance]:
        return await self.balances.refresh()

    async def eth_balance(self) -> Decimal:
        self._require_connection()
        return await self.balances.reader.native_balance(self.address, self.session.connection)

    @staticmethod
    def needs_topup(eth_balance: Decimal) -> bool:
        return eth_balance < TOPUP_NEEDED_ETH

    @staticmethod
    def is_low_balance(eth_balance: Decimal) -> bool:
        return eth_balance < LOW_BALANCE_ETH

    def can_request(self) -> bool:
        return self.faucet.can_request()

    async def request_topup(self, address: Optional[str] = None) -> TopupResult:
        """Top up ``address`` (the connected account by default) with test ETH."""
        connection = self._require_connection()
        self._require_network()
        if not self.faucet.can_request():
            raise TokenDeskError(
                "Faucet cooldown active. Try again in 24 hours or use manual faucet.",
                ErrorKind.INVALID_REQUEST,
            )
        return await self.faucet.request_topup(address or self.address, connection)

    async def request_test_tokens(self) -> list[TokenFaucetResult]:
        self._require_connection()
        self._require_network()
        return await self.faucet.request_token_faucets(self.address)

    async def treasury_info(self) -> tuple[str, bool]:
        return await self.faucet.treasury_info(self.session.connection)
