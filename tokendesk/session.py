"""Wallet connection lifecycle.

:class:`WalletSession` owns the :class:`~tokendesk.models.Session` value. Every
change, whether it comes from :meth:`WalletSession.connect`, from
:meth:`WalletSession.disconnect` or from a wallet notification, goes through
:meth:`WalletSession._transition`, so observers see one consistent sequence of
states.

A chain change invalidates everything derived from the old chain (the session,
its connection and the cached fallback RPC connection) and then re-runs the
same probe used at start-up. A browser would reload the page at this point.
"""

from typing import Any, Callable, Optional

from loguru import logger
from web3 import AsyncWeb3

from .errors import (
    UNRECOGNIZED_CHAIN_CODE,
    USER_REJECTED_CODE,
    NoAccountsError,
    ProviderMissingError,
    TokenDeskError,
    UnsupportedNetworkError,
    error_code,
    normalize_error,
)
from .models import ConnectionState, Session
from .network import NetworkGuard
from .provider import ProviderResolver
from .types import as_address
from .wallet import ACCOUNTS_CHANGED, CHAIN_CHANGED, WalletProvider, connect_wallet

SessionObserver = Callable[[Session], None]


class WalletSession:
    """Connection state machine: DISCONNECTED -> CONNECTING -> CONNECTED."""

    def __init__(
        self,
        wallet: Optional[WalletProvider],
        network: NetworkGuard,
        resolver: Optional[ProviderResolver] = None,
        connection_factory: Callable[[WalletProvider], AsyncWeb3] = connect_wallet,
    ):
        self.wallet = wallet
        self.network = network
        self.resolver = resolver
        self._connection_factory = connection_factory
        self._session = Session()
        self._observers: list[SessionObserver] = []
        self._initialized = False
        self._disposed = False

    @property
    def session(self) -> Session:
        return self._session

    @property
    def address(self):
        return self._session.address

    @property
    def connection(self) -> Optional[Any]:
        return self._session.connection

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    @property
    def last_error(self) -> Optional[TokenDeskError]:
        return self._session.last_error

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Register ``observer`` for every state change; returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _transition(self, session: Session) -> Session:
        if self._disposed:
            logger.debug("Ignoring session update after dispose")
            return self._session
        previous = self._session
        self._session = session
        if previous.connection_state != session.connection_state:
            logger.info(
                f"Wallet session {previous.connection_state.value} -> "
                f"{session.connection_state.value}"
            )
        for observer in list(self._observers):
            observer(session)
        return session

    def _connected(self, address: str) -> Session:
        return self._transition(
            Session.connected(as_address(address), self._connection_factory(self.wallet))
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def initialize(self) -> Session:
        """Subscribe to wallet notifications and adopt an existing authorization."""
        if self._initialized or self._disposed:
            return self._session
        self._initialized = True
        if self.wallet is None:
            logger.debug("No wallet present, session stays disconnected")
            return self._session

        self.wallet.on(ACCOUNTS_CHANGED, self._on_accounts_changed)
        self.wallet.on(CHAIN_CHANGED, self._on_chain_changed)
        await self._probe()
        return self._session

    async def dispose(self) -> None:
        if self._disposed:
            return
        if self.wallet is not None and self._initialized:
            self.wallet.remove_listener(ACCOUNTS_CHANGED, self._on_accounts_changed)
            self.wallet.remove_listener(CHAIN_CHANGED, self._on_chain_changed)
        self._session = Session()
        self._observers.clear()
        self._disposed = True
        logger.debug("Wallet session disposed")

    async def _probe(self) -> None:
        try:
            accounts = await self.wallet.request("eth_accounts")
            if not accounts:
                return
            state = self.network.on_chain_changed(await self.network.current_chain_id())
            if state.is_supported:
                self._connected(accounts[0])
        except Exception as e:
            logger.warning(f"Could not detect an existing wallet connection: {e}")

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------
    async def connect(self) -> Session:
        """Request account access, switching network if needed.

        Never raises: on failure the session is DISCONNECTED and
        ``last_error`` holds the normalized error.
        """
        if self._session.is_connecting:
            return self._session
        try:
            if self.wallet is None:
                raise ProviderMissingError()

            self._transition(Session(connection_state=ConnectionState.CONNECTING))
            accounts = await self.wallet.request("eth_requestAccounts")
            if not accounts:
                raise NoAccountsError()

            chain_id = await self.network.current_chain_id()
            if not self.network.on_chain_changed(chain_id).is_supported:
                await self._switch_for_connect()
                self.network.on_chain_changed(self.network.target_chain_id)

            return self._connected(accounts[0])
        except Exception as e:
            error = normalize_error(e)
            logger.warning(f"Wallet connection failed: {error.message}")
            return self._transition(Session.disconnected(error))

    async def _switch_for_connect(self) -> None:
        try:
            await self.network.switch_network()
        except Exception as e:
            code = error_code(e)
            if code == USER_REJECTED_CODE or code == UNRECOGNIZED_CHAIN_CODE:
                raise
            raise UnsupportedNetworkError(
                f"Please manually switch to {self.network.chain.chain_name} in your wallet"
            ) from e

    def disconnect(self) -> Session:
        """Forget the connection. Injected wallets have no revoke call, so
        nothing is sent to the wallet."""
        return self._transition(Session())

    def clear_error(self) -> Session:
        if self._session.last_error is None:
            return self._session
        return self._transition(
            Session(
                address=self._session.address,
                connection_state=self._session.connection_state,
                connection=self._session.connection,
            )
        )

    # ------------------------------------------------------------------
    # Wallet notifications
    # ------------------------------------------------------------------
    async def _on_accounts_changed(self, accounts: list) -> None:
        if not accounts:
            # The user locked or disconnected the wallet; not an error.
            self._transition(Session())
            return
        try:
            state = self.network.on_chain_changed(await self.network.current_chain_id())
        except Exception as e:
            self._transition(Session.disconnected(normalize_error(e)))
            return
        if state.is_supported:
            self._connected(accounts[0])
        else:
            self._transition(
                Session.disconnected(
                    UnsupportedNetworkError(
                        f"Wrong network - please switch to {self.network.chain.chain_name}"
                    )
                )
            )

    async def _on_chain_changed(self, chain_id: str) -> None:
        self.network.on_chain_changed(chain_id)
        if self._session.is_connecting:
            # connect() is mid-flight and owns the next transition
            return
        logger.info(f"Chain changed to {chain_id}, re-initializing session")
        if self.resolver is not None:
            self.resolver.reset()
        self._transition(Session())
        await self._probe()
