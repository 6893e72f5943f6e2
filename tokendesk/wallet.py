"""Wallet provider abstraction.

A wallet is anything that answers EIP-1193 style requests
(``await wallet.request("eth_chainId")``) and emits ``accountsChanged`` /
``chainChanged`` notifications. Two pieces live here:

* :class:`WalletBridgeProvider` plugs a wallet into web3.py so contract calls,
  gas estimates and ``eth_sendTransaction`` go through the wallet, which owns
  the signing key.
* :class:`LocalWallet` is a concrete wallet backed by an ``eth_account`` key and
  an upstream JSON-RPC node. It signs transactions locally with legacy gas
  pricing and emits the same events a browser wallet would.
"""

import inspect
import itertools
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger
from web3 import AsyncWeb3
from web3.providers.async_base import AsyncBaseProvider

from .builder import LegacyTransactionBuilder
from .errors import (
    INTERNAL_RPC_ERROR_CODE,
    UNRECOGNIZED_CHAIN_CODE,
    USER_REJECTED_CODE,
    ProviderRpcError,
    error_code,
    error_message,
)
from .types import ChainId, ChainIdLike, as_chain_id, to_hex_hash

ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"

WalletEventHandler = Callable[[Any], Union[Awaitable[None], None]]


@runtime_checkable
class WalletProvider(Protocol):
    """The surface every wallet implementation exposes."""

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        ...

    def on(self, event: str, handler: WalletEventHandler) -> None:
        ...

    def remove_listener(self, event: str, handler: WalletEventHandler) -> None:
        ...


class EventEmitter:
    """Minimal listener registry shared by wallet implementations."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[WalletEventHandler]] = {}

    def on(self, event: str, handler: WalletEventHandler) -> None:
        self._listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: WalletEventHandler) -> None:
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    async def emit(self, event: str, payload: Any) -> None:
        """Call every handler for ``event`` in registration order."""
        for handler in list(self._listeners.get(event, [])):
            result = handler(payload)
            if inspect.isawaitable(result):
                await result


class WalletBridgeProvider(AsyncBaseProvider):
    """web3.py provider that forwards every JSON-RPC call to a wallet."""

    def __init__(self, wallet: WalletProvider) -> None:
        super().__init__()
        self.wallet = wallet
        self._ids = itertools.count(1)

    async def make_request(self, method, params) -> dict:
        request_id = next(self._ids)
        try:
            result = await self.wallet.request(str(method), list(params or []))
        except ProviderRpcError as exc:
            error = {"code": exc.code, "message": exc.message}
            if exc.data is not None:
                error["data"] = exc.data
            return {"jsonrpc": "2.0", "id": request_id, "error": error}
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def is_connected(self, show_traceback: bool = False) -> bool:
        try:
            await self.wallet.request("eth_chainId")
        except Exception:
            if show_traceback:
                raise
            return False
        return True


def connect_wallet(wallet: WalletProvider) -> AsyncWeb3:
    """Return a signing web3 connection bound to ``wallet``."""
    return AsyncWeb3(WalletBridgeProvider(wallet))


class LocalWallet(EventEmitter):
    """
    Wallet backed by a local private key and an upstream RPC node.

    Features:
    - Account authorization (``eth_requestAccounts``) with optional refusal
    - Known-chain registry; unknown chains fail with code 4902 until added
    - Local signing of ``eth_sendTransaction`` using legacy gas pricing
    - ``accountsChanged`` / ``chainChanged`` notifications on lock and switch
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: str,
        chain_id: ChainIdLike,
        *,
        approve_requests: bool = True,
        upstream_factory: Optional[Callable[[str], AsyncWeb3]] = None,
    ) -> None:
        super().__init__()
        self.account: LocalAccount = Account.from_key(private_key)
        self.approve_requests = approve_requests
        self._authorized = False
        self._upstream_factory = upstream_factory or _http_web3
        self._rpc_urls: dict[ChainId, str] = {as_chain_id(chain_id): rpc_url}
        self._upstreams: dict[ChainId, AsyncWeb3] = {}
        self._chain_id = as_chain_id(chain_id)

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def chain_id(self) -> ChainId:
        return self._chain_id

    @property
    def is_authorized(self) -> bool:
        return self._authorized

    def _upstream(self) -> AsyncWeb3:
        w3 = self._upstreams.get(self._chain_id)
        if w3 is None:
            w3 = self._upstream_factory(self._rpc_urls[self._chain_id])
            self._upstreams[self._chain_id] = w3
        return w3

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        params = params or []
        handler = self._handlers().get(method)
        if handler is not None:
            return await handler(params)
        return await self._forward(method, params)

    def _handlers(self) -> dict[str, Callable[[list], Awaitable[Any]]]:
        return {
            "eth_requestAccounts": self._request_accounts,
            "eth_accounts": self._accounts,
            "eth_chainId": self._get_chain_id,
            "wallet_switchEthereumChain": self._switch_chain,
            "wallet_addEthereumChain": self._add_chain,
            "eth_sendTransaction": self._send_transaction,
        }

    async def _request_accounts(self, params: list) -> list[str]:
        if not self.approve_requests:
            raise ProviderRpcError(USER_REJECTED_CODE, "User rejected the request.")
        if not self._authorized:
            self._authorized = True
            logger.debug(f"Wallet authorized {self.address}")
        return [self.address]

    async def _accounts(self, params: list) -> list[str]:
        return [self.address] if self._authorized else []

    async def _get_chain_id(self, params: list) -> str:
        return self._chain_id

    async def _switch_chain(self, params: list) -> None:
        if not self.approve_requests:
            raise ProviderRpcError(USER_REJECTED_CODE, "User rejected the request.")
        chain_id = as_chain_id(params[0]["chainId"])
        if chain_id not in self._rpc_urls:
            raise ProviderRpcError(
                UNRECOGNIZED_CHAIN_CODE,
                f"Unrecognized chain ID {chain_id}. Try adding the chain first.",
            )
        await self.switch_chain(chain_id)

    async def _add_chain(self, params: list) -> None:
        if not self.approve_requests:
            raise ProviderRpcError(USER_REJECTED_CODE, "User rejected the request.")
        descriptor = params[0]
        chain_id = as_chain_id(descriptor["chainId"])
        rpc_urls = descriptor.get("rpcUrls") or []
        if not rpc_urls:
            raise ProviderRpcError(INTERNAL_RPC_ERROR_CODE, "rpcUrls must not be empty")
        self.add_chain(chain_id, rpc_urls[0])
        await self.switch_chain(chain_id)

    async def _send_transaction(self, params: list) -> str:
        if not self._authorized:
            raise ProviderRpcError(4100, "The requested account has not been authorized.")
        if not self.approve_requests:
            raise ProviderRpcError(USER_REJECTED_CODE, "User denied transaction signature.")

        request = dict(params[0])
        w3 = self._upstream()
        if request.get("nonce") is None:
            request["nonce"] = await w3.eth.get_transaction_count(self.address, "pending")
        if request.get("gasPrice") is None:
            request["gasPrice"] = await w3.eth.gas_price
        if request.get("gas") is None:
            request["gas"] = await w3.eth.estimate_gas(
                {k: v for k, v in request.items() if k in ("from", "to", "value", "data")}
            )

        tx = LegacyTransactionBuilder.from_request(request, self._chain_id).build()
        signed = self.account.sign_transaction(tx)
        tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash_hex = to_hex_hash(tx_hash)
        logger.debug(f"Wallet signed and sent {tx_hash_hex}")
        return tx_hash_hex

    async def _forward(self, method: str, params: list) -> Any:
        try:
            response = await self._upstream().provider.make_request(method, params)
        except Exception as exc:
            raise ProviderRpcError(
                error_code(exc) or INTERNAL_RPC_ERROR_CODE, error_message(exc)
            ) from exc
        error = response.get("error")
        if error:
            raise ProviderRpcError(
                error.get("code", INTERNAL_RPC_ERROR_CODE),
                error.get("message", "Internal JSON-RPC error"),
                error.get("data"),
            )
        return response.get("result")

    def add_chain(self, chain_id: ChainIdLike, rpc_url: str) -> None:
        self._rpc_urls[as_chain_id(chain_id)] = rpc_url

    async def switch_chain(self, chain_id: ChainIdLike) -> None:
        """Switch to a known chain and emit ``chainChanged`` if it changed."""
        chain_id = as_chain_id(chain_id)
        if chain_id not in self._rpc_urls:
            raise ProviderRpcError(UNRECOGNIZED_CHAIN_CODE, f"Unrecognized chain ID {chain_id}")
        if chain_id == self._chain_id:
            return
        self._chain_id = chain_id
        logger.info(f"Wallet switched to chain {chain_id}")
        await self.emit(CHAIN_CHANGED, chain_id)

    async def lock(self) -> None:
        """Revoke authorization, as a user locking the wallet would."""
        self._authorized = False
        await self.emit(ACCOUNTS_CHANGED, [])

    async def unlock(self) -> None:
        self._authorized = True
        await self.emit(ACCOUNTS_CHANGED, [self.address])


def _http_web3(rpc_url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
