"""ERC-20 transfers with gas estimation and a four-state lifecycle.

IDLE -> PENDING -> SUCCESS | ERROR, and back to IDLE once the display window
(5 seconds by default) has passed.

Submission safety:
1. Request validation (address format, positive amount, known token)
2. On-chain decimals lookup before converting the amount
3. Token balance check before any gas call
4. Gas estimate with a 20% buffer on the limit
5. Legacy gasPrice pricing taken from the node
6. Receipt wait; only status 1 counts as success
"""

import asyncio
from typing import Callable, Optional

from eth_utils import to_checksum_address
from loguru import logger

from .config import (
    DISPLAY_WINDOW_SECONDS,
    ESTIMATE_DEBOUNCE_SECONDS,
    GAS_LIMIT_BUFFER_PERCENT,
    RECEIPT_TIMEOUT_SECONDS,
)
from .errors import (
    InsufficientBalanceError,
    NoAccountsError,
    TokenDeskError,
    ValidationError,
    describe_error,
    normalize_error,
)
from .history import TransactionHistory
from .models import (
    GasEstimate,
    RecordStatus,
    TransactionRecord,
    TransactionState,
    TransactionStatus,
    TransferRequest,
)
from .provider import ProviderResolver
from .scheduling import Debouncer, DisplayTimer
from .tokens import TokenRegistry, get_token_contract
from .types import to_base_units, to_hex_hash

TransactionObserver = Callable[[TransactionState], None]


def buffered_gas_limit(estimate: int, buffer_percent: int = GAS_LIMIT_BUFFER_PERCENT) -> int:
    """Return ``ceil(estimate * (100 + buffer_percent) / 100)`` using integer math."""
    return -(-estimate * (100 + buffer_percent) // 100)


class TransferOrchestrator:
    """Estimate and submit token transfers, tracking one transaction at a time."""

    def __init__(
        self,
        registry: Optional[TokenRegistry] = None,
        history: Optional[TransactionHistory] = None,
        resolver: Optional[ProviderResolver] = None,
        gas_buffer_percent: int = GAS_LIMIT_BUFFER_PERCENT,
        receipt_timeout: float = RECEIPT_TIMEOUT_SECONDS,
        display_window: float = DISPLAY_WINDOW_SECONDS,
    ):
        self.registry = registry if registry is not None else TokenRegistry()
        self.history = history if history is not None else TransactionHistory()
        self.resolver = resolver
        self.gas_buffer_percent = gas_buffer_percent
        self.receipt_timeout = receipt_timeout
        self._state = TransactionState()
        self._observers: list[TransactionObserver] = []
        self._reset_timer = DisplayTimer(display_window, self.reset_transaction)
        self._closed = False

    @property
    def transaction(self) -> TransactionState:
        return self._state

    def subscribe(self, observer: TransactionObserver) -> Callable[[], None]:
        self._observers.append(observer)
        return lambda: self._observers.remove(observer) if observer in self._observers else None

    def _set_state(self, state: TransactionState) -> None:
        if self._closed:
            return
        self._state = state
        for observer in list(self._observers):
            observer(state)

    def buffered_gas_limit(self, estimate: int) -> int:
        return buffered_gas_limit(estimate, self.gas_buffer_percent)

    async def _signer(self, connection) -> str:
        accounts = await connection.eth.accounts
        if not accounts:
            raise NoAccountsError()
        return accounts[0]

    async def _gas_price(self, connection) -> int:
        pricing = self.resolver.resolve(connection) if self.resolver else connection
        return await pricing.eth.gas_price or 0

    @staticmethod
    def _base_units(request: TransferRequest, decimals: int) -> int:
        try:
            return to_base_units(request.amount, decimals)
        except ValueError as e:
            raise ValidationError("amount", str(e)) from e

    async def estimate_gas(self, request: TransferRequest, connection) -> GasEstimate:
        """Estimate gas for ``request`` without sending anything.

        Only read calls are made, so this is safe to repeat.

        Raises:
            TokenDeskError: normalized failure (UnsupportedToken, GasEstimationFailed, ...)
        """
        try:
            token = self.registry.get(request.token)
            request.validate()
            signer = await self._signer(connection)
            contract = get_token_contract(connection, token.contract_address)
            decimals = await contract.functions.decimals().call()
            amount = self._base_units(request, decimals)

            gas_limit = await contract.functions.transfer(
                to_checksum_address(request.recipient), amount
            ).estimate_gas({"from": signer})
            gas_price = await self._gas_price(connection)
            return GasEstimate(gas_limit=gas_limit, gas_price=gas_price)
        except Exception as e:
            error = normalize_error(e)
            if error is e:
                raise
            raise error from e

    async def send_token(self, request: TransferRequest, connection) -> TransactionState:
        """Submit ``request`` and wait for its receipt.

        Never raises; the returned (and published) state is SUCCESS with the
        transaction hash or ERROR with a human-readable message.
        """
        self._reset_timer.cancel()
        self._set_state(TransactionState(status=TransactionStatus.PENDING))
        try:
            tx_hash = await self._submit(request, connection)
            state = TransactionState(status=TransactionStatus.SUCCESS, hash=tx_hash)
            logger.info(f"Transfer confirmed: {tx_hash}")
        except Exception as e:
            message = describe_error(e)
            logger.error(f"Transfer of {request.amount} {request.token} failed: {message}")
            state = TransactionState(status=TransactionStatus.ERROR, error=message)

        self._set_state(state)
        if not self._closed:
            self._reset_timer.arm()
        return state

    async def _submit(self, request: TransferRequest, connection) -> str:
        request.validate()
        token = self.registry.get(request.token)

        signer = await self._signer(connection)
        contract = get_token_contract(connection, token.contract_address)
        decimals = await contract.functions.decimals().call()
        amount = self._base_units(request, decimals)

        balance = await contract.functions.balanceOf(signer).call()
        if balance < amount:
            raise InsufficientBalanceError()

        transfer = contract.functions.transfer(to_checksum_address(request.recipient), amount)
        estimate = await transfer.estimate_gas({"from": signer})
        gas_price = await self._gas_price(connection)
        gas_limit = self.buffered_gas_limit(estimate)

        sent = await transfer.transact({"from": signer, "gas": gas_limit, "gasPrice": gas_price})
        tx_hash = to_hex_hash(sent)
        logger.info(
            f"Transfer sent: {request.amount} {token.symbol} -> {request.recipient} "
            f"(gas {gas_limit} @ {gas_price} wei) {tx_hash}"
        )
        self.history.append(
            TransactionRecord(
                hash=tx_hash,
                status=RecordStatus.PENDING,
                recipient=request.recipient,
                amount=request.amount,
                token=token.symbol,
            )
        )

        try:
            receipt = await connection.eth.wait_for_transaction_receipt(
                sent, timeout=self.receipt_timeout
            )
        except Exception:
            self.history.update_status(tx_hash, RecordStatus.FAILED)
            raise

        if receipt["status"] != 1:
            self.history.update_status(tx_hash, RecordStatus.FAILED)
            raise TokenDeskError("Transaction failed")
        self.history.update_status(tx_hash, RecordStatus.SUCCESS)
        return tx_hash

    def reset_transaction(self) -> None:
        self._reset_timer.cancel()
        self._set_state(TransactionState())

    def close(self) -> None:
        """Stop the auto-reset timer; later results no longer change state."""
        self._reset_timer.cancel()
        self._closed = True


class GasEstimator:
    """Debounced gas estimation for a form that changes as the user types.

    Every :meth:`update` supersedes the previous one; only the latest input's
    result is kept. A failed estimate hides the estimate instead of raising.
    """

    def __init__(
        self,
        orchestrator: TransferOrchestrator,
        delay: float = ESTIMATE_DEBOUNCE_SECONDS,
    ):
        self.orchestrator = orchestrator
        self.estimate: Optional[GasEstimate] = None
        self.estimating = False
        self._debouncer = Debouncer(delay, self._on_result, self._on_error)

    def update(
        self,
        request: TransferRequest,
        connection,
        wrong_network: bool = False,
    ) -> Optional[asyncio.Task]:
        if connection is None or wrong_network or not request.is_valid():
            self.clear()
            return None
        return self._debouncer.call(lambda: self._estimate(request, connection))

    async def _estimate(self, request: TransferRequest, connection) -> GasEstimate:
        self.estimating = True
        return await self.orchestrator.estimate_gas(request, connection)

    def _on_result(self, estimate: GasEstimate) -> None:
        self.estimating = False
        self.estimate = estimate

    def _on_error(self, error: BaseException) -> None:
        logger.debug(f"Gas estimate unavailable: {describe_error(error)}")
        self.estimating = False
        self.estimate = None

    def clear(self) -> None:
        self._debouncer.invalidate()
        self.estimating = False
        self.estimate = None
