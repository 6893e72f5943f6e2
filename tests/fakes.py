"""In-memory stand-ins for a browser wallet and an AsyncWeb3 connection."""

from typing import Any, Optional

from tokendesk.errors import UNRECOGNIZED_CHAIN_CODE, ProviderRpcError
from tokendesk.tokens import SEPOLIA_TOKENS
from tokendesk.types import as_chain_id
from tokendesk.wallet import ACCOUNTS_CHANGED, CHAIN_CHANGED, EventEmitter

SEPOLIA_CHAIN = "0xaa36a7"
MAINNET_CHAIN = "0x1"

USER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

TX_HASH = bytes.fromhex("ab" * 32)
TX_HASH_HEX = "0x" + "ab" * 32


class FakeWallet(EventEmitter):
    """Scriptable EIP-1193 wallet.

    ``errors`` maps a method name to the exception it raises; everything else
    behaves like an unlocked browser wallet.
    """

    def __init__(
        self,
        accounts: Optional[list] = None,
        chain_id: str = SEPOLIA_CHAIN,
        authorized: bool = False,
        known_chains: Optional[set] = None,
    ):
        super().__init__()
        self.accounts = [USER] if accounts is None else list(accounts)
        self.chain_id = chain_id
        self.authorized = authorized
        self.known_chains = {MAINNET_CHAIN} if known_chains is None else set(known_chains)
        self.known_chains.add(chain_id)
        self.errors: dict[str, BaseException] = {}
        self.calls: list[tuple[str, Any]] = []

    @property
    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        self.calls.append((method, params))
        if method in self.errors:
            raise self.errors[method]

        if method == "eth_requestAccounts":
            self.authorized = True
            return list(self.accounts)
        if method == "eth_accounts":
            return list(self.accounts) if self.authorized else []
        if method == "eth_chainId":
            return self.chain_id
        if method == "wallet_switchEthereumChain":
            chain_id = as_chain_id(params[0]["chainId"])
            if chain_id not in self.known_chains:
                raise ProviderRpcError(UNRECOGNIZED_CHAIN_CODE, "Unrecognized chain ID")
            await self.set_chain(chain_id)
            return None
        if method == "wallet_addEthereumChain":
            chain_id = as_chain_id(params[0]["chainId"])
            self.known_chains.add(chain_id)
            await self.set_chain(chain_id)
            return None
        raise ProviderRpcError(4200, f"Unsupported method {method}")

    async def set_chain(self, chain_id: str) -> None:
        if chain_id == self.chain_id:
            return
        self.chain_id = chain_id
        await self.emit(CHAIN_CHANGED, chain_id)

    async def set_accounts(self, accounts: list) -> None:
        self.accounts = list(accounts)
        await self.emit(ACCOUNTS_CHANGED, list(accounts))


async def _value(value):
    return value


class FakeToken:
    """ERC-20 contract state shared by every contract instance for one address."""

    def __init__(self, decimals: int = 6, balances: Optional[dict] = None, gas_estimate: int = 50_000):
        self.decimals = decimals
        self.balances = dict(balances or {})
        self.gas_estimate = gas_estimate
        self.estimate_error: Optional[BaseException] = None
        self.balance_error: Optional[BaseException] = None
        self.transact_error: Optional[BaseException] = None
        self.calls: list[str] = []
        self.transactions: list[tuple[tuple, dict]] = []


class FakeContractCall:
    def __init__(self, token: FakeToken, name: str, args: tuple):
        self.token = token
        self.name = name
        self.args = args

    async def call(self):
        self.token.calls.append(self.name)
        if self.name == "decimals":
            return self.token.decimals
        if self.name == "balanceOf":
            if self.token.balance_error is not None:
                raise self.token.balance_error
            return self.token.balances.get(self.args[0], 0)
        raise AssertionError(f"unexpected call {self.name}")

    async def estimate_gas(self, tx: dict):
        self.token.calls.append("estimate_gas")
        if self.token.estimate_error is not None:
            raise self.token.estimate_error
        return self.token.gas_estimate

    async def transact(self, tx: dict):
        self.token.calls.append("transact")
        if self.token.transact_error is not None:
            raise self.token.transact_error
        self.token.transactions.append((self.args, tx))
        return TX_HASH


class FakeFunctions:
    def __init__(self, token: FakeToken):
        self._token = token

    def __getattr__(self, name: str):
        return lambda *args: FakeContractCall(self._token, name, args)


class FakeContract:
    def __init__(self, address: str, token: FakeToken):
        self.address = address
        self.functions = FakeFunctions(token)


class FakeEth:
    def __init__(
        self,
        accounts: Optional[list] = None,
        gas_price: int = 1_000_000_000,
        chain_id: int = 11155111,
    ):
        self._accounts = [USER] if accounts is None else list(accounts)
        self._gas_price = gas_price
        self._chain_id = chain_id
        self.tokens: dict[str, FakeToken] = {
            token.contract_address: FakeToken(decimals=token.decimals) for token in SEPOLIA_TOKENS
        }
        self.native_balances: dict[str, int] = {}
        self.receipt_status = 1
        self.receipt_error: Optional[BaseException] = None
        self.gas_price_reads = 0
        self.raw_transactions: list[bytes] = []
        self.receipt_waits: list[tuple[Any, float]] = []

    @property
    def accounts(self):
        return _value(list(self._accounts))

    @property
    def gas_price(self):
        self.gas_price_reads += 1
        return _value(self._gas_price)

    @property
    def chain_id(self):
        return _value(self._chain_id)

    def contract(self, address: str, abi: list):
        return FakeContract(address, self.tokens[address])

    async def get_balance(self, address: str) -> int:
        return self.native_balances.get(address, 0)

    async def get_transaction_count(self, address: str, block: str = "latest") -> int:
        return 0

    async def estimate_gas(self, tx: dict) -> int:
        return 21000

    async def send_raw_transaction(self, raw: bytes) -> bytes:
        self.raw_transactions.append(raw)
        return TX_HASH

    async def wait_for_transaction_receipt(self, tx_hash, timeout: float = 120):
        self.receipt_waits.append((tx_hash, timeout))
        if self.receipt_error is not None:
            raise self.receipt_error
        return {"status": self.receipt_status, "transactionHash": tx_hash}


class FakeConnection:
    """Quacks like ``AsyncWeb3`` for the calls this package makes."""

    def __init__(self, **kwargs):
        self.eth = FakeEth(**kwargs)

    def token(self, symbol: str) -> FakeToken:
        for descriptor in SEPOLIA_TOKENS:
            if descriptor.symbol == symbol:
                return self.eth.tokens[descriptor.contract_address]
        raise KeyError(symbol)


class FakeResolver:
    """ProviderResolver stand-in that hands out one fixed fallback connection."""

    def __init__(self, fallback: Optional[FakeConnection] = None):
        self.fallback_connection = fallback or FakeConnection()
        self.resets = 0

    def resolve(self, user_connection=None):
        return user_connection if user_connection is not None else self.fallback_connection

    def reset(self) -> None:
        self.resets += 1
