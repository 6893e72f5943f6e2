"""Static token metadata and the ERC-20 ABI used for every token call."""

from typing import Iterable, Iterator, Optional

from web3 import AsyncWeb3

from .errors import UnsupportedTokenError
from .models import TokenDescriptor
from .types import Address, as_address

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "success", "type": "bool"}],
        "type": "function",
    },
]

SEPOLIA_TOKENS = (
    TokenDescriptor(
        symbol="USDC",
        name="USD Coin (Test)",
        contract_address=as_address("0x94a9D9AC8a22534E3FaCa9F4e7F2E2cf85d5E4C8"),
        decimals=6,
    ),
    TokenDescriptor(
        symbol="LINK",
        name="Chainlink Token",
        contract_address=as_address("0x779877A7B0D9E8603169DdbD7836e478b4624789"),
        decimals=18,
    ),
    TokenDescriptor(
        symbol="WETH",
        name="Wrapped Ethereum",
        contract_address=as_address("0x7b79995e5f793A07Bc00c21412e50Ecae098E7f9"),
        decimals=18,
    ),
)


class TokenRegistry:
    """Read-only lookup of supported tokens by symbol."""

    def __init__(self, tokens: Iterable[TokenDescriptor] = SEPOLIA_TOKENS):
        self._tokens: dict[str, TokenDescriptor] = {}
        for token in tokens:
            token.validate()
            self._tokens[token.symbol] = token

    def __iter__(self) -> Iterator[TokenDescriptor]:
        return iter(self._tokens.values())

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._tokens

    def find(self, symbol: str) -> Optional[TokenDescriptor]:
        return self._tokens.get(symbol)

    def get(self, symbol: str) -> TokenDescriptor:
        """Return the token for ``symbol`` or raise :class:`UnsupportedTokenError`."""
        token = self._tokens.get(symbol)
        if token is None:
            raise UnsupportedTokenError(symbol)
        return token

    @property
    def symbols(self) -> list[str]:
        return list(self._tokens)


def get_token_contract(w3: AsyncWeb3, token_address: Address):
    """Return an ERC-20 contract instance bound to ``w3``."""
    return w3.eth.contract(address=AsyncWeb3.to_checksum_address(token_address), abi=ERC20_ABI)
