"""Single-network enforcement: detect the wallet's chain and switch it."""

from typing import Optional

from loguru import logger

from .config import SEPOLIA, ChainDescriptor
from .errors import UNRECOGNIZED_CHAIN_CODE, SwitchInProgressError, error_code
from .models import NetworkState
from .types import ChainId, ChainIdLike, as_chain_id
from .wallet import WalletProvider


class NetworkGuard:
    """Track the wallet's chain against the one supported chain."""

    def __init__(self, wallet: Optional[WalletProvider], chain: ChainDescriptor = SEPOLIA):
        self.wallet = wallet
        self.chain = chain
        self.chain_id: Optional[ChainId] = None
        self.is_wrong_network = False
        self.switching = False

    @property
    def target_chain_id(self) -> ChainId:
        return self.chain.chain_id

    def is_supported(self, chain_id: ChainIdLike) -> bool:
        return as_chain_id(chain_id) == self.target_chain_id

    @property
    def state(self) -> Optional[NetworkState]:
        if self.chain_id is None:
            return None
        return NetworkState(chain_id=self.chain_id, is_supported=not self.is_wrong_network)

    def on_chain_changed(self, chain_id: ChainIdLike) -> NetworkState:
        self.chain_id = as_chain_id(chain_id)
        self.is_wrong_network = self.chain_id != self.target_chain_id
        return NetworkState(chain_id=self.chain_id, is_supported=not self.is_wrong_network)

    async def current_chain_id(self) -> ChainId:
        return as_chain_id(await self.wallet.request("eth_chainId"))

    async def check_network(self) -> Optional[NetworkState]:
        """Query the wallet's chain and recompute ``is_wrong_network``.

        Failures are logged and leave the previous state in place.
        """
        if self.wallet is None:
            return None
        try:
            chain_id = await self.current_chain_id()
        except Exception as e:
            logger.warning(f"Failed to get chain ID: {e}")
            return self.state
        state = self.on_chain_changed(chain_id)
        if not state.is_supported:
            logger.info(f"Wallet is on chain {chain_id}, expected {self.target_chain_id}")
        return state

    async def switch_network(self) -> None:
        """Ask the wallet to switch to the target chain, adding it if unknown.

        Only an "unrecognized chain" failure (4902) leads to an add-chain
        request; every other failure is re-raised unchanged.
        """
        if self.switching:
            raise SwitchInProgressError()
        self.switching = True
        try:
            try:
                await self.wallet.request(
                    "wallet_switchEthereumChain", [{"chainId": self.target_chain_id}]
                )
            except Exception as switch_error:
                if error_code(switch_error) != UNRECOGNIZED_CHAIN_CODE:
                    raise
                logger.info(f"Chain {self.target_chain_id} unknown to wallet, adding it")
                await self.wallet.request(
                    "wallet_addEthereumChain", [self.chain.as_add_chain_params()]
                )
            logger.info(f"Switched wallet to {self.chain.chain_name}")
        finally:
            self.switching = False
