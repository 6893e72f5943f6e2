"""RPC connection selection.

The user's wallet connection is preferred because it can sign. Without one, a
read-only connection to the first configured public endpoint is built once and
shared.
"""

from typing import Callable, Optional, Sequence

from loguru import logger
from web3 import AsyncWeb3

from .config import DEFAULT_FALLBACK_RPC_URLS


def http_connection(rpc_url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))


class ProviderResolver:
    """Choose between the user's connection and a cached fallback endpoint.

    Only ``endpoints[0]`` is ever used; the rest of the list is kept as
    configuration but there is no failover across it.
    """

    def __init__(
        self,
        endpoints: Sequence[str] = DEFAULT_FALLBACK_RPC_URLS,
        connection_factory: Callable[[str], AsyncWeb3] = http_connection,
    ):
        if not endpoints:
            raise ValueError("at least one fallback endpoint is required")
        self.endpoints = tuple(endpoints)
        self._connection_factory = connection_factory
        self._fallback: Optional[AsyncWeb3] = None

    @property
    def fallback_endpoint(self) -> str:
        return self.endpoints[0]

    def fallback(self) -> AsyncWeb3:
        if self._fallback is None:
            logger.debug(f"Creating fallback RPC connection to {self.fallback_endpoint}")
            self._fallback = self._connection_factory(self.fallback_endpoint)
        return self._fallback

    def resolve(self, user_connection: Optional[AsyncWeb3] = None) -> AsyncWeb3:
        """Return ``user_connection`` unchanged if given, else the fallback."""
        if user_connection is not None:
            return user_connection
        return self.fallback()

    def reset(self) -> None:
        """Drop the cached fallback connection."""
        self._fallback = None
