"""Automated gas top-up with a 24 hour cooldown.

A top-up tries, in order:

1. A direct transfer from the treasury wallet (see :mod:`tokendesk.treasury`)
2. Each configured HTTP faucet (POST ``{"address": ...}``, any 2xx wins)
3. Opening the manual faucet page for the user

The cooldown is global to this instance, not per address, and lives in memory
only.
"""

import asyncio
import webbrowser
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional
from urllib.parse import urlparse

import aiohttp
from loguru import logger

from .config import (
    DEFAULT_FAUCET_URLS,
    DEFAULT_MANUAL_FAUCET_URL,
    DISPLAY_WINDOW_SECONDS,
    FAUCET_COOLDOWN_SECONDS,
    FAUCET_HTTP_TIMEOUT_SECONDS,
    TOPUP_AMOUNT_ETH,
)
from .errors import describe_error
from .models import FaucetState, TokenFaucetResult, TopupResult
from .scheduling import DisplayTimer
from .treasury import TreasuryWallet

FAUCET_NETWORK = "sepolia"

PostJson = Callable[[str, dict], Awaitable[tuple[int, Any]]]


@dataclass(frozen=True)
class FaucetEndpoint:
    name: str
    url: str

    @classmethod
    def from_url(cls, url: str) -> "FaucetEndpoint":
        """Name an endpoint after its host."""
        return cls(name=urlparse(url).netloc or url, url=url)


@dataclass(frozen=True)
class TokenFaucet:
    """Where to get one ERC-20 token. ``manual_url`` may contain ``{address}``."""

    token: str
    endpoints: tuple[FaucetEndpoint, ...] = ()
    manual_name: Optional[str] = None
    manual_url: Optional[str] = None


DEFAULT_TOKEN_FAUCETS = (
    TokenFaucet("WETH", (FaucetEndpoint("Paradigm", "https://faucet.paradigm.xyz/"),)),
    TokenFaucet(
        "LINK",
        manual_name="Chainlink",
        manual_url="https://faucets.chain.link/sepolia?address={address}&token=link",
    ),
    TokenFaucet(
        "USDC",
        (
            FaucetEndpoint("Circle", "https://faucet.circle.com/api/faucet"),
            FaucetEndpoint("Sepolia", "https://sepoliafaucet.com/api/faucet"),
            FaucetEndpoint("QuickNode", "https://faucet.quicknode.com/sepolia"),
        ),
    ),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TreasuryFaucet:
    """Rate-limited native currency top-up for the connected user."""

    def __init__(
        self,
        treasury: Optional[TreasuryWallet] = None,
        endpoints: Optional[Iterable[FaucetEndpoint]] = None,
        manual_url: str = DEFAULT_MANUAL_FAUCET_URL,
        token_faucets: Iterable[TokenFaucet] = DEFAULT_TOKEN_FAUCETS,
        amount_eth: Decimal = TOPUP_AMOUNT_ETH,
        cooldown_seconds: float = FAUCET_COOLDOWN_SECONDS,
        http_timeout: float = FAUCET_HTTP_TIMEOUT_SECONDS,
        display_window: float = DISPLAY_WINDOW_SECONDS,
        post_json: Optional[PostJson] = None,
        opener: Callable[[str], Any] = webbrowser.open,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.treasury = treasury
        if endpoints is None:
            endpoints = [FaucetEndpoint.from_url(url) for url in DEFAULT_FAUCET_URLS]
        self.endpoints = tuple(endpoints)
        self.manual_url = manual_url
        self.token_faucets = tuple(token_faucets)
        self.amount_eth = amount_eth
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.http_timeout = http_timeout
        self.state = FaucetState()
        self.requesting = False
        self.requesting_tokens = False
        self.last_result: Optional[TopupResult] = None
        self._post_json = post_json or self._aiohttp_post
        self._opener = opener
        self._clock = clock
        self._result_timer = DisplayTimer(display_window, self._clear_result)

    @property
    def last_request_at(self) -> Optional[datetime]:
        return self.state.last_request_at

    def can_request(self, now: Optional[datetime] = None) -> bool:
        """True if no top-up has succeeded yet or the cooldown has elapsed."""
        last = self.state.last_request_at
        if last is None:
            return True
        return (now or self._clock()) - last >= self.cooldown

    def manual_faucet_url(self, address: str) -> str:
        return f"{self.manual_url}?address={address}"

    async def _aiohttp_post(self, url: str, body: dict) -> tuple[int, Any]:
        timeout = aiohttp.ClientTimeout(total=self.http_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=body) as response:
                data = None
                if response.content_type == "application/json":
                    data = await response.json()
                return response.status, data

    async def _try_post(self, endpoint: FaucetEndpoint, body: dict) -> tuple[bool, Any]:
        """POST ``body``; returns ``(ok, json_data)`` where ok means a 2xx status."""
        try:
            status, data = await self._post_json(endpoint.url, body)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"{endpoint.name} faucet failed: {e}")
            return False, None
        if 200 <= status < 300:
            return True, data
        logger.warning(f"{endpoint.name} faucet responded with {status}")
        return False, None

    def _open(self, url: str) -> bool:
        try:
            self._opener(url)
        except Exception as e:
            logger.warning(f"Could not open {url}: {e}")
            return False
        return True

    async def request_topup(self, address: str, connection=None) -> TopupResult:
        """Fund ``address`` with the top-up amount.

        The caller is expected to check :meth:`can_request` first; it is not
        re-checked here. Never raises.
        """
        self.requesting = True
        self._result_timer.cancel()
        try:
            result = await self._topup(address, connection)
        finally:
            self.requesting = False

        if result.success:
            self.state.last_request_at = self._clock()
        self.last_result = result
        self._result_timer.arm()
        return result

    async def _topup(self, address: str, connection) -> TopupResult:
        if self.treasury is not None:
            logger.info(f"Attempting treasury transfer of {self.amount_eth} ETH to {address}")
            try:
                tx_hash, ok = await self.treasury.send(address, self.amount_eth, connection)
                if ok:
                    logger.info(f"Treasury top-up confirmed: {tx_hash}")
                    return TopupResult(
                        success=True,
                        source="treasury",
                        hash=tx_hash,
                        amount=f"{self.amount_eth} ETH",
                    )
                logger.warning(f"Treasury transfer {tx_hash} reverted")
            except Exception as e:
                logger.warning(f"Treasury transfer failed: {describe_error(e)}")

        for endpoint in self.endpoints:
            ok, data = await self._try_post(endpoint, {"address": address})
            if ok:
                logger.info(f"Top-up requested from {endpoint.name}")
                return TopupResult(success=True, source=endpoint.name, data=data)

        url = self.manual_faucet_url(address)
        logger.info(f"All automated top-ups failed, opening {url}")
        self._open(url)
        return TopupResult(
            success=False,
            source="manual",
            message="Opened manual faucet",
            manual_url=url,
        )

    def _clear_result(self) -> None:
        self.last_result = None

    async def treasury_info(self, connection=None) -> tuple[str, bool]:
        """Return the treasury balance in ETH and whether it can fund a top-up."""
        if self.treasury is None:
            return "0", False
        try:
            balance = await self.treasury.balance(connection)
        except Exception as e:
            logger.debug(f"Treasury balance unavailable: {e}")
            return "0", False
        return str(balance), balance > self.amount_eth

    async def request_token_faucets(self, address: str) -> list[TokenFaucetResult]:
        """Ask each token's faucet for test tokens; tokens with only a manual
        faucet get their page opened instead."""
        self.requesting_tokens = True
        results: list[TokenFaucetResult] = []
        try:
            for faucet in self.token_faucets:
                results.append(await self._request_token(faucet, address))
        finally:
            self.requesting_tokens = False
        self.state.last_request_at = self._clock()
        return results

    async def _request_token(self, faucet: TokenFaucet, address: str) -> TokenFaucetResult:
        if faucet.endpoints:
            body = {"address": address, "token": faucet.token, "network": FAUCET_NETWORK}
            for endpoint in faucet.endpoints:
                ok, _ = await self._try_post(endpoint, body)
                if ok:
                    return TokenFaucetResult(faucet.token, True, source=endpoint.name)
            return TokenFaucetResult(faucet.token, False, error="All faucets failed")

        if faucet.manual_url:
            opened = self._open(faucet.manual_url.format(address=address))
            return TokenFaucetResult(
                faucet.token,
                opened,
                source=faucet.manual_name,
                error=None if opened else "Could not open faucet page",
            )
        return TokenFaucetResult(faucet.token, False, error="No faucet configured")

    def close(self) -> None:
        self._result_timer.cancel()
