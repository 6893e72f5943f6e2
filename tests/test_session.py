"""Tests for the WalletSession state machine."""

import asyncio

from fakes import MAINNET_CHAIN, RECIPIENT, SEPOLIA_CHAIN, USER, FakeResolver, FakeWallet

from tokendesk.errors import USER_REJECTED_CODE, ErrorKind, ProviderRpcError
from tokendesk.models import ConnectionState
from tokendesk.network import NetworkGuard
from tokendesk.session import WalletSession
from tokendesk.wallet import ACCOUNTS_CHANGED, CHAIN_CHANGED


def make_session(wallet, resolver=None):
    return WalletSession(
        wallet,
        NetworkGuard(wallet),
        resolver,
        connection_factory=lambda w: ("connection", w),
    )


def test_probe_adopts_existing_authorization():
    asyncio.run(_test_probe_adopts_existing_authorization())


async def _test_probe_adopts_existing_authorization():
    wallet = FakeWallet(authorized=True)
    session = make_session(wallet)
    await session.initialize()

    assert session.is_connected
    assert session.address == USER
    assert session.connection == ("connection", wallet)
    assert "eth_requestAccounts" not in wallet.methods


def test_probe_without_authorization_stays_disconnected():
    asyncio.run(_test_probe_without_authorization_stays_disconnected())


async def _test_probe_without_authorization_stays_disconnected():
    session = make_session(FakeWallet())
    await session.initialize()
    assert session.session.connection_state == ConnectionState.DISCONNECTED
    assert session.last_error is None


def test_probe_on_wrong_chain_stays_disconnected():
    asyncio.run(_test_probe_on_wrong_chain_stays_disconnected())


async def _test_probe_on_wrong_chain_stays_disconnected():
    wallet = FakeWallet(authorized=True, chain_id=MAINNET_CHAIN)
    session = make_session(wallet)
    await session.initialize()
    assert not session.is_connected
    assert session.network.is_wrong_network


def test_first_time_connect():
    asyncio.run(_test_first_time_connect())


async def _test_first_time_connect():
    wallet = FakeWallet()
    session = make_session(wallet)
    states = []
    session.subscribe(lambda s: states.append(s.connection_state))
    await session.initialize()

    result = await session.connect()

    assert result.is_connected
    assert result.address == USER
    assert result.last_error is None
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]


def test_connect_without_wallet():
    asyncio.run(_test_connect_without_wallet())


async def _test_connect_without_wallet():
    session = make_session(None)
    await session.initialize()
    result = await session.connect()
    assert not result.is_connected
    assert result.last_error.kind == ErrorKind.PROVIDER_MISSING


def test_connect_with_no_accounts():
    asyncio.run(_test_connect_with_no_accounts())


async def _test_connect_with_no_accounts():
    session = make_session(FakeWallet(accounts=[]))
    result = await session.connect()
    assert result.connection_state == ConnectionState.DISCONNECTED
    assert result.last_error.kind == ErrorKind.NO_ACCOUNTS


def test_connect_rejected_by_user():
    asyncio.run(_test_connect_rejected_by_user())


async def _test_connect_rejected_by_user():
    wallet = FakeWallet()
    wallet.errors["eth_requestAccounts"] = ProviderRpcError(USER_REJECTED_CODE, "User rejected")
    session = make_session(wallet)
    result = await session.connect()
    assert result.last_error.kind == ErrorKind.USER_REJECTED
    assert result.last_error.message == "Transaction rejected by user"


def test_connect_switches_network_inline():
    asyncio.run(_test_connect_switches_network_inline())


async def _test_connect_switches_network_inline():
    wallet = FakeWallet(chain_id=MAINNET_CHAIN, known_chains={SEPOLIA_CHAIN})
    resolver = FakeResolver()
    session = make_session(wallet, resolver)
    await session.initialize()

    result = await session.connect()

    assert result.is_connected
    assert wallet.chain_id == SEPOLIA_CHAIN
    assert not session.network.is_wrong_network
    # the chainChanged fired mid-connect must not tear the session down
    assert resolver.resets == 0


def test_connect_switch_failure_asks_for_manual_switch():
    asyncio.run(_test_connect_switch_failure_asks_for_manual_switch())


async def _test_connect_switch_failure_asks_for_manual_switch():
    wallet = FakeWallet(chain_id=MAINNET_CHAIN)
    wallet.errors["wallet_switchEthereumChain"] = ProviderRpcError(4200, "unsupported")
    session = make_session(wallet)

    result = await session.connect()

    assert not result.is_connected
    assert result.last_error.kind == ErrorKind.UNSUPPORTED_NETWORK
    assert result.last_error.message == "Please manually switch to Sepolia Testnet in your wallet"


def test_connect_switch_rejected_by_user():
    asyncio.run(_test_connect_switch_rejected_by_user())


async def _test_connect_switch_rejected_by_user():
    wallet = FakeWallet(chain_id=MAINNET_CHAIN)
    wallet.errors["wallet_switchEthereumChain"] = ProviderRpcError(USER_REJECTED_CODE, "no")
    session = make_session(wallet)

    result = await session.connect()
    assert result.last_error.kind == ErrorKind.USER_REJECTED


def test_connect_while_connecting_is_ignored():
    asyncio.run(_test_connect_while_connecting_is_ignored())


async def _test_connect_while_connecting_is_ignored():
    release = asyncio.Event()

    class SlowWallet(FakeWallet):
        async def request(self, method, params=None):
            if method == "eth_requestAccounts":
                await release.wait()
            return await super().request(method, params)

    wallet = SlowWallet()
    session = make_session(wallet)
    first = asyncio.ensure_future(session.connect())
    await asyncio.sleep(0)
    assert session.session.is_connecting

    second = await session.connect()
    assert second.is_connecting

    release.set()
    assert (await first).is_connected
    assert wallet.methods.count("eth_requestAccounts") == 1


def test_accounts_changed_to_empty_disconnects_without_error():
    asyncio.run(_test_accounts_changed_to_empty_disconnects_without_error())


async def _test_accounts_changed_to_empty_disconnects_without_error():
    wallet = FakeWallet()
    session = make_session(wallet)
    await session.initialize()
    await session.connect()

    await wallet.set_accounts([])

    assert session.session.connection_state == ConnectionState.DISCONNECTED
    assert session.address is None
    assert session.last_error is None


def test_accounts_changed_to_new_address():
    asyncio.run(_test_accounts_changed_to_new_address())


async def _test_accounts_changed_to_new_address():
    wallet = FakeWallet()
    session = make_session(wallet)
    await session.initialize()
    await session.connect()

    await wallet.set_accounts([RECIPIENT])

    assert session.is_connected
    assert session.address == RECIPIENT


def test_accounts_changed_on_wrong_network():
    asyncio.run(_test_accounts_changed_on_wrong_network())


async def _test_accounts_changed_on_wrong_network():
    wallet = FakeWallet(chain_id=MAINNET_CHAIN)
    session = make_session(wallet)
    await session.initialize()

    await wallet.set_accounts([RECIPIENT])

    assert not session.is_connected
    assert session.last_error.kind == ErrorKind.UNSUPPORTED_NETWORK
    assert session.last_error.message == "Wrong network - please switch to Sepolia Testnet"


def test_chain_change_invalidates_and_reprobes():
    asyncio.run(_test_chain_change_invalidates_and_reprobes())


async def _test_chain_change_invalidates_and_reprobes():
    wallet = FakeWallet(known_chains={MAINNET_CHAIN})
    resolver = FakeResolver()
    session = make_session(wallet, resolver)
    await session.initialize()
    await session.connect()
    states = []
    session.subscribe(lambda s: states.append(s.connection_state))

    await wallet.set_chain(MAINNET_CHAIN)
    assert not session.is_connected
    assert session.network.is_wrong_network
    assert resolver.resets == 1

    await wallet.set_chain(SEPOLIA_CHAIN)
    assert session.is_connected
    assert resolver.resets == 2
    assert states == [
        ConnectionState.DISCONNECTED,
        ConnectionState.DISCONNECTED,
        ConnectionState.CONNECTED,
    ]


def test_disconnect_and_clear_error():
    asyncio.run(_test_disconnect_and_clear_error())


async def _test_disconnect_and_clear_error():
    wallet = FakeWallet(accounts=[])
    session = make_session(wallet)
    await session.connect()
    assert session.last_error is not None

    cleared = session.clear_error()
    assert cleared.last_error is None

    wallet.accounts = [USER]
    await session.connect()
    assert session.is_connected

    calls = len(wallet.calls)
    session.disconnect()
    assert not session.is_connected
    assert session.address is None
    assert len(wallet.calls) == calls


def test_unsubscribe():
    asyncio.run(_test_unsubscribe())


async def _test_unsubscribe():
    session = make_session(FakeWallet())
    seen = []
    unsubscribe = session.subscribe(seen.append)
    unsubscribe()
    await session.connect()
    assert seen == []


def test_dispose_removes_listeners_and_ignores_late_events():
    asyncio.run(_test_dispose_removes_listeners_and_ignores_late_events())


async def _test_dispose_removes_listeners_and_ignores_late_events():
    wallet = FakeWallet()
    session = make_session(wallet)
    await session.initialize()
    assert wallet.listener_count(ACCOUNTS_CHANGED) == 1
    assert wallet.listener_count(CHAIN_CHANGED) == 1

    await session.dispose()
    assert session.disposed
    assert wallet.listener_count(ACCOUNTS_CHANGED) == 0
    assert wallet.listener_count(CHAIN_CHANGED) == 0

    result = await session.connect()
    assert not result.is_connected
