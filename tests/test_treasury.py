"""Tests for TreasuryWallet."""

import asyncio
from decimal import Decimal

import pytest
from eth_account import Account
from fakes import RECIPIENT, TX_HASH_HEX, FakeConnection, FakeResolver

from tokendesk.config import DEMO_TREASURY_KEY
from tokendesk.errors import ErrorKind, TreasuryInsufficientFundsError
from tokendesk.treasury import TreasuryWallet

TREASURY = Account.from_key(DEMO_TREASURY_KEY).address


def make_treasury(balance_wei: int, receipt_status: int = 1):
    connection = FakeConnection()
    connection.eth.native_balances[TREASURY] = balance_wei
    connection.eth.receipt_status = receipt_status
    return TreasuryWallet(DEMO_TREASURY_KEY, FakeResolver(connection)), connection


class TestTreasuryWallet:
    """Test treasury balance checks and sends."""

    def test_address(self):
        treasury, _ = make_treasury(0)
        assert treasury.address == TREASURY

    def test_balance_in_eth(self):
        treasury, _ = make_treasury(250_000_000_000_000_000)
        assert asyncio.run(treasury.balance()) == Decimal("0.25")

    def test_send(self):
        treasury, connection = make_treasury(10**18)
        tx_hash, ok = asyncio.run(treasury.send(RECIPIENT, Decimal("0.1")))
        assert tx_hash == TX_HASH_HEX
        assert ok
        assert len(connection.eth.raw_transactions) == 1

    def test_send_reverted(self):
        treasury, _ = make_treasury(10**18, receipt_status=0)
        _, ok = asyncio.run(treasury.send(RECIPIENT, Decimal("0.1")))
        assert not ok

    def test_insufficient_funds_sends_nothing(self):
        treasury, connection = make_treasury(50_000_000_000_000_000)
        with pytest.raises(TreasuryInsufficientFundsError) as exc:
            asyncio.run(treasury.send(RECIPIENT, Decimal("0.1")))
        assert exc.value.kind == ErrorKind.TREASURY_INSUFFICIENT_FUNDS
        assert str(exc.value) == "Treasury insufficient funds. Has: 0.05 ETH"
        assert connection.eth.raw_transactions == []

    def test_uses_user_connection_when_given(self):
        treasury, fallback = make_treasury(0)
        user = FakeConnection()
        user.eth.native_balances[TREASURY] = 10**18
        _, ok = asyncio.run(treasury.send(RECIPIENT, Decimal("0.1"), user))
        assert ok
        assert len(user.eth.raw_transactions) == 1
        assert fallback.eth.raw_transactions == []
