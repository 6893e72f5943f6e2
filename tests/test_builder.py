"""Tests for LegacyTransactionBuilder."""

import pytest
from eth_account import Account

from tokendesk.builder import LegacyTransactionBuilder

RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
PRIVATE_KEY = "0x7eafbf9699b30c9ed8e3d6bbae57dd4f047544fde34d4c982dd591c2bee39ad0"


class TestLegacyTransactionBuilder:
    """Test the fluent builder."""

    def test_build_native_transfer(self):
        tx = (
            LegacyTransactionBuilder()
            .set_chain_id("0xaa36a7")
            .set_to(RECIPIENT.lower())
            .set_value(10**17)
            .set_gas_price(2_000_000_000)
            .set_nonce(4)
            .build()
        )
        assert tx == {
            "chainId": 11155111,
            "nonce": 4,
            "gas": 21000,
            "gasPrice": 2_000_000_000,
            "value": 10**17,
            "data": "0x",
            "to": RECIPIENT,
        }

    def test_build_is_signable(self):
        tx = (
            LegacyTransactionBuilder(chain_id=11155111)
            .set_to(RECIPIENT)
            .set_value(1)
            .set_gas_price(1)
            .build()
        )
        signed = Account.from_key(PRIVATE_KEY).sign_transaction(tx)
        assert signed.raw_transaction
        assert len(signed.hash) == 32

    def test_contract_creation_needs_data(self):
        with pytest.raises(ValueError, match="needs data"):
            LegacyTransactionBuilder(chain_id=1).build()

    def test_negative_value(self):
        with pytest.raises(ValueError, match="value must be >= 0"):
            LegacyTransactionBuilder(chain_id=1, to=RECIPIENT, value=-1).build()

    def test_zero_gas(self):
        with pytest.raises(ValueError, match="gas_limit must be > 0"):
            LegacyTransactionBuilder(chain_id=1, to=RECIPIENT).set_gas(0).build()

    def test_from_request_parses_hex_quantities(self):
        builder = LegacyTransactionBuilder.from_request(
            {
                "from": RECIPIENT,
                "to": RECIPIENT,
                "value": "0x0",
                "data": "0xa9059cbb",
                "gas": "0x1d4c0",
                "gasPrice": "0x3b9aca00",
                "nonce": "0x2",
            },
            "0xaa36a7",
        )
        assert builder.chain_id == 11155111
        assert builder.gas_limit == 120000
        assert builder.gas_price == 1_000_000_000
        assert builder.nonce == 2
        assert builder.data == "0xa9059cbb"

    def test_from_request_accepts_input_field(self):
        builder = LegacyTransactionBuilder.from_request(
            {"to": RECIPIENT, "input": "0x1234", "gas": 30000}, 1
        )
        assert builder.data == "0x1234"
        assert builder.gas_limit == 30000
