"""
Example: Gas Top-up

Request 0.1 test ETH for a key-backed wallet: treasury first, then public
faucets, then the manual faucet page.

Usage:
    PRIVATE_KEY=0x... python examples/topup.py
"""

import asyncio
import os

from tokendesk import SEPOLIA, LocalWallet, TokenDesk, configure_logging, load_settings


async def main() -> None:
    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY environment variable not set")
    rpc_url = os.environ.get("RPC_URL", SEPOLIA.rpc_urls[0])

    desk = TokenDesk(LocalWallet(private_key, rpc_url, SEPOLIA.chain_id), load_settings())
    await desk.start()
    try:
        session = await desk.connect()
        if not session.is_connected:
            print(f"Connection failed: {session.last_error.message}")
            return

        balance = await desk.eth_balance()
        print(f"{desk.address} holds {balance} ETH")
        if not desk.is_low_balance(balance):
            print("Balance is fine, no top-up needed")
            return

        treasury_balance, available = await desk.treasury_info()
        print(f"Treasury balance: {treasury_balance} ETH (available: {available})")

        result = await desk.request_topup()
        if result.hash:
            print(f"{result.amount} sent from treasury: {SEPOLIA.tx_url(result.hash)}")
        elif result.success:
            print(f"Requested from {result.source}, check balance in 1-2 minutes")
        else:
            print(f"Manual faucet opened: {result.manual_url}")
    finally:
        await desk.close()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
