"""
Example: Send Token

Connect a key-backed wallet on Sepolia, estimate gas and send an ERC-20 transfer.

Usage:
    PRIVATE_KEY=0x... RPC_URL=https://... python examples/send_token.py 0xRecipient 1.5 USDC
"""

import asyncio
import os
import sys

from tokendesk import SEPOLIA, LocalWallet, TokenDesk, TransferRequest, configure_logging, load_settings


async def main(recipient: str, amount: str, token: str) -> None:
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
        print(f"Connected as {desk.address}")

        for balance in await desk.refresh_balances():
            print(f"  {balance.token.symbol}: {balance.formatted()}")

        request = TransferRequest.create(recipient, amount, token)
        estimate = await desk.estimate_gas(request)
        print(f"Estimated gas: {estimate.gas_limit} @ {estimate.gas_price} wei")

        print("Sending...")
        state = await desk.send_token(request)
        if state.hash:
            print(f"Confirmed: {SEPOLIA.tx_url(state.hash)}")
        else:
            print(f"Failed: {state.error}")
    finally:
        await desk.close()


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    configure_logging()
    asyncio.run(main(*sys.argv[1:4]))
