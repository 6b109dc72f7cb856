"""Legacy call/send surface for callers written against the old contract wrapper."""

import asyncio
import os

from dotenv import load_dotenv

from decentpay_api import (
    ClientConfig,
    EscrowOrchestrator,
    EscrowProtocolError,
    KeypairSigner,
    LegacyContractShim,
    Session,
)

load_dotenv()


async def main():
    secret = os.getenv("STELLAR_SECRET_KEY")
    if not secret:
        raise ValueError("STELLAR_SECRET_KEY not found in environment variables")

    signer = KeypairSigner.from_secret(secret)

    async with Session(ClientConfig.from_env()) as session:
        contract = LegacyContractShim(EscrowOrchestrator(session, signer), signer.address)

        print(f"Owner: {await contract.call('owner')}")
        print(f"Job creation paused: {await contract.call('paused')}")
        print(f"Next escrow id: {await contract.call('next_escrow_id')}")

        try:
            tx_hash = await contract.send("start_work", 1, signer.address)
            print(f"start_work submitted: {tx_hash}")
        except EscrowProtocolError as exc:
            print(f"start_work failed ({exc.details.get('kind')}): {exc.message}")


if __name__ == "__main__":
    asyncio.run(main())
