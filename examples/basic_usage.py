"""Basic usage example for the DeCentPay Escrow API."""

import asyncio
import logging
import os

from dotenv import load_dotenv

from decentpay_api import (
    ClientConfig,
    EscrowOrchestrator,
    EventKind,
    KeypairSigner,
    MilestoneInput,
    Session,
    to_stroops,
)

# Load environment variables from .env file
load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")


async def example_create_escrow():
    """Create an escrow with two milestones on testnet."""

    secret = os.getenv("STELLAR_SECRET_KEY")
    if not secret:
        raise ValueError("STELLAR_SECRET_KEY not found in environment variables")

    signer = KeypairSigner.from_secret(secret)
    config = ClientConfig.from_env()

    async with Session(config) as session:
        escrow = EscrowOrchestrator(session, signer)
        escrow.events.subscribe(
            EventKind.ESCROW_CREATED,
            lambda event: print(f"Escrow #{event.escrow_id} created in {event.tx_hash}"),
        )

        balance = await escrow.refresh_balance(signer.address)
        print(f"Wallet balance: {balance} XLM")

        milestones = [
            MilestoneInput(to_stroops(6), "Design mockups for the landing page"),
            MilestoneInput(to_stroops(4), "Implement and deploy the landing page"),
        ]
        result = await escrow.create_escrow(
            signer.address,
            milestones=milestones,
            total_amount=to_stroops(10),
            duration=7 * 24 * 3600,
            project_title="Landing page",
            project_description="Open job: anyone may apply",
        )

        if result.success:
            print(f"Escrow id: {result.return_value}")
            print(f"Transaction: {result.tx_hash}")
        else:
            print(f"{result.title}: {result.description}")


async def main():
    """Run examples."""
    print("=" * 50)
    print("DeCentPay Escrow API Examples")
    print("=" * 50)

    await example_create_escrow()


if __name__ == "__main__":
    asyncio.run(main())
