"""Walk a milestone through submit and approve (or reject) with two wallets."""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from decentpay_api import ClientConfig, EscrowOrchestrator, KeypairSigner, Session

load_dotenv()

logging.basicConfig(level=logging.INFO)


async def main():
    client_secret = os.getenv("CLIENT_SECRET_KEY")
    freelancer_secret = os.getenv("FREELANCER_SECRET_KEY")
    if not client_secret or not freelancer_secret:
        raise ValueError("CLIENT_SECRET_KEY and FREELANCER_SECRET_KEY must be set")

    escrow_id = int(sys.argv[1]) if len(sys.argv) > 1 else 1
    approve = "--reject" not in sys.argv

    client = KeypairSigner.from_secret(client_secret)
    freelancer = KeypairSigner.from_secret(freelancer_secret)

    async with Session(ClientConfig.from_env()) as session:
        as_freelancer = EscrowOrchestrator(session, freelancer)
        as_client = EscrowOrchestrator(session, client)

        milestones = await as_client.get_milestones(escrow_id)
        for index, milestone in enumerate(milestones):
            print(f"  [{index}] {milestone.status.value:<10} {milestone.description}")

        result = await as_freelancer.submit_milestone(
            freelancer.address, escrow_id, 0, "First milestone delivered"
        )
        print(f"submit_milestone: {result.success} {result.title or ''}")
        if not result.success:
            return

        if approve:
            result = await as_client.approve_milestone(client.address, escrow_id, 0)
        else:
            result = await as_client.reject_milestone(
                client.address, escrow_id, 0, "Needs responsive layout"
            )
        print(f"review: {result.success} {result.description or ''}")


if __name__ == "__main__":
    asyncio.run(main())
