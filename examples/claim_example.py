#!/usr/bin/env python3
"""
Example of claiming lockdrop rewards with ClaimSession.

The destination chain client is application specific; this example plugs in a
small in-memory chain so the whole flow runs offline. Replace DemoChain with a
connector backed by your Substrate client.
"""
import logging
import os

from lockdrop_sdk import (
    ChainType, Claim, ClaimSession, LocalClaimSigner, LockParam, derive_claim_id,
    NetworkConfig, VoteRequirement
)

logging.basicConfig(level=logging.INFO)


class DemoChain:
    """In-memory destination chain where authorities approve every request"""

    def __init__(self):
        self.claims = {}

    def get_claim(self, claim_id):
        return self.claims.get(claim_id)

    def get_vote_requirement(self):
        return VoteRequirement(positive_votes_needed=2, vote_threshold=3)

    def get_balance(self, address):
        return sum(c.amount for c in self.claims.values() if c.complete)

    def submit_request(self, param, nonce):
        # Authorities vote instantly in the demo
        claim_id = derive_claim_id(param)
        self.claims[claim_id] = Claim(id=claim_id, approve=["alice", "bob", "charlie"],
                                      amount=param.value * 3)
        return "0x" + "01" * 32

    def submit_claim(self, claim_id):
        self.claims[claim_id] = self.claims[claim_id].model_copy(update={"complete": True})
        return "0x" + "02" * 32

    def submit_claim_to(self, claim_id, recipient, signature):
        return self.submit_claim(claim_id)


def main():
    """
    Demonstrate the two-phase claim flow:
    1. Request a claim (proof-of-work is computed automatically)
    2. Wait for the authorities' votes
    3. Claim the reward to the default address
    """
    private_key = os.environ.get(
        "PRIVATE_KEY", "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
    )
    signer = LocalClaimSigner(private_key)

    print("Available networks:")
    for network_name in NetworkConfig.load_networks().keys():
        print(f"  - {network_name}")

    session = ClaimSession.from_network(
        "dusty",
        signer.public_key,
        DemoChain(),
        signer=signer,
        store_path=os.path.join(os.path.dirname(__file__), ".claim-addr.json"),
    )
    print(f"Locker: {signer.address}")
    print(f"Reward recipient: {session.recipient}")

    param = LockParam(
        chain_type=ChainType.ETH,
        transaction_hash="0x" + "ab" * 32,
        public_key=signer.public_key,
        duration=30 * 24 * 60 * 60,
        value=10 ** 18,
    )

    result = session.submit_request(param)
    if not result.ok:
        print(f"Request failed: {result.error}")
        return
    print(f"Requested claim 0x{result.claim_id.hex()} in {result.tx_hash}")

    session.refresh()
    print(f"Phase: {session.phase(result.claim_id).value}")

    claimed = session.submit_claim(result.claim_id)
    print(f"Claim transaction: {claimed.tx_hash}")

    session.refresh()
    print(f"Phase: {session.phase(result.claim_id).value}")
    print(f"Balance: {session.balance_display}")
    session.close()


if __name__ == "__main__":
    main()
