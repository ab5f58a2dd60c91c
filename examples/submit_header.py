#!/usr/bin/env python3
"""
Example of submitting a block header to the relay.
"""
import os
import sys

from testimonium_sdk import LocalSigner, SubmissionError, TestimoniumClient


def main():
    """
    Submit an RLP encoded header and wait for it to be mined.

    Requires PRIVATE_KEY and RLP_HEADER (hex) in the environment.
    """
    PRIVATE_KEY = os.environ.get("PRIVATE_KEY")
    RLP_HEADER = os.environ.get("RLP_HEADER")
    NETWORK = os.environ.get("NETWORK", "local")

    if not PRIVATE_KEY or not RLP_HEADER:
        print("ERROR: PRIVATE_KEY and RLP_HEADER environment variables are required")
        return 1

    signer = LocalSigner(PRIVATE_KEY)
    print(f"Signer address: {signer.address}")

    with TestimoniumClient.from_network(NETWORK, signer=signer) as client:
        client.assert_chain_id()
        try:
            receipt = client.submit_header(RLP_HEADER, wait_for_receipt=True)
        except SubmissionError as e:
            print(f"Submission failed: {e}")
            return 1

        print(f"Mined in block {receipt.block_number}, status {receipt.status}")
        url = client.tx_url(receipt.tx_hash)
        if url:
            print(f"Explorer: {url}")
    return 0 if receipt.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
