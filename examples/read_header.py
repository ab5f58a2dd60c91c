#!/usr/bin/env python3
"""
Example of reading relay state with TestimoniumClient.
"""
import os
import sys

from testimonium_sdk import NetworkConfig, TestimoniumClient


def main():
    """
    Demonstrate read-only access to a Testimonium relay.

    This example shows how to:
    1. Initialize a read-only client from a network configuration
    2. Check the node's chain id
    3. Look up a stored header and its dispute status
    4. Verify a transaction against the relay
    """
    NETWORK = os.environ.get("NETWORK", "local")
    BLOCK_HASH = os.environ.get("BLOCK_HASH")
    TX_HASH = os.environ.get("TX_HASH")

    if not BLOCK_HASH:
        print("ERROR: BLOCK_HASH environment variable is required")
        return 1

    print("Available networks:")
    for network_name in NetworkConfig.load_networks().keys():
        print(f"  - {network_name}")
    print()

    with TestimoniumClient.from_network(NETWORK) as client:
        client.assert_chain_id()
        print(f"Connected to {NETWORK}, relay at {client.contract_address}")
        print(f"Forks tracked: {client.session().get_no_of_forks()}")

        if not client.is_block(BLOCK_HASH):
            print(f"Block {BLOCK_HASH} is not stored in the relay")
            return 1

        header = client.get_header(BLOCK_HASH)
        print(f"Block number:     {header.block_number}")
        print(f"Parent:           0x{header.parent.hex()}")
        print(f"Total difficulty: {header.total_difficulty}")
        print(f"Locked until:     {header.locked_until}")
        print(f"Unlocked:         {client.is_unlocked(BLOCK_HASH)}")

        if TX_HASH:
            included = client.verify_transaction(TX_HASH, BLOCK_HASH, confirmations=6)
            print(f"Transaction {TX_HASH} verified: {included}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
