#!/usr/bin/env python3
"""
Example of following SubmitBlockHeader events.

Past events are read first, then new ones are printed as the relay accepts
them. A second, callback based watch runs alongside and counts headers.
Stop with Ctrl+C.
"""
import logging
import os
import threading

from testimonium_sdk import CancelToken, TestimoniumClient, WatchOptions

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    NETWORK = os.environ.get("NETWORK", "local")
    FROM_BLOCK = int(os.environ.get("FROM_BLOCK", "0"))

    cancel = CancelToken()
    seen = []
    lock = threading.Lock()

    def count(event):
        with lock:
            seen.append(event.hash)

    with TestimoniumClient.from_network(NETWORK) as client:
        counter = client.relay.watch_submit_block_header(WatchOptions(cancel=cancel), count)
        try:
            with client.header_events(FROM_BLOCK, cancel=cancel) as events:
                for event in events:
                    print(
                        f"block {event.raw.block_number}: header 0x{event.hash.hex()} "
                        f"(parent 0x{event.parent.hex()}, nonce {event.nonce})"
                    )
                if events.error is not None:
                    logger.error(f"Event stream failed: {events.error}")
        except KeyboardInterrupt:
            cancel.cancel()
        finally:
            counter.unsubscribe()
        with lock:
            logger.info(f"Callback watch saw {len(seen)} new headers")


if __name__ == "__main__":
    main()
