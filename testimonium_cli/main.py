"""
testimonium-cli: inspect a Testimonium relay from the command line.

Commands:
    events   Print SubmitBlockHeader events from a start block, then follow new ones
    header   Print a stored header
"""
import argparse
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, TextIO

from testimonium_sdk import (
    CancelToken, SubmitBlockHeader, TestimoniumClient, TestimoniumError
)

logger = logging.getLogger("testimonium_cli")

SEPARATOR = "-" * 53
BOLD = "\033[1m"
RESET = "\033[0m"


def should_use_color(no_color: bool = False, stream: TextIO = sys.stdout) -> bool:
    """Color only interactive output, honouring --no-color and NO_COLOR."""
    if no_color or os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def _display(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def event_values(event: SubmitBlockHeader) -> Dict[str, Any]:
    """Decoded fields keyed by their ABI names, bytes shown as hex."""
    return {
        key: _display(value)
        for key, value in event.model_dump(by_alias=True, exclude={"raw"}).items()
    }


def format_event(event: SubmitBlockHeader, color: bool = False, now: Optional[datetime] = None) -> str:
    name = f"{BOLD}SubmitBlockHeader{RESET}" if color else "SubmitBlockHeader"
    raw = event.raw
    lines = [
        f"Date:  {(now or datetime.now()).isoformat(sep=' ', timespec='seconds')}",
        f"Event:  {name}",
        f"Block:  {raw.block_number} (tx {_display(raw.transaction_hash)}, log {raw.log_index})",
        f"Return values: {event_values(event)}",
        SEPARATOR,
    ]
    return "\n".join(lines)


def _client(args: argparse.Namespace) -> TestimoniumClient:
    return TestimoniumClient.from_network(
        args.network,
        rpc_url=args.rpc,
        contract_address=args.contract,
    )


def cmd_events(args: argparse.Namespace) -> int:
    color = should_use_color(args.no_color)
    cancel = CancelToken()
    with _client(args) as client:
        end = args.to_block
        if args.no_follow and end is None:
            end = client.transport.latest_block()
        with client.header_events(args.from_block, end, cancel=cancel) as events:
            try:
                for event in events:
                    print(format_event(event, color=color), flush=True)
            except KeyboardInterrupt:
                cancel.cancel()
                logger.debug("Interrupted, stopping")
            if events.error is not None:
                print(f"Error: {events.error}", file=sys.stderr)
                return 1
    return 0


def cmd_header(args: argparse.Namespace) -> int:
    with _client(args) as client:
        if not client.is_block(args.block_hash):
            print(f"Block {args.block_hash} is not stored in the relay", file=sys.stderr)
            return 1
        header = client.get_header(args.block_hash)
        for key, value in header.model_dump(by_alias=True).items():
            print(f"{key}: {_display(value)}")
        print(f"unlocked: {client.is_unlocked(args.block_hash)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="testimonium-cli",
        description="Inspect a Testimonium relay contract."
    )
    parser.add_argument("--network", default="local", help="Network from the packaged configuration")
    parser.add_argument("--rpc", help="RPC endpoint, overrides the network configuration")
    parser.add_argument("--contract", help="Testimonium address, overrides the network configuration")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    commands = parser.add_subparsers(dest="command", required=True)

    events = commands.add_parser("events", help="Print SubmitBlockHeader events")
    events.add_argument("--from-block", type=int, default=0, help="First block to read (default: 0)")
    events.add_argument("--to-block", type=int, help="Last block to read; implies --no-follow")
    events.add_argument("--no-follow", action="store_true", help="Stop at the current head instead of following")
    events.set_defaults(func=cmd_events)

    header = commands.add_parser("header", help="Print a stored header")
    header.add_argument("block_hash", help="Block hash (hex)")
    header.set_defaults(func=cmd_header)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    try:
        return args.func(args)
    except (TestimoniumError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
