#!/usr/bin/env python3
"""
nexys2epp - Command Line Interface

Read or write an EPP register on a Nexys2 board programmed with
dpimref.vhd (or similar).
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from . import __version__
from .protocol.engine import read_register, write_register
from .protocol.errors import TransactionError
from .protocol.framing import MAX_COUNT
from .transport.usb_connection import PRODUCT_ID, VENDOR_ID, USBConnection

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_USAGE = 2
EXIT_BOTH_DIRECTIONS = 3
EXIT_NO_DIRECTION = 4
EXIT_CANNOT_OPEN_FILE = 6
EXIT_SHORT_FILE = 7
EXIT_SHORT_STDIN = 8
EXIT_DEVICE_OPEN = 9
EXIT_TRANSACTION = 10
EXIT_READ_LENGTH_REQUIRED = 90
EXIT_WRITE_LENGTH_REQUIRED = 91


def _uint(text: str) -> int:
    """Parse a decimal or 0x-prefixed unsigned integer."""
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer: {text!r}")
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nexys2epp",
        description="Interact with a Nexys2 programmed with dpimref.vhd (or similar).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    nexys2epp -r -a 2 -l 4 -f out.bin     Read 4 bytes from register 2
    nexys2epp -w -a 5 -f in.bin           Write in.bin to register 5
    printf '\\xde\\xad' | nexys2epp -w -a 5 -l 2
        """
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--vid", type=_uint, default=VENDOR_ID,
                        metavar="<vendorID>", help="vendor ID (default 0x1443)")
    parser.add_argument("-p", "--pid", type=_uint, default=PRODUCT_ID,
                        metavar="<productID>", help="product ID (default 0x0005)")
    parser.add_argument("-r", "--read", action="store_true", help="read from the device")
    parser.add_argument("-w", "--write", action="store_true", help="write to the device")
    parser.add_argument("-f", "--file", metavar="<fileName>",
                        help="file to read from or write to (default stdin/stdout)")
    parser.add_argument("-l", "--len", type=_uint, dest="length", metavar="<length>",
                        help="the number of bytes to read or write "
                             "(or guess from input file length)")
    parser.add_argument("-a", "--addr", type=_uint, required=True, metavar="<address>",
                        help="register to read from or write to")
    parser.add_argument("--verbose", action="count", default=0,
                        help="Increase verbosity (--verbose, --verbose --verbose)")
    return parser


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_payload(args, length: int | None) -> tuple[int, bytes]:
    """Return (exit code, payload) for a write."""
    if args.file:
        try:
            with open(args.file, "rb") as f:
                if length is None:
                    length = os.fstat(f.fileno()).st_size
                data = f.read(length)
        except OSError as e:
            print(f"Cannot open file {args.file} for reading: {e}", file=sys.stderr)
            return EXIT_CANNOT_OPEN_FILE, b""
        if len(data) != length:
            print(f"Whilst reading from \"{args.file}\", expected {length} bytes "
                  f"but got {len(data)}", file=sys.stderr)
            return EXIT_SHORT_FILE, b""
        return EXIT_OK, data

    if length is None:
        print("You must specify how many bytes you wish to write!", file=sys.stderr)
        return EXIT_WRITE_LENGTH_REQUIRED, b""
    data = sys.stdin.buffer.read(length)
    if len(data) != length:
        return EXIT_SHORT_STDIN, b""
    return EXIT_OK, data


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.read and args.write:
        print("You cannot supply both -r and -w", file=sys.stderr)
        return EXIT_BOTH_DIRECTIONS
    if not args.read and not args.write:
        print("You must supply either -r or -w", file=sys.stderr)
        return EXIT_NO_DIRECTION
    if args.addr > 0xFF:
        parser.print_usage(sys.stderr)
        print(f"nexys2epp: register address must be 0-255, got {args.addr}", file=sys.stderr)
        return EXIT_USAGE
    if args.length is not None and args.length > MAX_COUNT:
        parser.print_usage(sys.stderr)
        print(f"nexys2epp: length must fit in 32 bits, got {args.length}", file=sys.stderr)
        return EXIT_USAGE

    payload = b""
    if args.write:
        code, payload = _load_payload(args, args.length)
        if code != EXIT_OK:
            return code
        length = len(payload)
        if length > MAX_COUNT:
            parser.print_usage(sys.stderr)
            print(f"nexys2epp: {args.file} is {length} bytes; "
                  f"at most {MAX_COUNT} can be written", file=sys.stderr)
            return EXIT_USAGE
    else:
        if args.length is None:
            print("You must specify how many bytes you wish to read!", file=sys.stderr)
            return EXIT_READ_LENGTH_REQUIRED
        length = args.length

    out = None
    if args.read and args.file:
        try:
            out = open(args.file, "wb")
        except OSError as e:
            print(f"Cannot open file {args.file} for writing: {e}", file=sys.stderr)
            return EXIT_CANNOT_OPEN_FILE

    try:
        conn = USBConnection(vendor_id=args.vid, product_id=args.pid)
        try:
            conn.open()
        except ConnectionError as e:
            print(f"Could not open device: {e}", file=sys.stderr)
            return EXIT_DEVICE_OPEN

        try:
            if args.write:
                write_register(conn, args.addr, payload)
            else:
                data = read_register(conn, args.addr, length)
                if out is not None:
                    out.write(data)
                else:
                    sys.stdout.buffer.write(data)
                    sys.stdout.buffer.flush()
        except TransactionError as e:
            op = "writeRegister" if args.write else "readRegister"
            print(f"{op}() failed at step {e.step} (transfer {e.transfer}): {e}",
                  file=sys.stderr)
            return EXIT_TRANSACTION
        finally:
            conn.close()
    finally:
        if out is not None:
            out.close()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
