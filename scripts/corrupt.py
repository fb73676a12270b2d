from __future__ import annotations

import argparse
import os
import random
import sys
from typing import Optional

from packrat.errors import PackratError
from packrat.records import _ARCHIVE_HDR_STRUCT, _ENTRY_HDR_STRUCT, read_archive_header


def _flip_byte(path: str, offset: int, xor_val: int = 0xFF) -> None:
    if offset < 0:
        raise ValueError("Offset must be non-negative")
    with open(path, "r+b") as f:
        f.seek(offset)
        b = f.read(1)
        if not b:
            raise ValueError("Offset beyond end of file")
        f.seek(offset)
        f.write(bytes([b[0] ^ (xor_val & 0xFF)]))
        f.flush()
        os.fsync(f.fileno())


def first_payload_offset(path: str) -> tuple[int, int]:
    """Return (offset, stored_len) of the first entry's payload."""
    with open(path, "rb") as f:
        header = read_archive_header(f)
        if header.entry_count == 0:
            raise ValueError("Archive has no entries")
        raw = f.read(_ENTRY_HDR_STRUCT.size)
        if len(raw) != _ENTRY_HDR_STRUCT.size:
            raise ValueError("First entry header is truncated")
        _m, _a, _mode, name_len, _codec, _ulen, stored_len = _ENTRY_HDR_STRUCT.unpack(raw)
    return _ARCHIVE_HDR_STRUCT.size + _ENTRY_HDR_STRUCT.size + name_len, stored_len


def cmd_by_offset(args: argparse.Namespace) -> None:
    _flip_byte(args.archive, args.offset, xor_val=args.xor)
    print(f"Flipped 1 byte at offset {args.offset}")


def cmd_first_payload(args: argparse.Namespace) -> None:
    off, length = first_payload_offset(args.archive)
    if args.within < 0 or args.within >= length:
        raise ValueError(f"--within must be within payload length (0..{length - 1})")
    _flip_byte(args.archive, off + args.within, xor_val=args.xor)
    print(f"Flipped 1 byte in first payload at archive offset {off + args.within}")


def cmd_truncate(args: argparse.Namespace) -> None:
    size = os.path.getsize(args.archive)
    if args.keep is not None:
        new_size = args.keep
    else:
        off, length = first_payload_offset(args.archive)
        new_size = off + length // 2
    if new_size < 0 or new_size >= size:
        raise ValueError(f"Truncation point must be within the archive (0..{size - 1})")
    with open(args.archive, "r+b") as f:
        f.truncate(new_size)
    print(f"Truncated archive from {size} to {new_size} bytes")


def cmd_random(args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    flips = 0
    size = os.path.getsize(args.archive)
    with open(args.archive, "r+b") as f:
        for _ in range(args.count):
            pos = rng.randrange(0, size)
            f.seek(pos)
            b = f.read(1)
            if not b:
                continue
            f.seek(pos)
            f.write(bytes([b[0] ^ (args.xor & 0xFF)]))
            flips += 1
        f.flush()
        os.fsync(f.fileno())
    print(f"Flipped {flips} byte(s) at random offsets")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="packrat.corrupt", description="Corrupt packrat archives for testing")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_off = sub.add_parser("by-offset", help="Flip one byte at an absolute archive offset")
    p_off.add_argument("archive", help="Path to archive")
    p_off.add_argument("--offset", type=int, required=True, help="Absolute byte offset in archive")
    p_off.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_off.set_defaults(func=cmd_by_offset)

    p_first = sub.add_parser("first-payload", help="Flip a byte in the first entry's payload")
    p_first.add_argument("archive", help="Path to archive")
    p_first.add_argument("--within", type=int, default=0, help="Byte offset within payload (default 0)")
    p_first.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_first.set_defaults(func=cmd_first_payload)

    p_trunc = sub.add_parser("truncate", help="Cut the archive short (default: halfway into the first payload)")
    p_trunc.add_argument("archive", help="Path to archive")
    p_trunc.add_argument("--keep", type=int, default=None, help="Number of leading bytes to keep")
    p_trunc.set_defaults(func=cmd_truncate)

    p_rand = sub.add_parser("random", help="Flip N random bytes anywhere in the archive")
    p_rand.add_argument("archive", help="Path to archive")
    p_rand.add_argument("--count", type=int, default=1, help="Number of random byte flips (default 1)")
    p_rand.add_argument("--seed", type=int, default=None, help="PRNG seed for reproducibility")
    p_rand.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_rand.set_defaults(func=cmd_random)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (PackratError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
