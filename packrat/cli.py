from __future__ import annotations

import argparse
import contextlib
import os
import sys
import time
from typing import BinaryIO, Iterator, List, Optional

from packrat.codec import codec_from_name
from packrat.constants import CODEC_NAMES
from packrat.errors import (
    ArchiveIOError,
    DestinationExists,
    MalformedArchive,
    PackratError,
)
from packrat.pathutil import norm_path
from packrat.reader import ArchiveReader
from packrat.writer import ArchiveWriter, collect_inputs


def _err(msg: str) -> None:
    print(msg, file=sys.stderr)


@contextlib.contextmanager
def _open_input(path: Optional[str]) -> Iterator[BinaryIO]:
    """Archive source: the named file, or stdin when ``path`` is None."""
    if path is None:
        yield sys.stdin.buffer
        return
    try:
        fh = open(path, "rb")
    except OSError as exc:
        raise ArchiveIOError(f"Cannot open archive {path}: {exc.strerror or exc}", path) from exc
    with fh:
        yield fh


@contextlib.contextmanager
def _open_output(path: Optional[str]) -> Iterator[BinaryIO]:
    """Archive sink: the named file, or stdout when ``path`` is None."""
    if path is None:
        yield sys.stdout.buffer
        return
    try:
        fh = open(path, "wb")
    except OSError as exc:
        raise ArchiveIOError(f"Cannot create archive {path}: {exc.strerror or exc}", path) from exc
    with fh:
        yield fh


def cmd_pack(
    inputs: List[str],
    *,
    output: Optional[str] = None,
    include_dotfiles: bool = False,
    compression: str = "brotli",
    quiet: bool = False,
) -> bool:
    """Pack files and directories into a new archive.

    Args:
        inputs: File or directory paths to store.
        output: Archive path to write; stdout when None.
        include_dotfiles: Also store files and directories whose name starts with '.'.
        compression: "none", "brotli" or "default".
        quiet: Limit stderr output to the final summary.
    """
    codec = codec_from_name(compression)
    files = collect_inputs(inputs, include_dotfiles=include_dotfiles)

    total_bytes = sum(f.size for f in files) or 1
    t0 = time.time()

    with _open_output(output) as out:
        with ArchiveWriter(out, len(files), codec) as w:
            for f in files:
                w.add_file(f.name, f.path)
                if not quiet:
                    # files may have grown since they were collected
                    pct = min(100.0, w.bytes_in * 100.0 / total_bytes)
                    _err(f" {pct:6.2f}% packing: {f.name}")

    dt = max(0.000001, time.time() - t0)
    mib_in = w.bytes_in / (1024.0 * 1024.0)
    mib_out = w.bytes_out / (1024.0 * 1024.0)
    _err(
        f"Done: {w.written} files; {mib_in:.2f} MiB -> {mib_out:.2f} MiB "
        f"({codec.name}) in {dt:.1f}s"
    )
    return True


def cmd_read(input: Optional[str] = None) -> bool:
    """List archive entries on stdout without touching payloads.

    Args:
        input: Archive path; stdin when None.
    """
    with _open_input(input) as fh:
        r = ArchiveReader(fh)
        header = r.open()
        print(f"Format version: {header.version}; File count: {header.entry_count}")
        for e in r.entries(skip_payload=True):
            h = e.header
            print(
                f"{h.mode:o}\t{CODEC_NAMES[h.compression]}\t{h.uncompressed_len}\t"
                f"{h.stored_len}\t{h.modified}\t{e.name}"
            )
    sys.stdout.flush()
    return True


def cmd_unpack(
    input: Optional[str] = None,
    *,
    outdir: Optional[str] = None,
    paths: Optional[List[str]] = None,
    quiet: bool = False,
) -> bool:
    """Unpack archive entries below ``outdir``.

    Existing destinations are never overwritten: they are reported and
    skipped. Any other failure aborts the run.

    Args:
        input: Archive path; stdin when None.
        outdir: Restoration root; the current directory when None.
        paths: Optional archive names (files or directory prefixes) to restore.
        quiet: Limit stderr output to warnings and the final summary.
    """
    outdir = outdir or os.getcwd()
    select = None
    if paths:
        wanted = [norm_path(p) for p in paths]

        def select(name: str) -> bool:
            return any(name == rp or name.startswith(rp + "/") for rp in wanted)

    t0 = time.time()
    extracted = 0
    skipped = 0
    processed_bytes = 0
    with _open_input(input) as fh:
        r = ArchiveReader(fh)
        total = r.open().entry_count
        for i, e in enumerate(r.entries(select=select), start=1):
            if e.payload is None:
                continue
            dst = os.path.join(outdir, *e.name.split("/"))
            try:
                r.extract(e, dst)
            except DestinationExists:
                _err(f"  skipping: {e.name} (exists)")
                skipped += 1
                continue
            extracted += 1
            processed_bytes += e.header.uncompressed_len
            if not quiet:
                _err(f" unpacking: {i:>4}/{total:<4} {e.name}")

    dt = max(0.000001, time.time() - t0)
    mib = processed_bytes / (1024.0 * 1024.0)
    _err(f"Done: extracted {extracted}/{total} files ({mib:.2f} MiB) in {dt:.1f}s; skipped={skipped}")
    return True


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _add_common_options(p: argparse.ArgumentParser, *, suppress: bool) -> None:
    # Subcommand copies use SUPPRESS so they only override values actually given
    def d(value):
        return argparse.SUPPRESS if suppress else value

    p.add_argument("-i", "-input", "--input", dest="input", default=d(None), help="Archive to read (default: stdin)")
    p.add_argument(
        "-o", "-output", "--output", dest="output", default=d(None),
        help="Archive to write for pack (default: stdout); target directory for unpack (default: cwd)",
    )
    p.add_argument(
        "-include-dotfiles", "--include-dotfiles", dest="include_dotfiles", action="store_true",
        default=d(False), help="Also pack files and directories whose name starts with '.'",
    )
    p.add_argument(
        "-compress", "--compress", dest="compress", type=str.lower,
        choices=["none", "brotli", "default"], default=d("brotli"),
        help="Compression for pack (default: brotli)",
    )
    p.add_argument("-q", "--quiet", dest="quiet", action="store_true", default=d(False), help="limit outputs to summaries only")


def build_parser() -> argparse.ArgumentParser:
    ap = _ArgumentParser(
        prog="packrat",
        description="Pack files into a single streamable archive, then list or restore them",
        allow_abbrev=False,
    )
    _add_common_options(ap, suppress=False)
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", help="Pack files and directories", allow_abbrev=False)
    ap_pack.add_argument("inputs", nargs="*", help="Input files/directories")
    _add_common_options(ap_pack, suppress=True)

    ap_unpack = sub.add_parser("unpack", help="Restore files from an archive", allow_abbrev=False)
    ap_unpack.add_argument("paths", nargs="*", help="Specific archive paths to restore (files or directories)")
    _add_common_options(ap_unpack, suppress=True)

    ap_read = sub.add_parser("read", help="List archive contents", allow_abbrev=False)
    _add_common_options(ap_read, suppress=True)
    return ap


def main(argv: List[str] | None = None):
    ap = build_parser()
    args = ap.parse_args(argv)
    try:
        if args.cmd == "pack":
            cmd_pack(
                args.inputs,
                output=args.output,
                include_dotfiles=args.include_dotfiles,
                compression=args.compress,
                quiet=args.quiet,
            )
        elif args.cmd == "unpack":
            cmd_unpack(args.input, outdir=args.output, paths=args.paths, quiet=args.quiet)
        elif args.cmd == "read":
            cmd_read(args.input)
        else:
            raise RuntimeError("Unknown command")
    except MalformedArchive as e:
        _err(f"Error: corrupt archive: {e}")
        sys.exit(1)
    except (PackratError, OSError, ValueError, RuntimeError) as e:
        _err(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
