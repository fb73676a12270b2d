from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional

from .codec import Codec
from .constants import DEFAULT_CODEC_ID, FORMAT_VERSION
from .errors import ArchiveIOError, MalformedArchive, NoInputPaths
from .pathutil import arc_name, is_dotfile
from .records import EntryHeader, FileEntry, write_archive_header, write_entry
from .walker import walk


@dataclass
class InputFile:
    name: str
    path: str  # canonical (fully resolved) filesystem path
    size: int = 0  # st_size when collected; progress reporting only


def collect_inputs(roots: Iterable[str], include_dotfiles: bool = False) -> List[InputFile]:
    """Walk ``roots`` and return the files to archive, sorted and deduplicated.

    Files are ordered by canonical path; two inputs resolving to the same
    physical file keep only the first one found.
    """
    roots = list(roots)
    if not roots:
        raise NoInputPaths("Expected one or more files or directories to archive")

    def _descend(is_dir: bool, path: str) -> bool:
        return include_dotfiles or not is_dotfile(path)

    found: List[InputFile] = []
    for root in roots:
        if not include_dotfiles and is_dotfile(root):
            continue
        try:
            for is_dir, path in walk(root, _descend):
                if is_dir:
                    continue
                canonical = str(Path(path).resolve(strict=True))
                st = os.stat(canonical)
                # sockets, FIFOs and devices are not archived
                if not stat.S_ISREG(st.st_mode):
                    continue
                found.append(InputFile(name=arc_name(root, path), path=canonical, size=st.st_size))
        except OSError as exc:
            raise ArchiveIOError(f"Cannot read {exc.filename or root}: {exc.strerror or exc}", exc.filename) from exc

    # stable sort keeps the first-seen name for each canonical path
    found.sort(key=lambda f: f.path)
    unique: List[InputFile] = []
    for f in found:
        if unique and unique[-1].path == f.path:
            continue
        unique.append(f)
    return unique


def _epoch_seconds(value: float) -> int:
    return max(0, int(value))


class ArchiveWriter:
    """Streaming writer: one header, then exactly ``entry_count`` entries."""

    def __init__(self, fh: BinaryIO, entry_count: int, codec: Optional[Codec] = None):
        self.fh = fh
        self.entry_count = entry_count
        self.codec = codec or Codec(DEFAULT_CODEC_ID)
        self.written = 0
        self.bytes_in = 0
        self.bytes_out = 0
        self._started = False

    def __enter__(self):
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.finish()

    def begin(self):
        if self._started:
            return
        try:
            write_archive_header(self.fh, self.entry_count, FORMAT_VERSION)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot write archive header: {exc}") from exc
        self._started = True

    def add_file(self, arc_path: str, fs_path: str) -> FileEntry:
        """Read, compress and append one file; returns the entry (payload included)."""
        if not self._started:
            raise RuntimeError("Archive not started")
        if self.written >= self.entry_count:
            raise MalformedArchive(f"More entries than the declared {self.entry_count}")
        try:
            st = os.stat(fs_path)
            with open(fs_path, "rb") as rf:
                raw = rf.read()
        except OSError as exc:
            raise ArchiveIOError(f"Cannot read {fs_path}: {exc.strerror or exc}", fs_path) from exc
        payload = self.codec.compress(raw)
        entry = FileEntry(
            header=EntryHeader(
                modified=_epoch_seconds(st.st_mtime),
                accessed=_epoch_seconds(st.st_atime),
                mode=st.st_mode,
                name_len=len(arc_path.encode("utf-8")),
                compression=self.codec.codec_id,
                uncompressed_len=len(raw),
                stored_len=len(payload),
            ),
            name=arc_path,
            payload=payload,
        )
        try:
            write_entry(self.fh, entry)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot write entry {arc_path}: {exc}") from exc
        self.written += 1
        self.bytes_in += len(raw)
        self.bytes_out += len(payload)
        return entry

    def finish(self):
        if self.written != self.entry_count:
            raise MalformedArchive(
                f"Archive declares {self.entry_count} entries but {self.written} were written"
            )
        try:
            self.fh.flush()
        except OSError as exc:
            raise ArchiveIOError(f"Cannot flush archive: {exc}") from exc


def pack_paths(
    roots: Iterable[str],
    fh: BinaryIO,
    *,
    include_dotfiles: bool = False,
    codec: Optional[Codec] = None,
) -> List[FileEntry]:
    """Pack ``roots`` into ``fh``. Returns the entries written, without payloads."""
    files = collect_inputs(roots, include_dotfiles=include_dotfiles)
    entries: List[FileEntry] = []
    with ArchiveWriter(fh, len(files), codec) as w:
        for f in files:
            e = w.add_file(f.name, f.path)
            e.payload = None
            entries.append(e)
    return entries
