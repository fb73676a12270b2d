from __future__ import annotations

import os
import stat
from typing import BinaryIO, Callable, Iterator, List, Optional

from .codec import Codec
from .errors import ArchiveIOError, DestinationExists, MalformedArchive
from .records import ArchiveHeader, FileEntry, read_archive_header, read_entry


class ArchiveReader:
    """Sequential reader over an archive stream.

    The stream is read strictly forward, so stdin and pipes work. Entries can
    only be iterated once.
    """

    def __init__(self, fh: BinaryIO):
        self.fh = fh
        self.header: Optional[ArchiveHeader] = None
        self._consumed = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        pass

    def open(self) -> ArchiveHeader:
        if self.header is None:
            try:
                self.header = read_archive_header(self.fh)
            except OSError as exc:
                raise ArchiveIOError(f"Cannot read archive: {exc}") from exc
        return self.header

    def entries(
        self,
        skip_payload: bool = False,
        select: Optional[Callable[[str], bool]] = None,
    ) -> Iterator[FileEntry]:
        """Decode the declared number of entries, then check for trailing data.

        With ``skip_payload`` (or for names ``select`` rejects) the payload bytes
        are consumed and discarded and ``FileEntry.payload`` is None.
        """
        header = self.open()
        if self._consumed:
            raise RuntimeError("Archive entries were already read")
        self._consumed = True
        try:
            for _ in range(header.entry_count):
                yield read_entry(self.fh, skip_payload=skip_payload, select=select)
            if self.fh.read(1):
                raise MalformedArchive(
                    f"Trailing data after the {header.entry_count} declared entries"
                )
        except OSError as exc:
            raise ArchiveIOError(f"Cannot read archive: {exc}") from exc

    def list(self) -> List[FileEntry]:
        return list(self.entries(skip_payload=True))

    def extract(self, entry: FileEntry, out_path: str) -> None:
        """Write ``entry`` to ``out_path`` and restore its mode and timestamps.

        Raises DestinationExists when ``out_path`` is already present.
        """
        if entry.payload is None:
            raise ValueError(f"Entry {entry.name!r} was read without its payload")
        if os.path.lexists(out_path):
            raise DestinationExists(out_path)
        data = Codec(entry.header.compression).decompress(
            entry.payload, max_len=entry.header.uncompressed_len
        )
        if len(data) != entry.header.uncompressed_len:
            raise MalformedArchive(
                f"Entry {entry.name!r} decoded to {len(data)} bytes, expected {entry.header.uncompressed_len}"
            )
        try:
            os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
            try:
                wf = open(out_path, "xb")
            except FileExistsError:
                raise DestinationExists(out_path)
            with wf:
                wf.write(data)
            # after the content write, so the write does not clobber them
            restore_metadata(out_path, entry)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot write {out_path}: {exc.strerror or exc}", out_path) from exc


def restore_metadata(path: str, entry: FileEntry) -> None:
    h = entry.header
    os.chmod(path, stat.S_IMODE(h.mode))
    os.utime(path, (h.accessed, h.modified))
