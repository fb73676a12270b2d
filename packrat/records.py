from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

from .constants import (
    CODEC_NAMES,
    CODEC_NONE,
    FORMAT_VERSION,
    MAX_ENTRY_COUNT,
    MAX_NAME_LEN,
    SKIP_CHUNK_SIZE,
)
from .errors import (
    InvalidNameEncoding,
    MalformedArchive,
    NameTooLong,
    TruncatedArchive,
    UnsupportedCompressionTag,
    UnsupportedVersion,
)
from .pathutil import norm_path


# Archive header (fixed 8 bytes)
#  - version u32
#  - entry_count u32
_ARCHIVE_HDR_STRUCT = struct.Struct("<II")

# Entry header (fixed 39 bytes), followed by name_len name bytes and
# stored_len payload bytes:
#  - modified u64 (epoch seconds)
#  - accessed u64 (epoch seconds)
#  - mode u32 (raw st_mode)
#  - name_len u16
#  - compression u8
#  - uncompressed_len u64
#  - stored_len u64
_ENTRY_HDR_STRUCT = struct.Struct("<QQIHBQQ")


@dataclass
class ArchiveHeader:
    version: int
    entry_count: int

    def pack(self) -> bytes:
        if not 0 <= self.entry_count <= MAX_ENTRY_COUNT:
            raise ValueError(f"entry count out of range: {self.entry_count}")
        return _ARCHIVE_HDR_STRUCT.pack(self.version, self.entry_count)


@dataclass
class EntryHeader:
    modified: int
    accessed: int
    mode: int
    name_len: int
    compression: int
    uncompressed_len: int
    stored_len: int

    def pack(self) -> bytes:
        return _ENTRY_HDR_STRUCT.pack(
            self.modified,
            self.accessed,
            self.mode,
            self.name_len,
            self.compression,
            self.uncompressed_len,
            self.stored_len,
        )


@dataclass
class FileEntry:
    header: EntryHeader
    name: str
    # None when the payload was skipped (list mode)
    payload: Optional[bytes] = None

    @property
    def compression_name(self) -> str:
        return CODEC_NAMES.get(self.header.compression, str(self.header.compression))


def read_exact(f: BinaryIO, n: int) -> bytes:
    # n may come from an untrusted header; never ask the stream for more than a chunk
    chunks = []
    remaining = n
    while remaining > 0:
        b = f.read(min(remaining, SKIP_CHUNK_SIZE))
        if not b:
            raise TruncatedArchive(f"Unexpected EOF: wanted {n} bytes, got {n - remaining}")
        chunks.append(b)
        remaining -= len(b)
    return b"".join(chunks)


def skip_exact(f: BinaryIO, n: int) -> None:
    """Consume and discard exactly ``n`` bytes without buffering them all."""
    remaining = n
    while remaining > 0:
        b = f.read(min(remaining, SKIP_CHUNK_SIZE))
        if not b:
            raise TruncatedArchive(f"Unexpected EOF: payload short by {remaining} bytes")
        remaining -= len(b)


def write_archive_header(f: BinaryIO, entry_count: int, version: int = FORMAT_VERSION) -> None:
    f.write(ArchiveHeader(version=version, entry_count=entry_count).pack())


def read_archive_header(f: BinaryIO) -> ArchiveHeader:
    raw = f.read(_ARCHIVE_HDR_STRUCT.size)
    if len(raw) != _ARCHIVE_HDR_STRUCT.size:
        raise TruncatedArchive("Archive header too short")
    version, entry_count = _ARCHIVE_HDR_STRUCT.unpack(raw)
    if version > FORMAT_VERSION:
        raise UnsupportedVersion(f"Unsupported archive format version {version}")
    return ArchiveHeader(version=version, entry_count=entry_count)


def build_entry_header(
    *,
    name: str,
    modified: int,
    accessed: int,
    mode: int,
    compression: int,
    uncompressed_len: int,
    stored_len: int,
) -> bytes:
    name_bytes = name.encode("utf-8")
    if len(name_bytes) > MAX_NAME_LEN:
        raise NameTooLong(f"Name exceeds {MAX_NAME_LEN} bytes: {name[:64]}...")
    if "\x00" in name:
        raise ValueError("Name may not contain NUL")
    hdr = EntryHeader(
        modified=modified,
        accessed=accessed,
        mode=mode & 0xFFFFFFFF,
        name_len=len(name_bytes),
        compression=compression,
        uncompressed_len=uncompressed_len,
        stored_len=stored_len,
    )
    return hdr.pack() + name_bytes


def write_entry(f: BinaryIO, entry: FileEntry) -> None:
    if entry.payload is None:
        raise ValueError("Entry has no payload to write")
    h = entry.header
    f.write(
        build_entry_header(
            name=entry.name,
            modified=h.modified,
            accessed=h.accessed,
            mode=h.mode,
            compression=h.compression,
            uncompressed_len=h.uncompressed_len,
            stored_len=len(entry.payload),
        )
    )
    f.write(entry.payload)


def read_entry(
    f: BinaryIO,
    skip_payload: bool = False,
    select: Optional[Callable[[str], bool]] = None,
) -> FileEntry:
    """Decode one entry. The payload is skipped when ``skip_payload`` is set or
    when ``select`` rejects the entry name; such entries carry ``payload=None``.
    """
    raw = read_exact(f, _ENTRY_HDR_STRUCT.size)
    hdr = EntryHeader(*_ENTRY_HDR_STRUCT.unpack(raw))
    if hdr.compression not in CODEC_NAMES:
        raise UnsupportedCompressionTag(hdr.compression)
    if hdr.compression == CODEC_NONE and hdr.stored_len != hdr.uncompressed_len:
        raise MalformedArchive("Uncompressed entry with stored_len != uncompressed_len")
    name_raw = read_exact(f, hdr.name_len)
    try:
        name = name_raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidNameEncoding(f"Entry name is not valid UTF-8: {name_raw!r}") from e
    try:
        name = norm_path(name)
    except ValueError as e:
        raise MalformedArchive(f"Invalid entry name {name!r}: {e}") from e
    if skip_payload or (select is not None and not select(name)):
        skip_exact(f, hdr.stored_len)
        payload = None
    else:
        payload = read_exact(f, hdr.stored_len)
    return FileEntry(header=hdr, name=name, payload=payload)
