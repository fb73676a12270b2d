from __future__ import annotations

import io
import os
import struct
import unittest

from packrat.codec import BrotliParams, Codec, DEFAULT_BROTLI_PARAMS, codec_from_name
from packrat.constants import CODEC_BROTLI, CODEC_NONE, MAX_NAME_LEN
from packrat.errors import (
    InvalidNameEncoding,
    MalformedArchive,
    NameTooLong,
    TruncatedArchive,
    UnsupportedCompressionTag,
    UnsupportedVersion,
)
from packrat.pathutil import arc_name, is_dotfile, norm_path
from packrat.records import (
    EntryHeader,
    FileEntry,
    build_entry_header,
    read_archive_header,
    read_entry,
    write_archive_header,
    write_entry,
)


def _raw_entry(name: bytes, payload: bytes, *, compression: int = CODEC_NONE, ulen=None, stored=None) -> bytes:
    hdr = struct.pack(
        "<QQIHBQQ",
        1_500_000_000,
        1_600_000_000,
        0o100644,
        len(name),
        compression,
        len(payload) if ulen is None else ulen,
        len(payload) if stored is None else stored,
    )
    return hdr + name + payload


class HeaderCodecTests(unittest.TestCase):
    def test_archive_header_layout(self):
        buf = io.BytesIO()
        write_archive_header(buf, 3)
        self.assertEqual(buf.getvalue(), b"\x00\x00\x00\x00\x03\x00\x00\x00")
        buf.seek(0)
        h = read_archive_header(buf)
        self.assertEqual((h.version, h.entry_count), (0, 3))

    def test_archive_header_short(self):
        with self.assertRaises(TruncatedArchive):
            read_archive_header(io.BytesIO(b"\x00\x00\x00"))

    def test_archive_header_future_version(self):
        with self.assertRaises(UnsupportedVersion):
            read_archive_header(io.BytesIO(struct.pack("<II", 1, 0)))


class EntryCodecTests(unittest.TestCase):
    def test_entry_layout(self):
        entry = FileEntry(
            header=EntryHeader(
                modified=0x0102,
                accessed=7,
                mode=0o100644,
                name_len=0,
                compression=CODEC_NONE,
                uncompressed_len=3,
                stored_len=3,
            ),
            name="d/x.txt",
            payload=b"abc",
        )
        buf = io.BytesIO()
        write_entry(buf, entry)
        raw = buf.getvalue()
        self.assertEqual(len(raw), 39 + 7 + 3)
        self.assertEqual(raw[0:8], struct.pack("<Q", 0x0102))
        self.assertEqual(raw[8:16], struct.pack("<Q", 7))
        self.assertEqual(raw[16:20], struct.pack("<I", 0o100644))
        self.assertEqual(raw[20:22], struct.pack("<H", 7))
        self.assertEqual(raw[22], CODEC_NONE)
        self.assertEqual(raw[23:31], struct.pack("<Q", 3))
        self.assertEqual(raw[31:39], struct.pack("<Q", 3))
        self.assertEqual(raw[39:46], b"d/x.txt")
        self.assertEqual(raw[46:], b"abc")

        decoded = read_entry(io.BytesIO(raw))
        self.assertEqual(decoded.name, "d/x.txt")
        self.assertEqual(decoded.payload, b"abc")
        self.assertEqual(decoded.header.modified, 0x0102)
        self.assertEqual(decoded.header.accessed, 7)
        self.assertEqual(decoded.header.mode, 0o100644)
        self.assertEqual(decoded.header.name_len, 7)

    def test_skip_payload_consumes_exactly(self):
        stream = io.BytesIO(_raw_entry(b"one", b"x" * 1000) + _raw_entry(b"two", b"yz"))
        first = read_entry(stream, skip_payload=True)
        self.assertEqual(first.name, "one")
        self.assertIsNone(first.payload)
        self.assertEqual(first.header.stored_len, 1000)
        second = read_entry(stream)
        self.assertEqual(second.name, "two")
        self.assertEqual(second.payload, b"yz")
        self.assertEqual(stream.read(), b"")

    def test_select_skips_rejected_names(self):
        stream = io.BytesIO(_raw_entry(b"a/keep", b"1") + _raw_entry(b"b/drop", b"2"))
        keep = read_entry(stream, select=lambda n: n.startswith("a/"))
        drop = read_entry(stream, select=lambda n: n.startswith("a/"))
        self.assertEqual(keep.payload, b"1")
        self.assertIsNone(drop.payload)

    def test_truncated_payload(self):
        raw = _raw_entry(b"name", b"abcd", stored=10, ulen=10)
        with self.assertRaises(TruncatedArchive):
            read_entry(io.BytesIO(raw))
        with self.assertRaises(TruncatedArchive):
            read_entry(io.BytesIO(raw), skip_payload=True)

    def test_huge_declared_length_is_truncation(self):
        for stored in (2**63, 2**62, 2**64 - 1):
            with self.subTest(stored=stored):
                raw = _raw_entry(b"bomb", b"abcd", compression=CODEC_BROTLI, ulen=4, stored=stored)
                with self.assertRaises(TruncatedArchive):
                    read_entry(io.BytesIO(raw))
                with self.assertRaises(TruncatedArchive):
                    read_entry(io.BytesIO(raw), skip_payload=True)

    def test_truncated_name(self):
        raw = _raw_entry(b"long-name", b"")[:-3]
        with self.assertRaises(MalformedArchive):
            read_entry(io.BytesIO(raw))

    def test_invalid_utf8_name(self):
        with self.assertRaises(InvalidNameEncoding):
            read_entry(io.BytesIO(_raw_entry(b"\xff\xfe", b"")))

    def test_unknown_compression_tag(self):
        with self.assertRaises(UnsupportedCompressionTag) as cm:
            read_entry(io.BytesIO(_raw_entry(b"x", b"data", compression=7)))
        self.assertEqual(cm.exception.tag, 7)

    def test_uncompressed_length_mismatch(self):
        with self.assertRaises(MalformedArchive):
            read_entry(io.BytesIO(_raw_entry(b"x", b"data", ulen=99)))

    def test_unsafe_names_rejected(self):
        for bad in (b"../evil", b"/etc/passwd", b"a/../../b", b"a\x00b", b""):
            with self.subTest(name=bad):
                with self.assertRaises(MalformedArchive):
                    read_entry(io.BytesIO(_raw_entry(bad, b"")))

    def test_name_too_long(self):
        with self.assertRaises(NameTooLong):
            build_entry_header(
                name="a" * (MAX_NAME_LEN + 1),
                modified=0,
                accessed=0,
                mode=0,
                compression=CODEC_NONE,
                uncompressed_len=0,
                stored_len=0,
            )


class CodecTests(unittest.TestCase):
    def test_none_is_passthrough(self):
        data = os.urandom(257)
        c = Codec(CODEC_NONE)
        self.assertIs(c.compress(data), data)
        self.assertIs(c.decompress(data), data)

    def test_brotli_shrinks_repetitive_data(self):
        data = b"hello world\n" * 1000
        c = Codec(CODEC_BROTLI)
        packed = c.compress(data)
        self.assertLess(len(packed), len(data))
        self.assertEqual(c.decompress(packed), data)

    def test_params_are_shared_and_immutable(self):
        c = Codec(CODEC_BROTLI)
        self.assertIs(c.params, DEFAULT_BROTLI_PARAMS)
        with self.assertRaises(Exception):
            DEFAULT_BROTLI_PARAMS.quality = 1  # type: ignore[misc]
        fast = Codec(CODEC_BROTLI, BrotliParams(quality=1))
        data = b"abc" * 500
        self.assertEqual(Codec(CODEC_BROTLI).decompress(fast.compress(data)), data)

    def test_unknown_tag(self):
        with self.assertRaises(UnsupportedCompressionTag):
            Codec(2)

    def test_corrupt_brotli_stream(self):
        packed = Codec(CODEC_BROTLI).compress(os.urandom(4096))
        with self.assertRaises(MalformedArchive):
            Codec(CODEC_BROTLI).decompress(packed[: len(packed) // 2])

    def test_decode_stops_past_max_len(self):
        data = b"\x00" * (1024 * 1024)
        packed = Codec(CODEC_BROTLI, BrotliParams(quality=5)).compress(data)
        c = Codec(CODEC_BROTLI)
        with self.assertRaises(MalformedArchive):
            c.decompress(packed, max_len=10)
        self.assertEqual(c.decompress(packed, max_len=len(data)), data)

    def test_names(self):
        self.assertEqual(codec_from_name("none").codec_id, CODEC_NONE)
        self.assertEqual(codec_from_name("Brotli").codec_id, CODEC_BROTLI)
        self.assertEqual(codec_from_name("default").codec_id, CODEC_BROTLI)
        with self.assertRaises(ValueError):
            codec_from_name("zstd")


class PathUtilTests(unittest.TestCase):
    def test_is_dotfile(self):
        self.assertTrue(is_dotfile(".git"))
        self.assertTrue(is_dotfile("a/b/.hidden"))
        self.assertTrue(is_dotfile("a/.cache/"))
        self.assertFalse(is_dotfile("a/b.txt"))
        self.assertFalse(is_dotfile("."))
        self.assertFalse(is_dotfile(".."))

    def test_arc_name_keeps_root_basename(self):
        self.assertEqual(arc_name("a/b", os.path.join("a", "b", "c", "d.txt")), "b/c/d.txt")
        self.assertEqual(arc_name("file.txt", "file.txt"), "file.txt")
        self.assertEqual(arc_name("/x/y/z.bin", "/x/y/z.bin"), "z.bin")

    def test_norm_path(self):
        self.assertEqual(norm_path("a//b/./c"), "a/b/c")
        for bad in ("../a", "/a", "a/..", ""):
            with self.subTest(path=bad):
                with self.assertRaises(ValueError):
                    norm_path(bad)


if __name__ == "__main__":
    unittest.main()
