from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import brotli

from .constants import CODEC_NONE, CODEC_BROTLI, CODEC_NAMES, DECODE_CHUNK_SIZE, DEFAULT_CODEC_ID
from .errors import MalformedArchive, UnsupportedCompressionTag


@dataclass(frozen=True)
class BrotliParams:
    """Encoder settings shared by every entry written in one run."""

    quality: int = 11
    lgwin: int = 22
    mode: int = brotli.MODE_GENERIC


DEFAULT_BROTLI_PARAMS = BrotliParams()


class Codec:
    def __init__(self, codec_id: int, params: Optional[BrotliParams] = None):
        if codec_id not in CODEC_NAMES:
            raise UnsupportedCompressionTag(codec_id)
        self.codec_id = codec_id
        self.params = params or DEFAULT_BROTLI_PARAMS

    @property
    def name(self) -> str:
        return CODEC_NAMES[self.codec_id]

    def compress(self, data: bytes) -> bytes:
        if self.codec_id == CODEC_NONE:
            return data
        p = self.params
        return brotli.compress(data, mode=p.mode, quality=p.quality, lgwin=p.lgwin)

    def decompress(self, data: bytes, max_len: Optional[int] = None) -> bytes:
        """Decode ``data``. With ``max_len`` set, decoding stops with
        MalformedArchive as soon as the output grows past it.
        """
        if self.codec_id == CODEC_NONE:
            return data
        d = brotli.Decompressor()
        out = []
        produced = 0
        try:
            for off in range(0, len(data), DECODE_CHUNK_SIZE):
                chunk = d.process(data[off:off + DECODE_CHUNK_SIZE])
                produced += len(chunk)
                if max_len is not None and produced > max_len:
                    raise MalformedArchive(f"brotli output exceeds the declared {max_len} bytes")
                out.append(chunk)
        except brotli.error as e:
            raise MalformedArchive(f"brotli decompression failed: {e}") from e
        if not d.is_finished():
            raise MalformedArchive("brotli decompression failed: stream is truncated")
        return b"".join(out)


def codec_from_name(name: str, params: Optional[BrotliParams] = None) -> Codec:
    """Map a CLI compression name ("none", "brotli", "default") to a codec."""
    key = name.strip().lower()
    if key == "default":
        return Codec(DEFAULT_CODEC_ID, params)
    for codec_id, codec_name in CODEC_NAMES.items():
        if codec_name == key:
            return Codec(codec_id, params)
    raise ValueError(f"unsupported compression format: {name!r}")
