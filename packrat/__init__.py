"""
packrat: a minimal streaming archive tool.

An archive is an 8-byte header (format version, entry count) followed by that
many file entries: a fixed 39-byte little-endian header, the UTF-8 name, and
the payload, optionally Brotli-compressed per entry.

- Pack files/directories (deduplicated by canonical path) into one stream
- List entries without materializing payloads
- Unpack, restoring permission bits and whole-second access/modify times

The format is read and written strictly forward, so archives can be piped
through stdin/stdout. There is no index, checksum or encryption.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "codec",
    "pathutil",
    "records",
    "walker",
    "writer",
    "reader",
    "cli",
]

# Importable programmatic API is available via packrat.writer/packrat.reader and
# the CLI functions in packrat.cli (cmd_pack/cmd_unpack/cmd_read) which take normal parameters.
