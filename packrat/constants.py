# Format version written into every archive header
FORMAT_VERSION = 0

# Codec tags (one byte per entry; 0=none, 1=brotli)
CODEC_NONE = 0
CODEC_BROTLI = 1

CODEC_NAMES = {
    CODEC_NONE: "none",
    CODEC_BROTLI: "brotli",
}

DEFAULT_CODEC_ID = CODEC_BROTLI

# Field limits imposed by the wire layout
MAX_NAME_LEN = 0xFFFF          # name_len is u16
MAX_ENTRY_COUNT = 0xFFFFFFFF   # entry_count is u32

# Largest single read from the archive stream (payload reads and skips)
SKIP_CHUNK_SIZE = 64 * 1024

# Compressed bytes fed to the Brotli decoder per step
DECODE_CHUNK_SIZE = 4 * 1024
