class PackratError(Exception):
    """Base class for packrat-specific errors."""


class ArchiveIOError(PackratError):
    """A read, write or metadata query on the filesystem or stream failed."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


# Archive decoding
class MalformedArchive(PackratError):
    pass


class TruncatedArchive(MalformedArchive):
    pass


class UnsupportedVersion(MalformedArchive):
    pass


class UnsupportedCompressionTag(MalformedArchive):
    def __init__(self, tag: int):
        super().__init__(f"unsupported compression tag: {tag}")
        self.tag = tag


class InvalidNameEncoding(MalformedArchive):
    pass


# Packing
class NoInputPaths(PackratError):
    pass


class NameTooLong(PackratError):
    pass


# Unpacking (non-fatal, reported per entry)
class DestinationExists(PackratError):
    def __init__(self, path: str):
        super().__init__(f"Not overwriting {path!r}")
        self.path = path
