from __future__ import annotations

import os


def is_dotfile(path: str) -> bool:
    """True when the final path component starts with '.' ("." and ".." excluded)."""
    name = os.path.basename(os.path.normpath(path))
    return name not in ("", ".", "..") and name.startswith(".")


def arc_name(root: str, path: str) -> str:
    """Archive name of ``path`` found while walking ``root``.

    The parent of the root is stripped, so the root's own basename is kept.
    Both paths are made absolute lexically (symlinks are not resolved here).
    """
    parent = os.path.dirname(os.path.abspath(root))
    rel = os.path.relpath(os.path.abspath(path), parent)
    return rel.replace(os.sep, "/")


def norm_path(p: str) -> str:
    """Validate an entry name read from an archive and normalize it.

    Rules:
    - Reject NUL bytes, absolute paths and '..' segments
    - Remove empty and '.' segments
    """
    if "\x00" in p:
        raise ValueError("Path may not contain NUL")
    if p.startswith("/") or os.path.isabs(p):
        raise ValueError("Path may not be absolute")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
    if not parts:
        raise ValueError("Path is empty")
    return "/".join(parts)
