from __future__ import annotations

import os
from typing import Callable, Iterator, List, Set, Tuple

# descend(is_dir, path) -> bool; False prunes a directory or drops a file
Descend = Callable[[bool, str], bool]


def walk(root: str, descend: Descend) -> Iterator[Tuple[bool, str]]:
    """Yield ``(is_dir, path)`` for every accepted node below ``root``.

    A root that is not a directory is offered to ``descend`` once. A root
    directory is listed but not itself offered. Entries come out in
    ``os.scandir`` order. Symlinks are followed; a directory that resolves to
    one already listed in this walk is not listed twice.

    Errors raised while listing a directory propagate to the caller.
    """
    if not os.path.isdir(root):
        if descend(False, root):
            yield False, root
        return

    seen: Set[str] = set()
    stack: List[str] = [root]
    while stack:
        current = stack.pop()
        real = os.path.realpath(current)
        if real in seen:
            continue
        seen.add(real)
        subdirs: List[str] = []
        with os.scandir(current) as it:
            for entry in it:
                is_dir = entry.is_dir()
                if not descend(is_dir, entry.path):
                    continue
                yield is_dir, entry.path
                if is_dir:
                    subdirs.append(entry.path)
        # reversed so the first listed subdirectory is visited first
        stack.extend(reversed(subdirs))
