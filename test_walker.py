from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from packrat.pathutil import is_dotfile
from packrat.walker import walk


def _build_tree(root: Path) -> None:
    (root / "sub").mkdir()
    (root / ".git").mkdir()
    (root / "a.txt").write_text("a")
    (root / ".hidden").write_text("h")
    (root / "sub" / "b.txt").write_text("b")
    (root / ".git" / "c.txt").write_text("c")


def _rel(root: Path, pairs):
    return {(is_dir, os.path.relpath(p, root).replace(os.sep, "/")) for is_dir, p in pairs}


class WalkerTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name) / "root"
        self.root.mkdir()
        _build_tree(self.root)

    def test_visits_everything_when_accepting(self):
        seen = _rel(self.root, walk(str(self.root), lambda is_dir, p: True))
        self.assertEqual(
            seen,
            {
                (False, "a.txt"),
                (False, ".hidden"),
                (True, "sub"),
                (False, "sub/b.txt"),
                (True, ".git"),
                (False, ".git/c.txt"),
            },
        )

    def test_prunes_rejected_directories(self):
        calls = []

        def descend(is_dir, path):
            calls.append(os.path.relpath(path, self.root).replace(os.sep, "/"))
            return not is_dotfile(path)

        seen = _rel(self.root, walk(str(self.root), descend))
        self.assertEqual(seen, {(False, "a.txt"), (True, "sub"), (False, "sub/b.txt")})
        # the pruned directory is offered but never listed
        self.assertIn(".git", calls)
        self.assertNotIn(".git/c.txt", calls)
        # the root itself is not offered
        self.assertNotIn(".", calls)

    def test_root_file_is_offered_once(self):
        target = str(self.root / "a.txt")
        calls = []

        def descend(is_dir, path):
            calls.append((is_dir, path))
            return True

        self.assertEqual(list(walk(target, descend)), [(False, target)])
        self.assertEqual(calls, [(False, target)])

    def test_rejected_root_file_yields_nothing(self):
        self.assertEqual(list(walk(str(self.root / "a.txt"), lambda is_dir, p: False)), [])

    def test_deep_tree(self):
        deep = self.root / "sub"
        for _ in range(64):
            deep = deep / "d"
        deep.mkdir(parents=True)
        (deep / "leaf.txt").write_text("leaf")
        files = [p for is_dir, p in walk(str(self.root), lambda is_dir, p: True) if not is_dir]
        self.assertIn(str(deep / "leaf.txt"), files)

    def test_symlink_cycle_terminates(self):
        if not hasattr(os, "symlink"):
            self.skipTest("symlinks not supported")
        try:
            os.symlink(str(self.root), str(self.root / "sub" / "loop"))
        except (OSError, NotImplementedError):
            self.skipTest("symlinks not supported")
        files = [p for is_dir, p in walk(str(self.root), lambda is_dir, p: True) if not is_dir]
        self.assertEqual(sum(1 for p in files if os.path.basename(p) == "a.txt"), 1)

    def test_listing_error_propagates(self):
        real_scandir = os.scandir

        def failing_scandir(path):
            if os.path.basename(path) == "sub":
                raise PermissionError(13, "Permission denied", path)
            return real_scandir(path)

        with mock.patch("packrat.walker.os.scandir", side_effect=failing_scandir):
            with self.assertRaises(PermissionError):
                list(walk(str(self.root), lambda is_dir, p: True))


if __name__ == "__main__":
    unittest.main()
