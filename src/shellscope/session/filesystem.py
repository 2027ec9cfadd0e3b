"""Filesystem operations resolved against the session's working directory.

Every relative path is interpreted relative to `SessionState.directory`,
never the host process cwd. Each operation is a single synchronous call
that records itself in the trace log.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from shellscope.errors import ContextualFailure, ShellscopeError
from shellscope.process.command import to_text_arg

if TYPE_CHECKING:
    from shellscope.session.state import SessionState

A = TypeVar("A")

# (name, [subtrees]); names may contain path separators
DirTree = tuple[Any, list["DirTree"]]


def _make_owner_writable(root: Path) -> None:
    """Grant the owner rwx on a tree, parents before children."""

    def grant(path: str) -> None:
        try:
            os.chmod(path, os.stat(path).st_mode | stat.S_IRWXU)
        except OSError:
            # Not ours to fix; rmtree reports the real failure
            pass

    grant(str(root))
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            full = os.path.join(dirpath, name)
            if not os.path.islink(full):
                grant(full)


class FilesystemOps:
    """Mixin with path helpers, queries and file manipulation for Session."""

    _state: SessionState

    if TYPE_CHECKING:

        def trace(self, message: str) -> None: ...

    # -- paths ---------------------------------------------------------------

    def abs_path(self, path: Any) -> Path:
        """Make `path` absolute against the session directory."""
        p = Path(to_text_arg(path))
        if p.is_absolute():
            return p
        return self._state.directory / p

    def canonic(self, path: Any) -> Path:
        """Absolute path with symlinks and `..` resolved."""
        return Path(os.path.realpath(self.abs_path(path)))

    canonicalize = canonic

    def relative_to(self, base: Any, path: Any) -> Path:
        """Express `path` relative to the directory `base`.

        `base` counts as a directory when it exists as one or ends with a
        separator; otherwise its parent is used. Paths outside the base are
        returned unchanged.
        """
        base_text = to_text_arg(base)
        base_dir = self.abs_path(base_text)
        if not (base_text.endswith(("/", os.sep)) or base_dir.is_dir()):
            base_dir = base_dir.parent
        target = self.abs_path(path)

        try:
            return target.relative_to(base_dir)
        except ValueError:
            pass
        try:
            return self.canonic(target).relative_to(self.canonic(base_dir))
        except ValueError:
            return Path(to_text_arg(path))

    @staticmethod
    def has_ext(ext: str, path: Any) -> bool:
        """True if `path` has extension `ext` (with or without leading dot)."""
        suffix = Path(to_text_arg(path)).suffix
        return suffix.lstrip(".") == ext.lstrip(".") and suffix != ""

    # -- queries -------------------------------------------------------------

    def test_e(self, path: Any) -> bool:
        """Does the path exist (file or directory)?"""
        return self.abs_path(path).exists()

    def test_f(self, path: Any) -> bool:
        return self.abs_path(path).is_file()

    def test_d(self, path: Any) -> bool:
        return self.abs_path(path).is_dir()

    def test_s(self, path: Any) -> bool:
        """Is the path a symlink?"""
        return self.abs_path(path).is_symlink()

    def ls(self, directory: Any = ".") -> list[Path]:
        """Absolute paths of the entries of a directory, sorted by name."""
        target = self.abs_path(directory)
        self.trace(f"ls {target}")
        return [target / name for name in sorted(os.listdir(target))]

    def ls_t(self, directory: Any = ".") -> list[str]:
        return [str(p) for p in self.ls(directory)]

    def which(self, name: Any) -> Path | None:
        """Locate an executable using the session's PATH (not the host's)."""
        text = to_text_arg(name)
        self.trace(f"which {text}")
        if os.sep in text or (os.altsep and os.altsep in text):
            candidate = self.abs_path(text)
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return candidate
            return None
        found = shutil.which(text, path=self._state.environment.get("PATH", ""))
        return Path(found) if found else None

    # -- manipulation --------------------------------------------------------

    def mv(self, src: Any, dst: Any) -> None:
        """Move a file; `dst` may be a directory to move into."""
        src_path = self.abs_path(src)
        dst_path = self.abs_path(dst)
        self.trace(f"mv {src_path} {dst_path}")
        target = dst_path / src_path.name if dst_path.is_dir() else dst_path
        try:
            shutil.move(str(src_path), str(target))
        except OSError as e:
            raise ContextualFailure(e, f"during move from: {src_path} to: {target}") from e

    def cp(self, src: Any, dst: Any) -> None:
        """Copy a file; `dst` may be a directory to copy into."""
        src_path = self.abs_path(src)
        dst_path = self.abs_path(dst)
        self.trace(f"cp {src_path} {dst_path}")
        target = dst_path / src_path.name if dst_path.is_dir() else dst_path
        try:
            shutil.copy(src_path, target)
        except OSError as e:
            raise ContextualFailure(e, f"during copy from: {src_path} to: {target}") from e

    def cp_r(self, src: Any, dst: Any) -> None:
        """Copy a file, or a directory recursively.

        When `dst` is an existing directory the source directory is copied
        inside it; otherwise `dst` is created and receives the contents.
        """
        src_path = self.abs_path(src)
        if not src_path.is_dir():
            self.cp(src, dst)
            return

        dst_path = self.abs_path(dst)
        self.trace(f"cp -r {src_path} {dst_path}")
        if src_path == dst_path:
            raise ShellscopeError(f"cp_r: {src_path} and {dst_path} are identical")

        if dst_path.is_dir():
            final = dst_path / src_path.name
            self.mkdir_p(final)
        else:
            self.mkdir(dst_path)
            final = dst_path

        for item in self.ls(src_path):
            self.cp_r(item, final / item.name)

    def rm(self, path: Any) -> None:
        """Remove a file. Fails if it is missing or not a file."""
        target = self.abs_path(path)
        self.trace(f"rm {target}")
        target.unlink()

    def rm_f(self, path: Any) -> None:
        """Remove a file if it exists. Still fails on directories."""
        target = self.abs_path(path)
        self.trace(f"rm -f {target}")
        if target.exists() or target.is_symlink():
            target.unlink()

    def rm_rf(self, path: Any) -> None:
        """Remove a file or a whole tree, fixing permissions we own if needed."""
        target = self.abs_path(path)
        self.trace(f"rm -rf {target}")
        if target.is_symlink() or not target.is_dir():
            if target.is_symlink() or target.is_file():
                target.unlink()
            return

        try:
            shutil.rmtree(target)
        except PermissionError:
            _make_owner_writable(target)
            shutil.rmtree(target)

    def mkdir(self, path: Any) -> None:
        """Create one directory. Fails if it already exists."""
        target = self.abs_path(path)
        self.trace(f"mkdir {target}")
        target.mkdir()

    def mkdir_p(self, path: Any) -> None:
        """Create a directory and its parents. No-op if it already exists."""
        target = self.abs_path(path)
        self.trace(f"mkdir -p {target}")
        target.mkdir(parents=True, exist_ok=True)

    def mkdir_tree(self, tree: DirTree, base: Any = ".") -> None:
        """Create a nested directory layout.

            sh.mkdir_tree(("package", [
                ("src", [("Data", [("Tree", []), ("List", [])])]),
                ("dist/doc/html", []),
            ]))
        """
        name, children = tree
        root = self.abs_path(base) / to_text_arg(name)
        if not root.is_dir():
            self.mkdir_p(root)
        for child in children:
            self.mkdir_tree(child, root)

    # -- file contents -------------------------------------------------------

    def readfile(self, path: Any) -> str:
        """Read a file as UTF-8, replacing undecodable bytes."""
        target = self.abs_path(path)
        self.trace(f"readfile {target}")
        return self.read_binary(target).decode("utf-8", errors="replace")

    def read_binary(self, path: Any) -> bytes:
        return self.abs_path(path).read_bytes()

    def writefile(self, path: Any, text: str) -> None:
        target = self.abs_path(path)
        self.trace(f"writefile {target}")
        target.write_text(text, encoding="utf-8")

    def appendfile(self, path: Any, text: str) -> None:
        target = self.abs_path(path)
        self.trace(f"appendfile {target}")
        with open(target, "a", encoding="utf-8") as f:
            f.write(text)

    def touchfile(self, path: Any) -> None:
        """Create an empty file, or leave an existing one as it is."""
        self.appendfile(path, "")

    @contextmanager
    def with_tmp_dir(self) -> Iterator[Path]:
        """Yield a fresh temporary directory, removed on exit."""
        self.trace("with_tmp_dir")
        path = Path(tempfile.mkdtemp(prefix="shellscope-"))
        try:
            yield path
        finally:
            self.rm_rf(path)

    # -- find ----------------------------------------------------------------

    def find_fold_dir_filter(
        self,
        directory: Any,
        dir_filter: Callable[[Path], bool],
        fold: Callable[[A, Path], A],
        start: A,
    ) -> A:
        """Fold over every entry below `directory`, depth first.

        Entries are named by joining `directory` (as given) with each name.
        Directories are folded and then descended into when `dir_filter`
        accepts them; symlinked directories are never followed. The filter is
        also applied to `directory` itself.
        """
        root = Path(to_text_arg(directory))
        absolute = self.abs_path(root)
        self.trace(f"find {absolute}")
        if not dir_filter(absolute):
            return start

        acc = start
        for name in sorted(os.listdir(absolute)):
            relative = root / name
            full = absolute / name
            acc = fold(acc, relative)
            if full.is_dir() and not full.is_symlink():
                acc = self.find_fold_dir_filter(relative, dir_filter, fold, acc)
        return acc

    def find_fold(self, directory: Any, fold: Callable[[A, Path], A], start: A) -> A:
        return self.find_fold_dir_filter(directory, lambda _: True, fold, start)

    def find_dir_filter_when(
        self,
        directory: Any,
        dir_filter: Callable[[Path], bool],
        predicate: Callable[[Path], bool],
    ) -> list[Path]:
        def keep(acc: list[Path], path: Path) -> list[Path]:
            if predicate(self.abs_path(path)):
                acc.append(path)
            return acc

        return self.find_fold_dir_filter(directory, dir_filter, keep, [])

    def find_dir_filter(self, directory: Any, dir_filter: Callable[[Path], bool]) -> list[Path]:
        return self.find_dir_filter_when(directory, dir_filter, lambda _: True)

    def find_when(self, directory: Any, predicate: Callable[[Path], bool]) -> list[Path]:
        return self.find_dir_filter_when(directory, lambda _: True, predicate)

    def find(self, directory: Any) -> list[Path]:
        """Every file and directory below `directory`."""
        return self.find_dir_filter_when(directory, lambda _: True, lambda _: True)
