"""Resolving symlinks in a set of paths into the paths they reach."""

from __future__ import annotations

import errno
import os

from fsutil.fs import SkipDir, _base, _clean, _dir, _join
from fsutil.patterns import PatternError, glob_match
from fsutil.types import FileMode, Stat

_IS_WINDOWS = os.name == "nt"
_ERROR_INVALID_NAME = 123


def _is_not_found(exc: BaseException) -> bool:
    if isinstance(exc, FileNotFoundError):
        return True
    if not isinstance(exc, OSError):
        return False
    if exc.errno == errno.ENOENT:
        return True
    return _IS_WINDOWS and getattr(exc, "winerror", None) == _ERROR_INVALID_NAME


def follow_links(fs, paths):
    """Return the sorted paths reached from ``paths`` with every symlink followed.

    Returns None when the filesystem root is among the results, meaning no
    path filter applies.
    """
    resolver = _SymlinkResolver(fs)
    for p in paths:
        resolver.append(p)
    return dedupe_paths(sorted(r.replace(os.sep, "/") for r in resolver.resolved))


class _SymlinkResolver:
    def __init__(self, fs) -> None:
        self.fs = fs
        self.resolved: set[str] = set()

    def append(self, p: str) -> None:
        if _IS_WINDOWS and os.path.isabs(p.replace("/", os.sep)):
            _, colon, tail = p.partition(":")
            if colon:
                p = tail
        p = _join(".", p)
        current = "."
        while True:
            first, _, rest = p.partition(os.sep)
            current = _join(current, first)
            targets = self._read_symlink(current, True)
            p = rest
            if (not p or targets is not None) and current in self.resolved:
                return
            if targets is not None:
                self.resolved.add(current)
                for target in targets:
                    self.append(_join(target, p))
                return
            if not p:
                self.resolved.add(current)
                return

    def _read_symlink(self, p: str, allow_wildcard: bool) -> list[str] | None:
        base = _base(p)
        if allow_wildcard and contains_wildcards(base):
            parent = _dir(p)
            try:
                entries = read_dir(self.fs, parent)
            except OSError as exc:
                if _is_not_found(exc):
                    return None
                raise
            out: list[str] = []
            for entry in entries:
                try:
                    matched = glob_match(base, entry.name())
                except PatternError:
                    matched = False
                if matched:
                    found = self._read_symlink(_join(parent, entry.name()), False)
                    if found:
                        out.extend(found)
            return out or None

        try:
            entry = stat_file(self.fs, p)
        except OSError as exc:
            if _is_not_found(exc):
                return None
            raise
        if entry is None or not entry.type() & FileMode.SYMLINK:
            return None

        st = entry.info().stat
        if not isinstance(st, Stat):
            raise OSError(errno.EBADMSG, "fileinfo without stat info", p)
        link = _clean(st.linkname)
        if os.path.isabs(link):
            return [link]
        return [_join(os.sep, _join(_dir(p), link))]


def stat_file(fs, root: str):
    """Return the walk entry for ``root``, or None for the filesystem root."""
    root = _clean(root)
    if root in ("/", "."):
        return None
    found = None

    def visit(p, entry, error):
        nonlocal found
        if error is not None:
            raise error
        if p != root:
            raise ValueError(f'expected single entry "{root}" but got "{p}"')
        found = entry
        if entry.is_dir():
            raise SkipDir

    fs.walk(root, visit)
    if found is None:
        raise OSError(errno.ENOENT, "readFile: no such file or directory", root)
    return found


def read_dir(fs, root: str) -> list:
    """Return the walk entries directly inside directory ``root``."""
    root = _clean(root)
    out = None
    if root in ("/", "."):
        root = "."
        out = []

    def visit(p, entry, error):
        nonlocal out
        if error is not None:
            raise error
        if p == root:
            if not entry.is_dir():
                raise OSError(errno.ENOTDIR, "walk", root)
            out = []
            return
        if out is None:
            raise ValueError(f'expected to read parent entry "{root}" before child "{p}"')
        out.append(entry)
        if entry.is_dir():
            raise SkipDir

    fs.walk(root, visit)
    if out is None:
        raise OSError(errno.ENOENT, "readDir: no such file or directory", root)
    return out


def contains_wildcards(name: str) -> bool:
    """Whether ``name`` holds an unescaped '*', '?' or '['."""
    chars = iter(name)
    for ch in chars:
        if ch == "\\" and not _IS_WINDOWS:
            next(chars, None)
        elif ch in "*?[":
            return True
    return False


def dedupe_paths(paths):
    """Drop paths inside an earlier path of a sorted list; None if '.' is present."""
    out = []
    last = ""
    for s in paths:
        if s == ".":
            return None
        if s.startswith(last + "/"):
            continue
        out.append(s)
        last = s
    return out