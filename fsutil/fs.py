"""Walkable filesystem views: a host directory tree and composed sub-directories."""

from __future__ import annotations

import dataclasses
import datetime
import errno
import os
import posixpath
import stat as _stat
from typing import Any, BinaryIO, Callable, Optional

from fsutil.stat import file_mode_from_os, make_stat
from fsutil.types import FileMode, Stat


class SkipDir(Exception):
    """Raised by a walk callback to skip a directory, or the rest of the parent directory."""


WalkFunc = Callable[[str, Optional["DirEntryInfo"], Optional[BaseException]], None]


def _is_not_exist(exc: BaseException) -> bool:
    return isinstance(exc, OSError) and (
        isinstance(exc, (FileNotFoundError, NotADirectoryError))
        or exc.errno in (errno.ENOENT, errno.ENOTDIR))


def _clean(p: str) -> str:
    if not p:
        return "."
    cleaned = os.path.normpath(p)
    if os.sep == "/" and cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    kept = [p for p in parts if p]
    return _clean(os.sep.join(kept)) if kept else ""


def _dir(p: str) -> str:
    return _clean(p[: p.rfind(os.sep) + 1])


def _base(p: str, sep: str = os.sep) -> str:
    if not p:
        return "."
    stripped = p.rstrip(sep)
    return stripped[stripped.rfind(sep) + 1:] if stripped else sep


def _pjoin(*parts: str) -> str:
    kept = [p for p in parts if p]
    if not kept:
        return ""
    cleaned = posixpath.normpath("/".join(kept))
    return "/" + cleaned.lstrip("/") if cleaned.startswith("//") else cleaned


@dataclasses.dataclass
class StatInfo:
    """File information backed by a Stat record."""

    stat: Stat

    def name(self) -> str:
        return _base(self.stat.path)

    def size(self) -> int:
        return self.stat.size

    def mode(self) -> int:
        return self.stat.mode

    def mod_time(self) -> datetime.datetime:
        seconds, nanos = divmod(self.stat.mod_time, 1_000_000_000)
        moment = datetime.datetime.fromtimestamp(seconds, datetime.timezone.utc)
        return moment + datetime.timedelta(microseconds=nanos // 1000)

    def is_dir(self) -> bool:
        return self.stat.is_dir()


class _OsEntry:
    """A host directory entry whose lstat result is fetched on demand."""

    def __init__(self, path: str, info: os.stat_result | None = None,
                 dirent: os.DirEntry | None = None) -> None:
        self.path = path
        self.name = _base(path)
        self._info = info
        self._dirent = dirent

    def stat(self) -> os.stat_result:
        if self._info is None:
            self._info = (self._dirent.stat(follow_symlinks=False) if self._dirent is not None
                          else os.lstat(self.path))
        return self._info

    def is_dir(self) -> bool:
        if self._info is None and self._dirent is not None:
            return self._dirent.is_dir(follow_symlinks=False)
        return _stat.S_ISDIR(self.stat().st_mode)

    def type(self) -> int:
        return file_mode_from_os(self.stat().st_mode) & FileMode.TYPE


class DirEntryInfo:
    """A walked entry; its Stat is built lazily for host entries."""

    def __init__(self, stat: Stat | None = None, *, entry: _OsEntry | None = None,
                 path: str = "", origpath: str = "",
                 seen_files: dict[int, str] | None = None) -> None:
        self.stat = stat
        self._entry = entry
        self._path = path
        self._origpath = origpath
        self._seen_files = seen_files

    def name(self) -> str:
        return _base(self.stat.path) if self.stat is not None else self._entry.name

    def is_dir(self) -> bool:
        return self.stat.is_dir() if self.stat is not None else self._entry.is_dir()

    def type(self) -> int:
        return self.stat.mode if self.stat is not None else self._entry.type()

    def info(self) -> StatInfo:
        """Return file information holding a copy of this entry's Stat."""
        if self.stat is None:
            self.stat = make_stat(self._origpath, self._path, self._entry.stat(), self._seen_files)
        return StatInfo(self.stat.copy())


class HostFS:
    """A view of a directory on the host filesystem."""

    def __init__(self, root: str) -> None:
        self.root = root

    def walk(self, target: str, fn: WalkFunc) -> None:
        """Walk ``target`` below the root in lexical order, calling ``fn(path, entry, error)``.

        The root itself is not reported; not-exist errors from ``fn`` skip the entry.
        """
        seen_files: dict[int, str] = {}
        start = _join(self.root, target)

        def visit(path: str, raw: _OsEntry | None, error: BaseException | None) -> None:
            rel = os.path.relpath(path, self.root)
            if rel == ".":
                return
            entry = None
            if raw is not None:
                entry = DirEntryInfo(entry=raw, path=rel, origpath=path, seen_files=seen_files)
            try:
                fn(rel, entry, error)
            except SkipDir:
                raise
            except Exception as exc:
                if _is_not_exist(exc):
                    raise SkipDir from exc
                raise

        try:
            try:
                info = os.lstat(start)
            except OSError as exc:
                visit(start, None, exc)
            else:
                self._walk_dir(start, _OsEntry(start, info=info), visit)
        except SkipDir:
            pass

    @classmethod
    def _walk_dir(cls, path: str, entry: _OsEntry, visit) -> None:
        try:
            visit(path, entry, None)
        except SkipDir:
            if entry.is_dir():
                return
            raise
        if not entry.is_dir():
            return
        children: list[os.DirEntry] = []
        try:
            with os.scandir(path) as it:
                children = sorted(it, key=lambda d: d.name)
        except OSError as exc:
            try:
                visit(path, entry, exc)
            except SkipDir:
                return
        for child in children:
            child_path = os.path.join(path, child.name)
            try:
                cls._walk_dir(child_path, _OsEntry(child_path, dirent=child), visit)
            except SkipDir:
                break

    def open(self, path: str) -> BinaryIO:
        return open(_join(self.root, path), "rb")


def new_fs(root: str) -> HostFS:
    """Create a view of the host directory ``root``, resolving symlinks."""
    try:
        resolved = os.path.realpath(root, strict=True)
    except OSError as exc:
        raise OSError(exc.errno, f"resolve: {exc.strerror}", root) from exc
    if not _stat.S_ISDIR(os.stat(resolved).st_mode):
        raise OSError(errno.ENOTDIR, "stat: not a directory", resolved)
    return HostFS(resolved)


@dataclasses.dataclass
class Dir:
    """A named top-level directory of a SubDirFS and the view that fills it."""

    stat: Stat
    fs: Any


class SubDirFS:
    """A view composed of several views, each mounted under its own top-level name."""

    def __init__(self, dirs) -> None:
        self._dirs = sorted(dirs, key=lambda d: d.stat.path)
        self._by_name: dict[str, Dir] = {}
        for d in self._dirs:
            if _base(d.stat.path, "/") != d.stat.path:
                raise OSError(errno.EISDIR, "invalid path", d.stat.path)
            if d.stat.path in self._by_name:
                raise OSError(errno.EEXIST, "duplicate path", d.stat.path)
            self._by_name[d.stat.path] = d

    def walk(self, target: str, fn: WalkFunc) -> None:
        first, _, rest = target.partition(os.sep)
        for d in self._dirs:
            if first and first != d.stat.path:
                continue
            if not d.stat.is_dir():
                raise OSError(errno.ENOTDIR, "walk subdir", d.stat.path)
            fn(d.stat.path, DirEntryInfo(d.stat.copy()), None)
            d.fs.walk(rest, self._prefixed(d.stat.path, fn))

    @staticmethod
    def _prefixed(prefix: str, fn: WalkFunc) -> WalkFunc:
        def inner(path, entry, error):
            if error is not None:
                raise error
            st = entry.info().stat
            if not isinstance(st, Stat):
                raise OSError(errno.EBADMSG, "fileinfo without stat info", prefix)
            st.path = _pjoin(prefix, st.path)
            if st.linkname:
                if not st.mode & FileMode.SYMLINK:
                    st.linkname = _pjoin(prefix, st.linkname)
                elif st.linkname.startswith("/"):
                    st.linkname = _pjoin("/" + prefix, st.linkname)
            fn(_join(prefix, path), DirEntryInfo(st), None)

        return inner

    def open(self, path: str) -> BinaryIO:
        first, _, rest = _clean(path).partition(os.sep)
        d = self._by_name.get(first)
        if d is None:
            raise OSError(errno.ENOENT, "open", first)
        if not rest:
            raise OSError(errno.EISDIR, "open", path)
        return d.fs.open(rest)


def sub_dir_fs(dirs) -> SubDirFS:
    """Compose views under top-level names; names must be single, unique elements."""
    return SubDirFS(dirs)