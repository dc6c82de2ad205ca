"""Filtering views: include/exclude patterns, followed links and a mapping hook."""

from __future__ import annotations

import dataclasses
import enum
import errno
import os
from typing import Callable, Optional

from fsutil.followlinks import dedupe_paths, follow_links
from fsutil.fs import DirEntryInfo, SkipDir, _is_not_exist, new_fs
from fsutil.patterns import MatchInfo, Pattern, PatternError, PatternMatcher
from fsutil.types import Stat

_PATTERN_CHARS = "*[]?^" + ("\\" if os.sep != "\\" else "")


class MapResult(enum.IntEnum):
    """What a mapping function decides for a path."""

    KEEP = 0
    EXCLUDE = 1
    SKIP_DIR = 2


MapFunc = Callable[[str, Stat], MapResult]


@dataclasses.dataclass
class FilterOpt:
    """Include and exclude patterns, symlinks to follow into includes, and a mapping hook."""

    include_patterns: Optional[list[str]] = None
    exclude_patterns: Optional[list[str]] = None
    follow_paths: Optional[list[str]] = None
    map_fn: Optional[MapFunc] = None


def _without_trailing_glob(pattern: Pattern) -> str:
    return str(pattern).removesuffix(os.sep + "**").removesuffix(os.sep + "*")


def _has_pattern_chars(pattern: Pattern) -> bool:
    text = _without_trailing_glob(pattern)
    return any(ch in text for ch in _PATTERN_CHARS)


def _prefix_may_match(matcher: PatternMatcher, path: str, exclusion: bool) -> bool:
    dir_slash = path + os.sep
    return any((_without_trailing_glob(pat) + os.sep).startswith(dir_slash)
               for pat in matcher.patterns if pat.exclusion == exclusion)


def _entry_stat(entry, path: str) -> Stat:
    st = entry.info().stat
    if not isinstance(st, Stat):
        raise OSError(errno.EBADMSG, "fileinfo without stat info", path)
    return st


@dataclasses.dataclass
class _VisitedDir:
    entry: object
    path_with_sep: str
    include_info: Optional[MatchInfo] = None
    exclude_info: Optional[MatchInfo] = None
    called_fn: bool = False


class FilterFS:
    """A view of another view that hides paths rejected by patterns or a mapping hook."""

    def __init__(self, fs, include_matcher: PatternMatcher | None,
                 exclude_matcher: PatternMatcher | None,
                 only_prefix_includes: bool = True,
                 only_prefix_exclude_exceptions: bool = True,
                 map_fn: MapFunc | None = None) -> None:
        self._fs = fs
        self._include = include_matcher
        self._exclude = exclude_matcher
        self._only_prefix_includes = only_prefix_includes
        self._only_prefix_exclude_exceptions = only_prefix_exclude_exceptions
        self._map_fn = map_fn

    def open(self, path: str):
        if ((self._include is not None and not self._include.matches_or_parent_matches(path))
                or (self._exclude is not None and self._exclude.matches_or_parent_matches(path))):
            raise FileNotFoundError(errno.ENOENT, "open: no such file or directory", path)
        return self._fs.open(path)

    def walk(self, target: str, fn) -> None:
        """Walk the underlying view, reporting only entries that pass the filter.

        A skipped directory holding kept entries is reported just before the first of them.
        """
        parents: list[_VisitedDir] = []

        def visit(path, entry, walk_error):
            try:
                self._visit(parents, path, entry, walk_error, fn)
            except SkipDir:
                raise
            except Exception as exc:
                if _is_not_exist(exc):
                    raise SkipDir from exc
                raise

        self._fs.walk(target, visit)

    def _match(self, matcher: PatternMatcher, kind: str, path: str, parent_info):
        try:
            return matcher.matches_using_parent_results(path, parent_info)
        except PatternError as exc:
            raise PatternError(f"failed to match {kind}patterns: {exc}") from exc

    def _visit(self, parents: list[_VisitedDir], path: str, entry, walk_error, fn) -> None:
        is_dir = entry.is_dir() if entry is not None else False
        visited: _VisitedDir | None = None

        if self._include is not None or self._exclude is not None:
            while parents and not path.startswith(parents[-1].path_with_sep):
                parents.pop()
            if is_dir:
                visited = _VisitedDir(entry, path + os.sep)

        skip = False

        if self._include is not None:
            matched, info = self._match(self._include, "include", path,
                                        parents[-1].include_info if parents else None)
            if visited is not None:
                visited.include_info = info
            if not matched:
                if is_dir and self._only_prefix_includes and not _prefix_may_match(
                        self._include, path, exclusion=False):
                    raise SkipDir
                skip = True

        if self._exclude is not None:
            matched, info = self._match(self._exclude, "exclude", path,
                                        parents[-1].exclude_info if parents else None)
            if visited is not None:
                visited.exclude_info = info
            if matched:
                if is_dir and self._only_prefix_exclude_exceptions and (
                        not self._exclude.exclusions()
                        or not _prefix_may_match(self._exclude, path, exclusion=True)):
                    raise SkipDir
                skip = True

        if walk_error is not None:
            if skip and isinstance(walk_error, OSError) and (
                    isinstance(walk_error, PermissionError)
                    or walk_error.errno in (errno.EACCES, errno.EPERM)):
                return
            raise walk_error

        try:
            if skip:
                return
            if visited is not None:
                visited.called_fn = True
            self._emit(parents, path, entry, fn)
        finally:
            if visited is not None:
                parents.append(visited)

    def _emit(self, parents: list[_VisitedDir], path: str, entry, fn) -> None:
        st = _entry_stat(entry, path)
        if self._map_fn is not None:
            result = self._map_fn(st.path, st)
            if result == MapResult.SKIP_DIR:
                raise SkipDir
            if result == MapResult.EXCLUDE:
                return
        for parent in parents:
            if parent.called_fn:
                continue
            parent_stat = _entry_stat(parent.entry, path)
            if self._map_fn is not None and self._map_fn(parent_stat.path, parent_stat) in (
                    MapResult.SKIP_DIR, MapResult.EXCLUDE):
                continue
            fn(parent_stat.path, DirEntryInfo(parent_stat), None)
            parent.called_fn = True
        fn(st.path, DirEntryInfo(st), None)


def new_filter_fs(fs, opt: FilterOpt | None):
    """Wrap ``fs`` in a view filtered by ``opt``; return ``fs`` itself when ``opt`` is None."""
    if opt is None:
        return fs

    include_patterns = list(opt.include_patterns) if opt.include_patterns is not None else None
    if opt.follow_paths is not None:
        targets = follow_links(fs, opt.follow_paths)
        if targets is not None:
            include_patterns = dedupe_paths((include_patterns or []) + targets)

    include_matcher = exclude_matcher = None
    only_prefix_includes = only_prefix_exclude_exceptions = True

    if include_patterns:
        try:
            include_matcher = PatternMatcher(include_patterns)
        except PatternError as exc:
            raise PatternError(f"invalid includepatterns: {opt.include_patterns}: {exc}") from exc
        only_prefix_includes = not any(
            not p.exclusion and _has_pattern_chars(p) for p in include_matcher.patterns)

    if opt.exclude_patterns:
        try:
            exclude_matcher = PatternMatcher(opt.exclude_patterns)
        except PatternError as exc:
            raise PatternError(f"invalid excludepatterns: {opt.exclude_patterns}: {exc}") from exc
        only_prefix_exclude_exceptions = not any(
            p.exclusion and _has_pattern_chars(p) for p in exclude_matcher.patterns)

    return FilterFS(fs, include_matcher, exclude_matcher, only_prefix_includes,
                    only_prefix_exclude_exceptions, opt.map_fn)


def walk(root: str, opt: FilterOpt | None, fn) -> None:
    """Walk the host directory ``root`` calling ``fn(path, info, error)`` with StatInfo."""

    def visit(path, entry, error):
        info = None
        if entry is not None:
            try:
                info = entry.info()
            except OSError as exc:
                error = error or exc
        fn(path, info, error)

    new_filter_fs(new_fs(root), opt).walk("/", visit)


def walk_dir(root: str, opt: FilterOpt | None, fn) -> None:
    """Walk the host directory ``root`` calling ``fn(path, entry, error)`` with entries."""
    new_filter_fs(new_fs(root), opt).walk("/", fn)