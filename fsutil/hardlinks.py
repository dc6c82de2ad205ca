"""Validation that hard links only point at entries already seen."""

from __future__ import annotations

import errno

from fsutil.types import FileMode, Stat
from fsutil.validator import ChangeKind


class Hardlinks:
    """Checks that every hard link target was part of the earlier changes."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def handle_change(self, kind, path, info, error=None) -> None:
        if error is not None:
            raise error
        if kind == ChangeKind.DELETE:
            return
        st = getattr(info, "stat", None)
        if not isinstance(st, Stat):
            raise OSError(errno.EBADMSG, "change without stat info", path)
        if info.is_dir() or st.mode & FileMode.SYMLINK:
            return
        if st.linkname:
            if st.linkname not in self._seen:
                raise ValueError(f'invalid link {path} to unknown path: "{st.linkname}"')
        else:
            self._seen.add(path)