"""Validation that a stream of changes arrives in walk order."""

from __future__ import annotations

import dataclasses
import enum
import errno
import os
import posixpath


class ChangeKind(enum.IntEnum):
    ADD = 0
    MODIFY = 1
    DELETE = 2


class ChangesOutOfOrderError(ValueError):
    """Raised when a change breaks the expected path ordering."""


def _clean(p: str) -> str:
    if not p:
        return "."
    cleaned = posixpath.normpath(p)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def compare_path(p1: str, p2: str) -> int:
    """Compare paths byte by byte, ordering '/' before any other byte."""
    b1, b2 = p1.encode(), p2.encode()
    slash = ord("/")
    for c1, c2 in zip(b1, b2):
        if c1 == c2:
            continue
        if (c2 != slash and c1 < c2) or c1 == slash:
            return -1
        return 1
    return len(b1) - len(b2)


@dataclasses.dataclass
class _Parent:
    dir: str
    last: str


class Validator:
    """Checks that paths are clean, ordered and have their parents present."""

    def __init__(self) -> None:
        self._parents: list[_Parent] = []

    def handle_change(self, kind, path, info, error=None) -> None:
        if error is not None:
            raise error
        if not self._parents:
            self._parents.append(_Parent("", ""))
        if os.name == "nt":
            path = path.replace("\\", "")
        if path != _clean(path):
            raise OSError(errno.EINVAL, "unclean path", path)
        if path.startswith("/"):
            raise OSError(errno.EINVAL, "absolute path", path)
        head, _, base = path.rpartition("/")
        directory = _clean(head) if head else "."
        if directory == ".":
            directory = ""
        if directory == ".." or path.startswith("../"):
            raise OSError(errno.EINVAL, "escape check", path)

        index = next(
            (j for j in range(len(self._parents) - 1, -1, -1)
             if compare_path(self._parents[j].dir, directory) <= 0),
            -1,
        )
        del self._parents[index + 1:]

        current = self._parents[index]
        if directory != self._parents[-1].dir or current.last >= base:
            previous = posixpath.join(current.dir, current.last)
            raise ChangesOutOfOrderError(f'changes out of order: "{path}" "{previous}"')
        current.last = base
        if kind != ChangeKind.DELETE and info.is_dir():
            self._parents.append(_Parent(posixpath.join(directory, base), ""))