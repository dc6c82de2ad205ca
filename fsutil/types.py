"""Core value types: file mode bits and the stat record."""

from __future__ import annotations

import dataclasses
import enum


class FileMode(enum.IntFlag):
    """File mode bits: permission bits in the low nine bits, file type above."""

    DIR = 1 << 31
    SYMLINK = 1 << 27
    DEVICE = 1 << 26
    NAMED_PIPE = 1 << 25
    SOCKET = 1 << 24
    SETUID = 1 << 23
    SETGID = 1 << 22
    CHAR_DEVICE = 1 << 21
    STICKY = 1 << 20
    IRREGULAR = 1 << 19

    TYPE = DIR | SYMLINK | NAMED_PIPE | SOCKET | DEVICE | CHAR_DEVICE | IRREGULAR
    PERM = 0o777


@dataclasses.dataclass
class Stat:
    """Metadata recorded for one filesystem entry."""

    path: str = ""
    mode: int = 0
    uid: int = 0
    gid: int = 0
    size: int = 0
    mod_time: int = 0
    linkname: str = ""
    devmajor: int = 0
    devminor: int = 0
    xattrs: dict[str, bytes] = dataclasses.field(default_factory=dict)

    def is_dir(self) -> bool:
        return bool(self.mode & FileMode.DIR)

    def copy(self) -> Stat:
        return dataclasses.replace(self, xattrs=dict(self.xattrs))