"""Building stat records from the host filesystem."""

from __future__ import annotations

import errno
import os
import stat as _stat

from fsutil.types import FileMode, Stat

_IS_WINDOWS = os.name == "nt"


def file_mode_from_os(st_mode: int) -> int:
    """Convert a raw st_mode into FileMode bits."""
    mode = st_mode & 0o777
    if _stat.S_ISBLK(st_mode):
        mode |= FileMode.DEVICE
    elif _stat.S_ISCHR(st_mode):
        mode |= FileMode.DEVICE | FileMode.CHAR_DEVICE
    elif _stat.S_ISDIR(st_mode):
        mode |= FileMode.DIR
    elif _stat.S_ISFIFO(st_mode):
        mode |= FileMode.NAMED_PIPE
    elif _stat.S_ISLNK(st_mode):
        mode |= FileMode.SYMLINK
    elif _stat.S_ISSOCK(st_mode):
        mode |= FileMode.SOCKET
    if st_mode & _stat.S_ISUID:
        mode |= FileMode.SETUID
    if st_mode & _stat.S_ISGID:
        mode |= FileMode.SETGID
    if st_mode & _stat.S_ISVTX:
        mode |= FileMode.STICKY
    return int(mode)


def major(device: int) -> int:
    return (device >> 8) & 0xFFF


def minor(device: int) -> int:
    return (device & 0xFF) | ((device >> 12) & 0xFFF00)


def _load_xattrs(path: str, st: Stat) -> None:
    if not hasattr(os, "listxattr"):
        return
    try:
        names = os.listxattr(path, follow_symlinks=False)
    except OSError as exc:
        if exc.errno in (errno.ENOTSUP, errno.EOPNOTSUPP):
            return
        raise OSError(exc.errno, f"failed to xattr {path}: {exc.strerror}") from exc
    values = {}
    for name in names:
        try:
            values[name] = os.getxattr(path, name, follow_symlinks=False)
        except OSError:
            continue
    if names:
        st.xattrs = values


def _set_unix_opt(info: os.stat_result, st: Stat, path: str, inodemap: dict[int, str] | None) -> None:
    if _IS_WINDOWS:
        return
    st.uid = info.st_uid
    st.gid = info.st_gid
    if _stat.S_ISDIR(info.st_mode):
        return
    if info.st_mode & _stat.S_IFBLK or info.st_mode & _stat.S_IFCHR:
        st.devmajor = major(info.st_rdev)
        st.devminor = minor(info.st_rdev)
    if inodemap is not None:
        linked = False
        if info.st_nlink > 1 and info.st_ino in inodemap:
            st.linkname = inodemap[info.st_ino]
            st.size = 0
            linked = True
        if not linked:
            inodemap[info.st_ino] = path


def make_stat(path: str, relpath: str, info: os.stat_result, inodemap: dict[int, str] | None) -> Stat:
    """Build a Stat for the entry at ``path`` recorded under ``relpath``.

    ``inodemap`` maps inodes to the first path seen for them, so that later
    hard links are recorded with a link name.
    """
    relpath = relpath.replace(os.sep, "/")
    mode = file_mode_from_os(info.st_mode)
    st = Stat(path=relpath, mode=mode, mod_time=info.st_mtime_ns)
    _set_unix_opt(info, st, relpath, inodemap)

    if not mode & FileMode.DIR:
        st.size = info.st_size
        if mode & FileMode.SYMLINK:
            st.linkname = os.readlink(path)

    _load_xattrs(path, st)

    if _IS_WINDOWS:
        perm = st.mode & FileMode.PERM
        rest = st.mode & ~int(FileMode.PERM)
        perm = (perm | 0o111) & 0o755
        st.mode = rest | perm

    st.mode &= ~int(FileMode.SOCKET)
    return st


def stat(path: str) -> Stat:
    """Stat ``path`` without following a final symlink."""
    info = os.lstat(path)
    return make_stat(path, os.path.basename(path), info, None)