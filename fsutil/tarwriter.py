"""Writing a view as a tar archive."""

from __future__ import annotations

import errno
import os
import tarfile

from fsutil.fs import _is_not_exist
from fsutil.types import FileMode, Stat


def _header(name: str, st: Stat) -> tarfile.TarInfo:
    mode = st.mode
    info = tarfile.TarInfo(name)
    perm = mode & FileMode.PERM
    if mode & FileMode.SETUID:
        perm |= 0o4000
    if mode & FileMode.SETGID:
        perm |= 0o2000
    if mode & FileMode.STICKY:
        perm |= 0o1000
    info.mode = int(perm)
    info.mtime = st.mod_time // 1_000_000_000
    info.size = 0

    if not mode & FileMode.TYPE:
        info.type = tarfile.REGTYPE
        info.size = st.size
    elif mode & FileMode.DIR:
        info.type = tarfile.DIRTYPE
    elif mode & FileMode.SYMLINK:
        info.type = tarfile.SYMTYPE
    elif mode & FileMode.DEVICE:
        info.type = tarfile.CHRTYPE if mode & FileMode.CHAR_DEVICE else tarfile.BLKTYPE
    elif mode & FileMode.NAMED_PIPE:
        info.type = tarfile.FIFOTYPE
    elif mode & FileMode.SOCKET:
        raise tarfile.TarError(f"{name}: sockets not supported")
    else:
        raise tarfile.TarError(f"{name}: unknown file mode {mode:#o}")
    return info


def write_tar(fs, writer) -> None:
    """Write every entry of the view ``fs`` to the binary stream ``writer`` as a tar archive."""
    tw = tarfile.open(fileobj=writer, mode="w|", format=tarfile.PAX_FORMAT,
                      encoding="utf-8", errors="surrogateescape")

    def visit(path, entry, error):
        if error is not None and not _is_not_exist(error):
            raise error
        if entry is None:
            return
        info = entry.info()
        st = info.stat
        if not isinstance(st, Stat):
            raise OSError(errno.EBADMSG, "fileinfo without stat info", path)

        name = path.replace(os.sep, "/")
        if info.is_dir() and not name.endswith("/"):
            name += "/"
        hdr = _header(name, st)
        hdr.uid = st.uid
        hdr.gid = st.gid
        hdr.devmajor = st.devmajor
        hdr.devminor = st.devminor
        hdr.linkname = st.linkname
        if hdr.linkname:
            hdr.size = 0
            hdr.type = tarfile.SYMTYPE if st.mode & FileMode.SYMLINK else tarfile.LNKTYPE
        if st.xattrs:
            hdr.pax_headers = {
                "SCHILY.xattr." + key: value.decode("utf-8", "surrogateescape")
                for key, value in st.xattrs.items()
            }

        if hdr.type == tarfile.REGTYPE and hdr.size > 0 and not hdr.linkname:
            with fs.open(path) as rc:
                tw.addfile(hdr, rc)
            return
        try:
            tw.addfile(hdr)
        except (tarfile.HeaderError, ValueError) as exc:
            raise tarfile.TarError(f"failed to write file header {name}: {exc}") from exc

    with tw:
        fs.walk("/", visit)