# fsutil

`fsutil` is a library for walking directory trees. Each entry it reports comes with a
portable `Stat` record (`fsutil.types.Stat`) that holds the path, mode, owner, size,
modification time, link target, device numbers and extended attributes. Walks can be
filtered with `.dockerignore`-style include and exclude patterns. Symlinks named in the
options can be followed so that their targets are kept in the result. The library can
also check a stream of changes for ordering and hard-link consistency, and write a tree
out as a tar archive.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Walking a directory

```python
from fsutil.filter import FilterOpt, walk

def show(path, info, error):
    if error is not None:
        raise error
    kind = "dir" if info.is_dir() else "file"
    print(kind, path)

walk("/srv/project", FilterOpt(include_patterns=["src"], exclude_patterns=["**/*.pyc"]), show)
```

The callback is called as `fn(path, info, error)`, where `info` is a `StatInfo`. Paths are
relative to the root and are reported in lexical order. If a directory holds entries that
are kept, it is reported just before the first of them, even when the directory itself
does not match a pattern. Passing `None` as the options walks everything.

`FilterOpt` takes these options:

- `include_patterns`: a path must match at least one of these.
- `exclude_patterns`: a path must match none of these. A pattern that starts with `!`
  re-includes what an earlier pattern excluded.
- `follow_paths`: symlinks to resolve. Their targets are added to the include patterns.
- `map_fn`: a callable `(path, stat)` that may change the `Stat` in place. It returns a
  `MapResult`: `KEEP`, `EXCLUDE` or `SKIP_DIR`.

`walk_dir` works like `walk`, but the callback is given `DirEntryInfo` objects instead of
`StatInfo` objects. An entry's `info()` returns a `StatInfo` that holds a copy of its `Stat`.

## Filesystems

- `fsutil.fs.new_fs(root)` returns a `HostFS` for a directory on disk. Symlinks in `root`
  are resolved first.
- `fsutil.filter.new_filter_fs(fs, opt)` wraps any filesystem in a `FilterFS`. Opening a
  path that is filtered out raises `FileNotFoundError`.
- `fsutil.fs.sub_dir_fs(dirs)` joins several filesystems, each under its own top-level
  name given by a `Dir(stat, fs)`. A name must be a single path element and must not
  repeat.

Every filesystem has `walk(target, fn)` and `open(path)`, which returns a binary file
object. A walk callback can raise `SkipDir` to skip the rest of a directory.

## Stat records

`fsutil.stat.stat(path)` builds a `Stat` for one path without following a final symlink.
`make_stat` does the same for a given `os.stat_result`, and records hard links that share
an inode. Socket bits are cleared from the mode.

## Following links

```python
from fsutil.fs import new_fs
from fsutil.followlinks import follow_links

follow_links(new_fs("/srv/project"), ["current", "config/*.yml"])
```

This returns the sorted list of paths that must be kept so that the named links still
resolve inside the tree. A path inside another path in the list is dropped. If the tree
root itself is reached, the result is `None`, which means no filter applies.

## Validating change streams

`fsutil.validator.Validator.handle_change(kind, path, info)` checks that paths arrive
clean, relative and in walk order, and that each parent directory came before its
children. It raises `OSError` for a bad path and `ChangesOutOfOrderError` for a change
out of order. `compare_path` gives the ordering it uses, in which `/` sorts before every
other byte.

`fsutil.hardlinks.Hardlinks.handle_change(kind, path, info)` raises `ValueError` when an
entry links to a path that was not seen earlier as a plain file.

## Patterns

`fsutil.patterns.PatternMatcher` implements the `.dockerignore` matching rules, including
`**`, character classes and `!` exceptions. An invalid pattern raises `PatternError`.

## Tar export

```python
from fsutil.fs import new_fs
from fsutil.tarwriter import write_tar

with open("out.tar", "wb") as out:
    write_tar(new_fs("/srv/project"), out)
```

The archive is written in PAX format. Hard links and symlinks are kept as links.
Extended attributes are stored as `SCHILY.xattr.*` records. Sockets cannot be archived
and raise `tarfile.TarError`.

## What it does not do

`fsutil` only reads and describes trees. It does not transfer a tree between processes,
and it does not copy or apply changes into a destination directory. It has no
command-line tool.