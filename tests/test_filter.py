import errno
import os
from unittest import mock

import pytest

from fsutil.filter import FilterOpt, MapResult, new_filter_fs, walk, walk_dir
from fsutil.fs import new_fs
from fsutil.patterns import PatternError
from fsutil.types import FileMode


def make_tree(root, lines):
    for line in lines:
        _, name, kind, *extra = line.split()
        p = root / name
        if kind == "dir":
            p.mkdir(mode=0o700)
        elif kind == "symlink":
            os.symlink(extra[0], p)
        elif extra and extra[0].startswith(">"):
            os.link(root / extra[0][1:], p)
        else:
            p.write_text(extra[0] if extra else "")
            os.chmod(p, 0o644)
    return str(root)


def _describe(path, info):
    st = info.stat
    kind = "dir" if info.is_dir() else "file"
    if info.mode() & FileMode.SYMLINK:
        kind = "symlink:" + st.linkname
    line = f"{kind} {path}"
    if not info.mode() & FileMode.SYMLINK and st.linkname:
        line += f" >{st.linkname}"
    return line


def collect(root, opt):
    lines = []

    def fn(path, info, error):
        if error is not None:
            raise error
        lines.append(_describe(path, info))

    walk(root, opt, fn)
    return lines


def collect_fs(fs):
    lines = []

    def fn(path, entry, error):
        if error is not None:
            raise error
        lines.append(_describe(path, entry.info()))

    fs.walk("", fn)
    return lines


def test_walker_simple(tmp_path):
    d = make_tree(tmp_path, ["ADD foo file", "ADD foo2 file"])
    infos = []

    def fn(path, info, error):
        assert error is None
        infos.append(info)

    assert walk(d, None, fn) is None
    assert [i.stat.path for i in infos] == ["foo", "foo2"]
    assert [i.is_dir() for i in infos] == [False, False]


def test_invalid_exclude_patterns(tmp_path):
    d = make_tree(tmp_path, ["ADD foo file data1"])
    with pytest.raises(PatternError):
        new_filter_fs(new_fs(d), FilterOpt(exclude_patterns=["!"]))


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("bar", ["dir bar", "file bar/foo"]),
        ("bar/foo", ["dir bar", "file bar/foo"]),
        ("b*", ["dir bar", "file bar/foo"]),
        ("bar/f*", ["dir bar", "file bar/foo"]),
        ("bar/g*", []),
        ("f*", ["file foo2"]),
        ("b*/f*", ["dir bar", "file bar/foo"]),
        ("b*/foo", ["dir bar", "file bar/foo"]),
        ("b*/", ["dir bar", "file bar/foo"]),
    ],
)
def test_walker_include(tmp_path, pattern, expected):
    d = make_tree(tmp_path, ["ADD bar dir", "ADD bar/foo file", "ADD foo2 file"])
    assert collect(d, FilterOpt(include_patterns=[pattern])) == expected


def test_walker_exclude(tmp_path):
    d = make_tree(tmp_path, [
        "ADD bar file", "ADD foo dir", "ADD foo2 file", "ADD foo/bar2 file",
    ])
    opt = FilterOpt(exclude_patterns=["foo*", "!foo/bar2"])
    assert collect(d, opt) == ["file bar", "dir foo", "file foo/bar2"]


def test_walker_follow_links(tmp_path):
    d = make_tree(tmp_path, [
        "ADD bar file",
        "ADD foo dir",
        "ADD foo/l1 symlink /baz/one",
        "ADD foo/l2 symlink /baz/two",
        "ADD baz dir",
        "ADD baz/one file",
        "ADD baz/two symlink ../bax",
        "ADD bax file",
        "ADD bay file",
    ])
    assert collect(d, FilterOpt(follow_paths=["foo/l*", "bar"])) == [
        "file bar",
        "file bax",
        "dir baz",
        "file baz/one",
        "symlink:../bax baz/two",
        "dir foo",
        "symlink:/baz/one foo/l1",
        "symlink:/baz/two foo/l2",
    ]


def test_walker_follow_links_to_root(tmp_path):
    d = make_tree(tmp_path, [
        "ADD foo symlink .",
        "ADD bar file",
        "ADD bax file",
        "ADD bay dir",
        "ADD bay/baz file",
    ])
    assert collect(d, FilterOpt(follow_paths=["foo"])) == [
        "file bar", "file bax", "dir bay", "file bay/baz", "symlink:. foo",
    ]


def test_walker_map(tmp_path):
    d = make_tree(tmp_path, [
        "ADD bar file", "ADD foo dir", "ADD foo2 file", "ADD foo/bar2 file",
    ])

    def rename(_, st):
        if st.path.startswith("foo"):
            st.path = "_" + st.path
            return MapResult.KEEP
        return MapResult.EXCLUDE

    assert collect(d, FilterOpt(map_fn=rename)) == [
        "dir _foo", "file _foo/bar2", "file _foo2",
    ]


def test_walker_map_skip_dir(tmp_path):
    d = make_tree(tmp_path, [
        "ADD excludeDir dir",
        "ADD excludeDir/a.txt file",
        "ADD includeDir dir",
        "ADD includeDir/a.txt file",
    ])
    walked = []

    def decide(_, st):
        walked.append(st.path)
        if st.path.startswith("excludeDir"):
            return MapResult.SKIP_DIR
        if st.path.startswith("includeDir"):
            return MapResult.KEEP
        return MapResult.EXCLUDE

    assert collect(d, FilterOpt(map_fn=decide)) == ["dir includeDir", "file includeDir/a.txt"]
    assert walked == ["excludeDir", "includeDir", "includeDir/a.txt"]


def test_walker_permission_denied(tmp_path):
    d = make_tree(tmp_path, ["ADD foo dir", "ADD foo/bar dir"])
    denied = os.sep + os.path.join("foo", "bar")
    real_scandir = os.scandir

    def fake_scandir(path):
        if os.fspath(path).endswith(denied):
            raise PermissionError(errno.EACCES, "Permission denied", path)
        return real_scandir(path)

    with mock.patch("os.scandir", side_effect=fake_scandir):
        with pytest.raises(PermissionError):
            collect(d, FilterOpt())
        assert collect(d, FilterOpt(exclude_patterns=["**/bar"])) == ["dir foo"]
        assert collect(d, FilterOpt(exclude_patterns=["**/bar", "!foo/bar/baz"])) == ["dir foo"]
        with pytest.raises(PermissionError):
            collect(d, FilterOpt(exclude_patterns=["**/bar", "!foo/bar"]))
        assert collect(d, FilterOpt(include_patterns=["foo", "!**/bar"])) == ["dir foo"]


DOUBLESTAR_TREE = [
    "ADD a dir",
    "ADD a/b dir",
    "ADD a/b/baz dir",
    "ADD a/b/bar dir ",
    "ADD a/b/bar/foo file",
    "ADD a/b/bar/fop file",
    "ADD bar dir",
    "ADD bar/foo file",
    "ADD baz dir",
    "ADD foo2 file",
    "ADD foo dir",
    "ADD foo/bar dir",
    "ADD foo/bar/bee file",
]


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("**", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "file a/b/bar/fop",
            "dir a/b/baz", "dir bar", "file bar/foo", "dir baz", "dir foo", "dir foo/bar",
            "file foo/bar/bee", "file foo2",
        ]),
        ("**/bar", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "file a/b/bar/fop",
            "dir bar", "file bar/foo", "dir foo", "dir foo/bar", "file foo/bar/bee",
        ]),
        ("**/bar/foo", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "dir bar", "file bar/foo",
        ]),
        ("**/b*", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "file a/b/bar/fop",
            "dir a/b/baz", "dir bar", "file bar/foo", "dir baz", "dir foo", "dir foo/bar",
            "file foo/bar/bee",
        ]),
        ("**/bar/f*", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "file a/b/bar/fop",
            "dir bar", "file bar/foo",
        ]),
        ("**/bar/g*", []),
        ("**/f*", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "file a/b/bar/fop",
            "dir bar", "file bar/foo", "dir foo", "dir foo/bar", "file foo/bar/bee",
            "file foo2",
        ]),
        ("**/b*/f*", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "file a/b/bar/fop",
            "dir bar", "file bar/foo",
        ]),
        ("**/b*/foo", [
            "dir a", "dir a/b", "dir a/b/bar", "file a/b/bar/foo", "dir bar", "file bar/foo",
        ]),
        ("**/foo/**", ["dir foo", "dir foo/bar", "file foo/bar/bee"]),
        ("**/baz", ["dir a", "dir a/b", "dir a/b/baz", "dir baz"]),
    ],
)
def test_walker_doublestar_include(tmp_path, pattern, expected):
    d = make_tree(tmp_path, DOUBLESTAR_TREE)
    assert collect(d, FilterOpt(include_patterns=[pattern])) == expected


def test_walk_dir_reports_entries(tmp_path):
    d = make_tree(tmp_path, ["ADD foo file", "ADD bar dir", "ADD bar/foo2 file"])
    entries = []

    def fn(path, entry, error):
        assert error is None
        entries.append(entry)

    assert walk_dir(d, FilterOpt(exclude_patterns=["foo"]), fn) is None
    assert [e.info().stat.path for e in entries] == ["bar", "bar/foo2"]
    assert [e.is_dir() for e in entries] == [True, False]


def test_fs_walk_nested(tmp_path):
    d = make_tree(tmp_path, ["ADD foo dir", "ADD foo/bar file"])
    f = new_fs(d)

    f2 = new_filter_fs(f, FilterOpt(exclude_patterns=["foo", "!foo/bar"]))
    assert collect_fs(f2) == ["dir foo", "file foo/bar"]

    f2 = new_filter_fs(f, FilterOpt(exclude_patterns=["!foo/bar"]))
    f2 = new_filter_fs(f2, FilterOpt(exclude_patterns=["foo"]))
    assert collect_fs(f2) == []

    f2 = new_filter_fs(f, FilterOpt(exclude_patterns=["foo"]))
    f2 = new_filter_fs(f2, FilterOpt(exclude_patterns=["!foo/bar"]))
    assert collect_fs(f2) == []


def test_new_filter_fs_without_options_returns_same_view(tmp_path):
    f = new_fs(make_tree(tmp_path, ["ADD foo file"]))
    assert new_filter_fs(f, None) is f


def test_filtered_open(tmp_path):
    d = make_tree(tmp_path, ["ADD foo file", "ADD bar file"])
    f = new_filter_fs(new_fs(d), FilterOpt(exclude_patterns=["bar"]))
    assert collect_fs(f) == ["file foo"]
    with f.open("foo") as r:
        assert r.read() == b""
    with pytest.raises(FileNotFoundError):
        f.open("bar")


def test_filtered_open_wildcard(tmp_path):
    d = make_tree(tmp_path, [
        "ADD baz file", "ADD bar dir", "ADD bar2 file", "ADD bar/foo file",
    ])
    f = new_filter_fs(new_fs(d), FilterOpt(include_patterns=["bar*"]))
    with pytest.raises(FileNotFoundError):
        f.open("baz")
    with f.open("bar2") as r:
        assert r.read() == b""
    with f.open("bar/foo") as r:
        assert r.read() == b""


def test_filtered_open_invert(tmp_path):
    d = make_tree(tmp_path, [
        "ADD foo dir",
        "ADD foo/bar dir",
        "ADD foo/bar/baz dir",
        "ADD foo/bar/baz/x file",
        "ADD foo/bar/baz/y file",
    ])
    f = new_filter_fs(new_fs(d), FilterOpt(
        exclude_patterns=["foo", "!foo/bar", "foo/bar/baz", "!foo/bar/baz/x"]))
    with f.open("foo/bar/baz/x") as r:
        assert r.read() == b""
    with pytest.raises(FileNotFoundError):
        f.open("foo/bar/baz/y")