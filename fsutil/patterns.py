"""Include/exclude path patterns in the style of ignore files."""

from __future__ import annotations

import dataclasses
import functools
import posixpath
import re


class PatternError(ValueError):
    """Raised for a malformed pattern."""


def _clean(p: str) -> str:
    if not p:
        return "."
    cleaned = posixpath.normpath(p)
    return "/" + cleaned.lstrip("/") if cleaned.startswith("//") else cleaned


def _dirname(p: str) -> str:
    return _clean(p[: p.rfind("/") + 1])


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    if i < len(pattern) and pattern[i] == "\\":
        i += 1
    elif i < len(pattern) and pattern[i] in "-]":
        raise PatternError("syntax error in pattern")
    if i >= len(pattern):
        raise PatternError("syntax error in pattern")
    return pattern[i], i + 1


@functools.lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern:
    out = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        i += 1
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "\\":
            if i >= len(pattern):
                raise PatternError("syntax error in pattern")
            out.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            negated = i < len(pattern) and pattern[i] == "^"
            i += negated
            ranges = []
            while not (ranges and i < len(pattern) and pattern[i] == "]"):
                lo, i = _class_char(pattern, i)
                hi = lo
                if i < len(pattern) and pattern[i] == "-":
                    hi, i = _class_char(pattern, i + 1)
                ranges.append(f"{re.escape(lo)}-{re.escape(hi)}" if lo <= hi else "")
            i += 1
            body = "".join(ranges)
            if negated:
                out.append(f"[^{body}]" if body else ".")
            else:
                out.append(f"[{body}]" if body else "(?!)")
        else:
            out.append(re.escape(c))
    return re.compile("".join(out), re.DOTALL)


def glob_match(pattern: str, name: str) -> bool:
    """Match a whole name against a shell glob; raise PatternError if malformed."""
    return _glob_regex(pattern).fullmatch(name) is not None


class Pattern:
    """One cleaned pattern, possibly an exclusion (written with a leading '!')."""

    def __init__(self, text: str, exclusion: bool = False) -> None:
        glob_match(text, ".")
        self._cleaned = text
        self.exclusion = exclusion
        self._kind: str | None = None
        self._regex: re.Pattern | None = None

    def __str__(self) -> str:
        return self._cleaned

    def _compile(self) -> None:
        text = self._cleaned
        parts = ["^"]
        kind = "exact"
        pos = 0
        step = 0
        while pos < len(text):
            ch = text[pos]
            pos += 1
            if ch == "*":
                if pos < len(text) and text[pos] == "*":
                    pos += 1
                    if pos < len(text) and text[pos] == "/":
                        pos += 1
                    if pos < len(text):
                        parts.append("(.*/)?")
                        kind = "regex"
                    elif kind == "exact":
                        kind = "prefix"
                    else:
                        parts.append(".*")
                        kind = "regex"
                    if step == 0:
                        kind = "suffix"
                else:
                    parts.append("[^/]*")
                    kind = "regex"
            elif ch == "?":
                parts.append("[^/]")
                kind = "regex"
            elif ch in ".+()|{}$":
                parts.append("\\" + ch)
            elif ch == "\\":
                if pos < len(text):
                    parts.append(re.escape(text[pos]))
                    pos += 1
                else:
                    parts.append("\\\\")
            else:
                if ch in "[]":
                    kind = "regex"
                parts.append(ch)
            step += 1

        if kind == "regex":
            try:
                self._regex = re.compile("".join(parts) + "$", re.DOTALL)
            except re.error as exc:
                raise PatternError(f"syntax error in pattern: {text}") from exc
        self._kind = kind

    def match(self, path: str) -> bool:
        if self._kind is None:
            self._compile()
        if self._kind == "exact":
            return path == self._cleaned
        if self._kind == "prefix":
            return path.startswith(self._cleaned[:-2])
        if self._kind == "suffix":
            suffix = self._cleaned[2:]
            return path.endswith(suffix) or (suffix[:1] == "/" and path == suffix[1:])
        return self._regex.fullmatch(path) is not None


@dataclasses.dataclass(frozen=True)
class MatchInfo:
    """Per-pattern results for a directory, reused when matching its children."""

    parent_matched: tuple[bool, ...] = ()


def _parent_matches(pattern: Pattern, parent: str) -> bool:
    dirs = parent.split("/")
    return any(pattern.match("/".join(dirs[: k + 1])) for k in range(len(dirs)))


class PatternMatcher:
    """An ordered list of patterns where later patterns override earlier ones."""

    def __init__(self, patterns) -> None:
        self.patterns: list[Pattern] = []
        self._exclusions = False
        for raw in patterns:
            text = raw.strip()
            if not text:
                continue
            text = _clean(text)
            exclusion = text[0] == "!"
            if exclusion:
                if len(text) == 1:
                    raise PatternError('illegal exclusion pattern: "!"')
                text = text[1:]
                self._exclusions = True
            self.patterns.append(Pattern(text, exclusion))

    def exclusions(self) -> bool:
        return self._exclusions

    def matches_or_parent_matches(self, path: str) -> bool:
        matched = False
        parent = _dirname(path)
        for pattern in self.patterns:
            if pattern.exclusion != matched:
                continue
            if pattern.match(path) or (parent != "." and _parent_matches(pattern, parent)):
                matched = not pattern.exclusion
        return matched

    def matches_using_parent_results(self, path: str, parent_info: MatchInfo | None = None):
        """Match ``path`` given its parent's MatchInfo; return (matched, MatchInfo)."""
        parent_matched = parent_info.parent_matched if parent_info is not None else ()
        if parent_matched and len(parent_matched) != len(self.patterns):
            raise PatternError("wrong number of values in parentMatched")
        matched = False
        results = []
        for index, pattern in enumerate(self.patterns):
            match = parent_matched[index] if parent_matched else False
            if not match:
                if pattern.exclusion != matched:
                    results.append(False)
                    continue
                match = pattern.match(path)
                if not match and not parent_matched:
                    parent = _dirname(path)
                    match = parent != "." and _parent_matches(pattern, parent)
            results.append(match)
            if match:
                matched = not pattern.exclusion
        return matched, MatchInfo(tuple(results))