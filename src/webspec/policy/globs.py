"""Path-glob matching for write policies.

Patterns follow the usual shell-glob dialect used in stack manifests:

- ``*`` and ``?`` never cross a ``/``;
- ``**`` spans directories (``a/**`` also matches ``a`` itself, ``**/x`` matches ``x``);
- ``{a,b}`` alternation and ``[...]`` classes (``[!...]`` negates).

Dot-files are matched like any other name. Paths are compared after normalising
separators and stripping leading ``./`` segments.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Final

_DRIVE_PREFIX_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z]:")


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    return re.compile(_translate(pattern), re.DOTALL)


def glob_matches(path: str, pattern: str) -> bool:
    return compile_glob(pattern).fullmatch(normalize_glob_path(path)) is not None


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(glob_matches(path, pattern) for pattern in patterns)


def first_match(path: str, patterns: Iterable[str]) -> str | None:
    for pattern in patterns:
        if glob_matches(path, pattern):
            return pattern
    return None


def normalize_glob_path(path: str) -> str:
    candidate = path.replace("\\", "/")
    while candidate.startswith("./"):
        candidate = candidate[2:]
    return candidate


def normalize_relative_path(raw: str) -> tuple[str | None, str | None]:
    """Return ``(normalized, None)`` or ``(None, reason)`` for a workspace-relative path."""

    candidate = raw.replace("\\", "/").strip()
    if not candidate:
        return None, "empty path"
    if "\x00" in candidate:
        return None, "contains NUL"
    pure = PurePosixPath(candidate)
    if pure.is_absolute():
        return None, "absolute path"
    if _DRIVE_PREFIX_RE.match(candidate) is not None:
        return None, "drive-prefixed path"
    if ".." in pure.parts:
        return None, "path traversal segment"

    cleaned = [part for part in pure.parts if part not in {"", "."}]
    if not cleaned:
        return None, "empty normalized path"
    return "/".join(cleaned), None


def _translate(pattern: str) -> str:
    out: list[str] = []
    index = 0
    length = len(pattern)
    while index < length:
        char = pattern[index]
        if char == "*":
            if pattern.startswith("**", index):
                end = index + 2
                at_segment_start = index == 0 or pattern[index - 1] == "/"
                if at_segment_start and end < length and pattern[end] == "/":
                    out.append("(?:.*/)?")
                    index = end + 1
                    continue
                if at_segment_start and end == length and index > 0:
                    out.pop()  # the "/" before "**"
                    out.append("(?:/.*)?")
                    index = end
                    continue
                out.append(".*")
                index = end
                continue
            out.append("[^/]*")
            index += 1
            continue
        if char == "?":
            out.append("[^/]")
            index += 1
            continue
        if char == "[":
            close = _class_end(pattern, index)
            if close < 0:
                out.append(re.escape(char))
                index += 1
                continue
            body = pattern[index + 1 : close].replace("\\", "\\\\")
            if body.startswith("!"):
                body = "^" + body[1:]
            elif body.startswith("^"):
                body = "\\" + body
            out.append("[" + body + "]")
            index = close + 1
            continue
        if char == "{":
            close = _brace_end(pattern, index)
            if close < 0:
                out.append(re.escape(char))
                index += 1
                continue
            options = _split_alternatives(pattern[index + 1 : close])
            out.append("(?:" + "|".join(_translate(option) for option in options) + ")")
            index = close + 1
            continue
        out.append(re.escape(char))
        index += 1
    return "".join(out)


def _class_end(pattern: str, start: int) -> int:
    cursor = start + 1
    if cursor < len(pattern) and pattern[cursor] in "!^":
        cursor += 1
    if cursor < len(pattern) and pattern[cursor] == "]":
        cursor += 1
    return pattern.find("]", cursor)


def _brace_end(pattern: str, start: int) -> int:
    depth = 0
    for cursor in range(start, len(pattern)):
        if pattern[cursor] == "{":
            depth += 1
        elif pattern[cursor] == "}":
            depth -= 1
            if depth == 0:
                return cursor
    return -1


def _split_alternatives(body: str) -> list[str]:
    options: list[str] = []
    depth = 0
    current: list[str] = []
    for char in body:
        if char == "," and depth == 0:
            options.append("".join(current))
            current = []
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        current.append(char)
    options.append("".join(current))
    return options


__all__ = [
    "compile_glob",
    "first_match",
    "glob_matches",
    "matches_any",
    "normalize_glob_path",
    "normalize_relative_path",
]
