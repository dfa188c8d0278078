# src/core/parsing.py — v1
"""Parsers for the string-shaped command-line inputs of a run request."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from marathon_cloud.core.errors import (
    EnvArgError,
    InputError,
    InvalidApplicationBundle,
    InvalidFileName,
    InvalidGlobPattern,
    PullArgError,
)
from marathon_cloud.core.models import ApplicationBundle, PullFileConfig, PullFileItem

PULL_ROOTS = ("EXTERNAL_STORAGE", "APP_DATA")


def parse_env_args(args: list[str] | None) -> dict[str, str] | None:
    """Turn ["KEY=VALUE", ...] into a mapping.

    Only the first "=" separates key from value. A later duplicate key
    replaces the earlier one.

    Raises:
        EnvArgError: If an item has no "=" or an empty value.
    """
    if args is None:
        return None
    result: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep or not key:
            raise EnvArgError(arg, "expected KEY=VALUE")
        if not value:
            raise EnvArgError(arg, "missing value")
        result[key] = value
    return result


def parse_pull_args(args: list[str] | None) -> PullFileConfig | None:
    """Turn ["ROOT:PATH", ...] into a pull-file configuration.

    Raises:
        PullArgError: On a malformed item or an unknown ROOT.
    """
    if args is None:
        return None
    items: list[PullFileItem] = []
    for arg in args:
        parts = arg.split(":")
        if len(parts) != 2:
            raise PullArgError(f"Invalid pull file argument {arg!r}. Expected 'ROOT:PATH'")
        root, relative_path = parts
        if root not in PULL_ROOTS:
            raise PullArgError(
                f"Invalid pull root {root!r}. Supported: {', '.join(PULL_ROOTS)}"
            )
        items.append(PullFileItem(relative_path=relative_path, path_root=root))
    return PullFileConfig(pull_items=items)


def parse_application_bundles(args: list[str] | None) -> list[ApplicationBundle]:
    """Turn ["app.apk,test.apk", ...] into bundles whose files exist.

    Raises:
        InvalidApplicationBundle: If an item is not a comma-separated pair.
        InvalidFileName: If one of the files does not exist.
    """
    bundles: list[ApplicationBundle] = []
    for arg in args or []:
        parts = arg.split(",")
        if len(parts) != 2:
            raise InvalidApplicationBundle(arg)
        app_path, test_app_path = Path(parts[0]), Path(parts[1])
        for path in (app_path, test_app_path):
            if not path.exists():
                raise InvalidFileName(path)
        bundles.append(ApplicationBundle(app_path=app_path, test_app_path=test_app_path))
    return bundles


def load_filter_file(path: Path | None) -> dict[str, Any] | None:
    """Load a YAML filtering configuration as an opaque mapping.

    Raises:
        InputError: If the file cannot be read or is not a YAML mapping.
    """
    if path is None:
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise InputError(f"Can't read filter file {path}") from exc
    except yaml.YAMLError as exc:
        raise InputError(f"Filter file {path} is not valid YAML") from exc
    if not isinstance(data, dict):
        raise InputError(f"Filter file {path} must contain a YAML mapping")
    return data


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile an artifact glob into a regex to use with `fullmatch`.

    `*` and `?` also match "/". A `**` path component matches any number of
    directories, none included, so "tests/**/*.xml" selects
    "tests/junit.xml" as well as "tests/a/b/junit.xml". Character classes
    (`[a-z]`, `[!a]`), `{a,b}` alternation and backslash escapes are
    supported.

    Raises:
        InvalidGlobPattern: On an unclosed class or alternation, a nested
            alternation or a trailing backslash.
    """
    out: list[str] = []
    in_alternation = False
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*" and _is_globstar(pattern, i):
            if i + 2 == n:
                out.append(".*")
                i += 2
            else:
                out.append("(?:.*/)?")
                i += 3
        elif ch == "*":
            out.append(".*")
            i += 1
        elif ch == "?":
            out.append(".")
            i += 1
        elif ch == "\\":
            if i + 1 == n:
                raise InvalidGlobPattern(pattern, "dangling escape")
            out.append(re.escape(pattern[i + 1]))
            i += 2
        elif ch == "[":
            i = _append_class(pattern, i, out)
        elif ch == "{":
            if in_alternation:
                raise InvalidGlobPattern(pattern, "nested alternation")
            out.append("(?:")
            in_alternation = True
            i += 1
        elif ch == "}" and in_alternation:
            out.append(")")
            in_alternation = False
            i += 1
        elif ch == "," and in_alternation:
            out.append("|")
            i += 1
        else:
            out.append(re.escape(ch))
            i += 1
    if in_alternation:
        raise InvalidGlobPattern(pattern, "unclosed alternation")
    return re.compile("".join(out), re.DOTALL)


def _is_globstar(pattern: str, i: int) -> bool:
    """True if `**` at `i` forms a whole path component."""
    return (
        pattern.startswith("**", i)
        and (i == 0 or pattern[i - 1] == "/")
        and (i + 2 == len(pattern) or pattern[i + 2] == "/")
    )


def _append_class(pattern: str, start: int, out: list[str]) -> int:
    """Translate the class opening at `start`; return the index after it."""
    j = start + 1
    negate = j < len(pattern) and pattern[j] in "!^"
    if negate:
        j += 1
    body_start = j
    # A "]" right after the opening bracket is a literal member.
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 1
    if j >= len(pattern):
        raise InvalidGlobPattern(pattern, "unclosed character class")
    body = "".join(c if c == "-" else re.escape(c) for c in pattern[body_start:j])
    out.append(f"[{'^' if negate else ''}{body}]")
    return j + 1
