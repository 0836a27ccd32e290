"""
Version comparison helpers for depradar.

The comparator here is deliberately ecosystem-neutral: it splits versions
on ``.`` and ``-`` and compares the pieces positionally.  Ecosystems with
a well-defined grammar of their own (PEP 440 for Python) wrap it in their
adapter; everything else uses it directly.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from depradar.constants import PRERELEASE_TAG_ORDER, UNKNOWN_TAG_RANK

#: Loose numeric prefix every comparable version must start with.
NUMERIC_PREFIX_RE = re.compile(r"^\d+(\.\d+)?(\.\d+)?")

#: Go pseudo-version suffix: ``-<14 digit timestamp>-<12 hex commit>``.
PSEUDO_VERSION_RE = re.compile(r"\d{14}-[0-9a-f]{12}$")

_SPLIT_RE = re.compile(r"[.\-]")
_TAG_RE = re.compile(r"^([a-zA-Z]+)(\d*)$")
_COERCE_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_CORE_RE = re.compile(r"^\d+(?:\.\d+)*")

_PartKey = Tuple[int, int, int, str]


def strip_version_prefix(version: str) -> str:
    """Drop surrounding whitespace, a leading ``v`` and ``+build`` metadata.

    Example:
        >>> strip_version_prefix(" v1.4.0+incompatible ")
        '1.4.0'
    """
    text = version.strip()
    if text[:1] in ("v", "V") and text[1:2].isdigit():
        text = text[1:]
    return text.split("+", 1)[0]


def _part_key(part: str) -> _PartKey:
    # Numbers outrank every tag, known tags outrank unknown ones.
    if part.isdigit():
        return (2, int(part), 0, "")

    match = _TAG_RE.match(part)
    if match:
        word = match.group(1).lower()
        number = int(match.group(2)) if match.group(2) else 0
        if word in PRERELEASE_TAG_ORDER:
            return (0, PRERELEASE_TAG_ORDER[word], number, "")
        return (1, UNKNOWN_TAG_RANK, number, word)

    return (1, UNKNOWN_TAG_RANK, 0, part.lower())


def compare_versions(a: str, b: str) -> int:
    """Three-way compare two version strings.

    Both strings are split on ``.`` and ``-`` and compared part by part,
    padding the shorter one with ``"0"``.  Two numeric parts compare as
    integers.  Otherwise prerelease tags order as ``dev < alpha < beta <
    rc = pre``, unknown tags sort after known ones (lexically among
    themselves), and numbers sort after any tag.

    Args:
        a: First version.
        b: Second version.

    Returns:
        Negative if ``a < b``, zero if equal, positive if ``a > b``.

    Example:
        >>> compare_versions("1.10.0", "1.9.3")
        1
        >>> compare_versions("2.0.0-beta.1", "2.0.0")
        -1
    """
    parts_a = [p for p in _SPLIT_RE.split(strip_version_prefix(a)) if p != ""]
    parts_b = [p for p in _SPLIT_RE.split(strip_version_prefix(b)) if p != ""]
    length = max(len(parts_a), len(parts_b))
    parts_a += ["0"] * (length - len(parts_a))
    parts_b += ["0"] * (length - len(parts_b))

    for left, right in zip(parts_a, parts_b):
        key_left, key_right = _part_key(left), _part_key(right)
        if key_left != key_right:
            return -1 if key_left < key_right else 1
    return 0


def major_version(version: str) -> int:
    """Return the leading integer of a version, or ``0`` when there is none."""
    match = re.match(r"\d+", strip_version_prefix(version))
    return int(match.group(0)) if match else 0


def is_pseudo_version(version: str) -> bool:
    """Return True for Go pseudo-versions such as ``v0.0.0-20210101000000-abcdef123456``."""
    return bool(PSEUDO_VERSION_RE.search(strip_version_prefix(version)))


def is_prerelease(version: str) -> bool:
    """Return True when anything other than build metadata follows the numeric core.

    Example:
        >>> is_prerelease("1.2.3")
        False
        >>> is_prerelease("1.2.3-rc.1")
        True
        >>> is_prerelease("2.0.0b1")
        True
    """
    text = strip_version_prefix(version)
    match = _CORE_RE.match(text)
    if not match:
        return False
    return bool(text[match.end():])


def has_numeric_prefix(version: str) -> bool:
    """Return True if ``version`` starts with ``N``, ``N.N`` or ``N.N.N``."""
    return bool(NUMERIC_PREFIX_RE.match(version))


def coerce_version(text: str) -> Optional[str]:
    """Pull the first ``x[.y[.z]]`` out of ``text`` and pad it to ``x.y.z``.

    Example:
        >>> coerce_version(">=1.2 <2")
        '1.2.0'
        >>> coerce_version("latest") is None
        True
    """
    match = _COERCE_RE.search(text)
    if not match:
        return None
    major, minor, patch = match.groups()
    return f"{int(major)}.{int(minor or 0)}.{int(patch or 0)}"


def _release_tuple(version: str) -> Tuple[int, ...]:
    match = _CORE_RE.match(strip_version_prefix(version))
    if not match:
        return ()
    return tuple(int(p) for p in match.group(0).split("."))


def get_update_type(
    current: Optional[str],
    target: Optional[str],
) -> str:
    """Describe the size of the step from ``current`` to ``target``.

    Args:
        current: Declared version, or ``None``.
        target: Version being compared against, or ``None``.

    Returns:
        One of ``"new"``, ``"same"``, ``"downgrade"``, ``"major"``,
        ``"minor"``, ``"patch"``, ``"update"`` or ``"unknown"``.
    """
    if target is None:
        return "unknown"
    if current is None:
        return "new"

    order = compare_versions(current, target)
    if order == 0:
        return "same"
    if order > 0:
        return "downgrade"

    cur = _release_tuple(current)
    tgt = _release_tuple(target)
    if not cur or not tgt:
        return "unknown"

    width = max(len(cur), len(tgt), 3)
    cur = cur + (0,) * (width - len(cur))
    tgt = tgt + (0,) * (width - len(tgt))

    if tgt[0] > cur[0]:
        return "major"
    if tgt[1] > cur[1]:
        return "minor"
    if tgt[2] > cur[2]:
        return "patch"
    return "update"
