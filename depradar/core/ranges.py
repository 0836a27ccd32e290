"""
Version range value types and the grammars that compile into them.

Every range syntax depradar understands is translated into the same
three types and evaluated by the same code:

* :class:`Bound`: a version plus an inclusive/exclusive flag.
* :class:`VersionRange`: an optional lower and optional upper bound.
* :class:`RangeSet`: a union of alternatives, each alternative being an
  intersection of ranges.

Supported grammars:

* OSV ``events`` (``introduced`` / ``fixed`` / ``last_affected``)
* NuGet interval notation (``[1.0.0, 2.0.0)``)
* Composer constraints (``>=1.0,<2.0 || ^3.0``)
* npm ranges (``^1.2.0 || >=3 <4``, ``1.x``, ``1.0.0 - 2.0.0``)

Parse failures raise :class:`~depradar.exceptions.RangeParseError`; what
that means for a match is decided by the caller.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from depradar.exceptions import RangeParseError
from depradar.utils.version_utils import compare_versions

Comparator = Callable[[str, str], int]

# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bound:
    """One end of a version interval."""

    version: str
    inclusive: bool = True


@dataclass(frozen=True)
class VersionRange:
    """A contiguous interval of versions.

    ``None`` on either side means unbounded.

    Example:
        >>> r = VersionRange(Bound("1.0.0"), Bound("2.0.0", inclusive=False))
        >>> r.contains("1.5.0"), r.contains("2.0.0")
        (True, False)
    """

    lower: Optional[Bound] = None
    upper: Optional[Bound] = None

    @classmethod
    def exact(cls, version: str) -> "VersionRange":
        return cls(Bound(version, True), Bound(version, True))

    def contains(self, version: str, compare: Comparator = compare_versions) -> bool:
        """Return True if ``version`` lies inside the interval."""
        if self.lower is not None:
            order = compare(version, self.lower.version)
            if order < 0 or (order == 0 and not self.lower.inclusive):
                return False
        if self.upper is not None:
            order = compare(version, self.upper.version)
            if order > 0 or (order == 0 and not self.upper.inclusive):
                return False
        return True

    def __str__(self) -> str:
        if self.lower is None and self.upper is None:
            return "*"
        if (
            self.lower is not None
            and self.upper is not None
            and self.lower == self.upper
            and self.lower.inclusive
        ):
            return f"={self.lower.version}"
        parts = []
        if self.lower is not None:
            parts.append((">=" if self.lower.inclusive else ">") + self.lower.version)
        if self.upper is not None:
            parts.append(("<=" if self.upper.inclusive else "<") + self.upper.version)
        return ", ".join(parts)


@dataclass(frozen=True)
class RangeSet:
    """Union of alternatives; each alternative is an intersection of ranges.

    An empty set contains nothing.
    """

    alternatives: Tuple[Tuple[VersionRange, ...], ...] = ()

    @classmethod
    def of(cls, *ranges: VersionRange) -> "RangeSet":
        """Union of single ranges."""
        return cls(tuple((r,) for r in ranges))

    def contains(self, version: str, compare: Comparator = compare_versions) -> bool:
        return any(
            all(r.contains(version, compare) for r in alternative)
            for alternative in self.alternatives
        )

    def __bool__(self) -> bool:
        return bool(self.alternatives)

    def __str__(self) -> str:
        return " || ".join(
            ", ".join(str(r) for r in alternative) for alternative in self.alternatives
        )


# ---------------------------------------------------------------------------
# Partial version helpers
# ---------------------------------------------------------------------------

_PARTIAL_RE = re.compile(
    r"^v?(\d+|[xX*])(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?(?:\.(\d+))?"
    r"(-[0-9A-Za-z.\-]+)?(?:\+[0-9A-Za-z.\-]+)?$"
)


@dataclass(frozen=True)
class _Partial:
    numbers: Tuple[int, ...]
    prerelease: str
    wildcard: bool

    @property
    def text(self) -> str:
        return ".".join(str(n) for n in self.numbers) + self.prerelease

    def padded(self, width: int = 3) -> str:
        numbers = self.numbers + (0,) * max(0, width - len(self.numbers))
        return ".".join(str(n) for n in numbers) + self.prerelease

    @property
    def is_full(self) -> bool:
        return len(self.numbers) >= 3 and not self.wildcard


def _parse_partial(text: str, expression: str) -> _Partial:
    match = _PARTIAL_RE.match(text.strip())
    if not match:
        raise RangeParseError(f"Invalid version in range: {text!r}", expression=expression)

    numbers: List[int] = []
    wildcard = False
    for group in match.groups()[:4]:
        if group is None:
            break
        if group in ("x", "X", "*"):
            wildcard = True
            break
        numbers.append(int(group))

    return _Partial(tuple(numbers), match.group(5) or "", wildcard)


def _bump(numbers: Sequence[int], index: int) -> str:
    """Increment ``numbers[index]`` and zero everything after it."""
    padded = list(numbers) + [0] * max(0, 3 - len(numbers))
    padded[index] += 1
    for i in range(index + 1, len(padded)):
        padded[i] = 0
    return ".".join(str(n) for n in padded)


def _caret(partial: _Partial) -> VersionRange:
    numbers = partial.numbers
    if not numbers:
        return VersionRange()
    padded = list(numbers) + [0] * (3 - len(numbers))
    if padded[0] > 0 or len(numbers) == 1:
        index = 0
    elif padded[1] > 0 or len(numbers) == 2:
        index = 1
    else:
        index = 2
    return VersionRange(
        Bound(partial.padded(), True),
        Bound(_bump(numbers, index), False),
    )


def _tilde(partial: _Partial, *, composer: bool) -> VersionRange:
    numbers = partial.numbers
    if not numbers:
        return VersionRange()
    if composer:
        index = max(len(numbers) - 2, 0)
    else:
        index = 1 if len(numbers) >= 2 else 0
    return VersionRange(
        Bound(partial.padded(), True),
        Bound(_bump(numbers, index), False),
    )


def _x_range(partial: _Partial) -> VersionRange:
    """``1.2.x`` / ``1.2`` style: everything sharing the given prefix."""
    if not partial.numbers:
        return VersionRange()
    return VersionRange(
        Bound(partial.padded(), True),
        Bound(_bump(partial.numbers, len(partial.numbers) - 1), False),
    )


_COMPARATOR_RE = re.compile(r"^(\^|~>|~|>=|<=|>|<|==|=|!=)?\s*(.*)$")


def _comparator_range(
    clause: str,
    expression: str,
    *,
    composer: bool,
) -> Optional[VersionRange]:
    """Compile one comparator clause; ``None`` means "no constraint"."""
    match = _COMPARATOR_RE.match(clause)
    if match is None:
        raise RangeParseError(f"Invalid comparator: {clause!r}", expression=expression)
    operator, version = match.group(1) or "", match.group(2)

    # Composer stability flags (``@dev``) do not affect the range.
    version = version.split("@", 1)[0].strip()
    if version in ("", "*", "x", "X"):
        if operator in ("", "=", "=="):
            return VersionRange()
        raise RangeParseError(f"Operator without version: {clause!r}", expression=expression)

    partial = _parse_partial(version, expression)
    partial_prefix = not partial.is_full

    if operator == "^":
        return _caret(partial)
    if operator in ("~", "~>"):
        return _tilde(partial, composer=composer)
    if operator == "!=":
        return None
    if operator == ">=":
        return VersionRange(lower=Bound(partial.padded(), True))
    if operator == "<":
        return VersionRange(upper=Bound(partial.padded(), False))
    if operator == ">":
        if partial_prefix and partial.numbers:
            return VersionRange(
                lower=Bound(_bump(partial.numbers, len(partial.numbers) - 1), True)
            )
        return VersionRange(lower=Bound(partial.text, False))
    if operator == "<=":
        if partial_prefix and partial.numbers:
            return VersionRange(
                upper=Bound(_bump(partial.numbers, len(partial.numbers) - 1), False)
            )
        return VersionRange(upper=Bound(partial.text, True))

    # Bare or "=" versions: wildcards are prefix ranges; npm also treats
    # partial versions (``1.2``) as prefixes while Composer pins them.
    if partial.wildcard or (partial_prefix and not composer):
        return _x_range(partial)
    return VersionRange.exact(partial.text)


def _tokenize(alternative: str) -> List[str]:
    """Split an alternative into clauses, re-attaching detached operators."""
    raw = [t for t in re.split(r"\s*,\s*|\s+", alternative.strip()) if t]
    tokens: List[str] = []
    pending = ""
    for token in raw:
        if re.fullmatch(r"\^|~>|~|>=|<=|>|<|==|=|!=", token):
            pending += token
            continue
        tokens.append(pending + token)
        pending = ""
    if pending:
        tokens.append(pending)
    return tokens


_HYPHEN_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")


def _hyphen_range(low: str, high: str, expression: str) -> VersionRange:
    lower = _parse_partial(low, expression)
    upper = _parse_partial(high, expression)
    if upper.is_full or not upper.numbers:
        upper_bound = Bound(upper.text, True) if upper.numbers else None
    else:
        upper_bound = Bound(_bump(upper.numbers, len(upper.numbers) - 1), False)
    return VersionRange(Bound(lower.padded(), True), upper_bound)


def _compile_constraint(expression: str, *, composer: bool) -> RangeSet:
    text = expression.strip()
    if not text:
        raise RangeParseError("Empty range expression", expression=expression)

    separator = r"\s*\|\|?\s*" if composer else r"\s*\|\|\s*"
    alternatives: List[Tuple[VersionRange, ...]] = []

    for alternative in re.split(separator, text):
        if not alternative.strip():
            raise RangeParseError("Empty alternative in range", expression=expression)

        hyphen = _HYPHEN_RE.match(alternative)
        if hyphen:
            alternatives.append((_hyphen_range(hyphen.group(1), hyphen.group(2), expression),))
            continue

        ranges = []
        for clause in _tokenize(alternative):
            compiled = _comparator_range(clause, expression, composer=composer)
            if compiled is not None:
                ranges.append(compiled)
        alternatives.append(tuple(ranges) or (VersionRange(),))

    return RangeSet(tuple(alternatives))


# ---------------------------------------------------------------------------
# Public grammar compilers
# ---------------------------------------------------------------------------


def parse_composer_constraint(expression: str) -> RangeSet:
    """Compile a Composer constraint such as ``">=1.0,<1.2|>=2.0,<2.1"``.

    ``|`` or ``||`` separate alternatives; commas or spaces separate
    clauses that must all hold.

    Raises:
        RangeParseError: The expression cannot be compiled.
    """
    return _compile_constraint(expression, composer=True)


def parse_npm_range(expression: str) -> RangeSet:
    """Compile an npm range such as ``"^1.2.0 || >=3.0.0 <4.0.0"``.

    Raises:
        RangeParseError: The expression cannot be compiled.
    """
    return _compile_constraint(expression, composer=False)


def parse_nuget_range(expression: str) -> VersionRange:
    """Compile NuGet interval notation.

    ``[`` / ``]`` are inclusive, ``(`` / ``)`` exclusive, an empty side is
    unbounded, ``[1.0]`` is an exact match and a bare ``1.0`` means
    ``>= 1.0``.

    Example:
        >>> str(parse_nuget_range("[1.0.0, 2.0.0)"))
        '>=1.0.0, <2.0.0'

    Raises:
        RangeParseError: The expression cannot be compiled.
    """
    text = expression.strip()
    if not text:
        raise RangeParseError("Empty range expression", expression=expression)

    if text[0] not in "[(":
        _parse_partial(text, expression)
        return VersionRange(lower=Bound(text, True))

    if text[-1] not in "])":
        raise RangeParseError("Unterminated interval", expression=expression)

    inner = text[1:-1]
    if "," not in inner:
        if text[0] == "[" and text[-1] == "]" and inner.strip():
            _parse_partial(inner, expression)
            return VersionRange.exact(inner.strip())
        raise RangeParseError("Invalid exact-version interval", expression=expression)

    low, high = (part.strip() for part in inner.split(",", 1))
    if not low and not high:
        raise RangeParseError("Interval has no bounds", expression=expression)

    lower = upper = None
    if low:
        _parse_partial(low, expression)
        lower = Bound(low, text[0] == "[")
    if high:
        _parse_partial(high, expression)
        upper = Bound(high, text[-1] == "]")
    return VersionRange(lower, upper)


def ranges_from_osv_events(events: Iterable[Any]) -> RangeSet:
    """Compile an OSV ``ranges[].events`` list.

    Events are walked in order: ``introduced`` opens an interval
    (``"0"`` meaning unbounded), ``fixed`` and ``limit`` close it
    exclusively, ``last_affected`` closes it inclusively.  An interval
    still open at the end is unbounded above.  Each event normally holds
    one key; several keys in one event are applied in that same order.

    Example:
        >>> rs = ranges_from_osv_events([{"introduced": "1.0.0"}, {"fixed": "2.0.0"}])
        >>> rs.contains("1.5.0"), rs.contains("2.0.0"), rs.contains("0.9.0")
        (True, False, False)

    Raises:
        RangeParseError: An event is not a mapping or holds no usable
            version.
    """
    alternatives: List[Tuple[VersionRange, ...]] = []
    lower: Optional[Bound] = None
    is_open = False

    for event in events:
        if not isinstance(event, dict):
            raise RangeParseError(f"Malformed OSV event: {event!r}")

        recognised = False
        for key in ("introduced", "fixed", "limit", "last_affected"):
            if key not in event:
                continue
            recognised = True
            value = str(event[key]).strip()
            if not re.search(r"\d", value):
                raise RangeParseError(f"Invalid OSV {key} version", expression=value)

            if key == "introduced":
                if not is_open:
                    lower = None if value in ("0", "0.0.0") else Bound(value, True)
                    is_open = True
                continue

            upper = Bound(value, key == "last_affected")
            alternatives.append((VersionRange(lower if is_open else None, upper),))
            lower, is_open = None, False

        if not recognised:
            raise RangeParseError(f"Unrecognised OSV event: {event!r}")

    if is_open:
        alternatives.append((VersionRange(lower, None),))

    return RangeSet(tuple(alternatives))
