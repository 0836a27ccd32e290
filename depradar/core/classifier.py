"""
Status classification and result ordering.

The classification rules are shared by every ecosystem; the adapter only
supplies the comparator, the major-version extractor and, for ecosystems
whose specifiers are ranges, a predicate telling whether the declared range
already admits a version.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from depradar.models import DependencyResult, Status
from depradar.models.dependency import pick_target
from depradar.utils.version_utils import compare_versions, major_version

Comparator = Callable[[str, str], int]
MajorExtractor = Callable[[str], int]
RangePredicate = Callable[[str], bool]


def classify_status(
    current: str,
    latest: str,
    latest_stable: Optional[str] = None,
    *,
    compare: Comparator = compare_versions,
    major: MajorExtractor = major_version,
    admits: Optional[RangePredicate] = None,
) -> Status:
    """Classify a declared version against the registry's newest versions.

    The checks run in a fixed order:

    1. ``target`` is ``latest_stable`` when it is set and differs from
       ``latest``, otherwise ``latest``.
    2. If ``admits`` is given and the declared range admits ``target``,
       the dependency is current.
    3. If ``current >= target`` it is current.
    4. If ``current``'s major version is below ``target``'s it is a major
       update, otherwise an ordinary outdated one.

    Args:
        current: Normalized declared version.
        latest: Newest version reported by the registry.
        latest_stable: Newest non-prerelease version, if any.
        compare: Three-way version comparator.
        major: Major-version extractor.
        admits: Range predicate for range-capable ecosystems.

    Returns:
        The :class:`~depradar.models.Status`.

    Example:
        >>> classify_status("1.0.0", "2.5.0")
        <Status.MAJOR: 'major'>
        >>> classify_status("1.0.0", "1.4.0", admits=lambda v: v.startswith("1."))
        <Status.CURRENT: 'current'>
    """
    target = pick_target(latest, latest_stable)

    if admits is not None and admits(target):
        return Status.CURRENT

    if compare(current, target) >= 0:
        return Status.CURRENT

    if major(current) < major(target):
        return Status.MAJOR
    return Status.OUTDATED


def sort_results(results: Iterable[DependencyResult]) -> List[DependencyResult]:
    """Order results major → outdated → current, then by name (case-sensitive)."""
    return sorted(results, key=lambda r: (r.status.rank, r.name))
