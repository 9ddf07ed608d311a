"""
libby_resolver.core.versions - Maven Version Ordering and Ranges
==================================================================

Maven versions are not semver. Ordering rules implemented here follow the
Maven ComparableVersion conventions closely enough for mediation and range
selection:

    - Versions are split into items on ".", "-" and digit/letter boundaries.
    - Numeric items compare numerically; a numeric item beats a qualifier.
    - Qualifiers rank: alpha < beta < milestone < rc < snapshot < (release)
      < sp. Unknown qualifiers sort after "sp", alphabetically.
    - Trailing zeros and release qualifiers ("ga", "final", "release") are
      dropped, so "1.0" == "1" == "1.0.0-ga".

Ranges use Maven's interval syntax:

    [1.0,2.0)   1.0 <= v < 2.0
    (,1.0]      v <= 1.0
    [1.5]       exactly 1.5
    [1,2),[3,)  union of intervals

Usage:
    >>> compare_versions("1.0-rc1", "1.0")
    -1
    >>> VersionRange.parse("[1.0,2.0)").contains("1.9.9")
    True
    >>> select_version("[1.0,2.0)", ["0.9", "1.2", "1.8", "2.0"])
    '1.8'
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable, Optional, Union

from pydantic import BaseModel

from libby_resolver.core.exceptions import NotFoundError


# =============================================================================
# Qualifier Ranking
# =============================================================================
_QUALIFIER_RANKS = {
    "alpha": 0,
    "a": 0,
    "beta": 1,
    "b": 1,
    "milestone": 2,
    "m": 2,
    "rc": 3,
    "cr": 3,
    "snapshot": 4,
    "": 5,
    "ga": 5,
    "final": 5,
    "release": 5,
    "sp": 6,
}
_RELEASE_RANK = 5
_UNKNOWN_RANK = 7

_TOKEN_PATTERN = re.compile(r"\d+|[a-z]+")

Item = Union[int, str]


def _tokenize(version: str) -> list[Item]:
    items: list[Item] = []
    for token in _TOKEN_PATTERN.findall(version.lower()):
        items.append(int(token) if token.isdigit() else token)

    # "1.0.0-final" and "1" are the same version
    while items and (items[-1] == 0 or _is_release_qualifier(items[-1])):
        items.pop()
    return items


def _is_release_qualifier(item: Item) -> bool:
    return isinstance(item, str) and _QUALIFIER_RANKS.get(item) == _RELEASE_RANK


def _qualifier_rank(qualifier: str) -> tuple[int, str]:
    rank = _QUALIFIER_RANKS.get(qualifier)
    if rank is None:
        return (_UNKNOWN_RANK, qualifier)
    return (rank, "")


def _compare_items(left: Optional[Item], right: Optional[Item]) -> int:
    if left is None and right is None:
        return 0
    if left is None:
        return -_compare_items(right, None)

    if isinstance(left, int):
        if right is None:
            return 1 if left > 0 else 0
        if isinstance(right, int):
            return (left > right) - (left < right)
        return 1

    # left is a qualifier
    if right is None:
        left_rank = _qualifier_rank(left)
        release_rank = (_RELEASE_RANK, "")
        return (left_rank > release_rank) - (left_rank < release_rank)
    if isinstance(right, int):
        return -1
    left_rank, right_rank = _qualifier_rank(left), _qualifier_rank(right)
    return (left_rank > right_rank) - (left_rank < right_rank)


def compare_versions(left: str, right: str) -> int:
    """Compare two Maven versions.

    Returns:
        -1 if left < right, 0 if equal, 1 if left > right.
    """
    left_items, right_items = _tokenize(left), _tokenize(right)
    for index in range(max(len(left_items), len(right_items))):
        a = left_items[index] if index < len(left_items) else None
        b = right_items[index] if index < len(right_items) else None
        result = _compare_items(a, b)
        if result:
            return result
    return 0


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Return versions sorted ascending by Maven ordering."""
    return sorted(versions, key=cmp_to_key(compare_versions))


def max_version(versions: Iterable[str]) -> Optional[str]:
    ordered = sort_versions(versions)
    return ordered[-1] if ordered else None


def is_snapshot(version: str) -> bool:
    return version.upper().endswith("SNAPSHOT")


# =============================================================================
# Version Ranges
# =============================================================================
class Restriction(BaseModel):
    """One interval of a version range. None bounds are unbounded."""

    lower: Optional[str] = None
    lower_inclusive: bool = False
    upper: Optional[str] = None
    upper_inclusive: bool = False

    def contains(self, version: str) -> bool:
        if self.lower is not None:
            result = compare_versions(version, self.lower)
            if result < 0 or (result == 0 and not self.lower_inclusive):
                return False
        if self.upper is not None:
            result = compare_versions(version, self.upper)
            if result > 0 or (result == 0 and not self.upper_inclusive):
                return False
        return True


_INTERVAL_PATTERN = re.compile(r"([\[(])([^\[\]()]*)([\])])")


class VersionRange(BaseModel):
    """A union of version intervals."""

    restrictions: list[Restriction]

    @staticmethod
    def is_range(requirement: str) -> bool:
        return requirement.strip()[:1] in ("[", "(")

    @classmethod
    def parse(cls, requirement: str) -> VersionRange:
        """Parse Maven range syntax.

        Raises:
            ValueError: If the text is not a well-formed range.
        """
        text = requirement.replace(" ", "")
        restrictions: list[Restriction] = []
        position = 0

        for match in _INTERVAL_PATTERN.finditer(text):
            separator = text[position:match.start()]
            if separator not in ("", ","):
                raise ValueError(f"Malformed version range: {requirement!r}")
            position = match.end()

            opening, body, closing = match.groups()
            lower_inclusive = opening == "["
            upper_inclusive = closing == "]"

            if "," not in body:
                # "[1.5]" pins an exact version
                if not (lower_inclusive and upper_inclusive) or not body:
                    raise ValueError(f"Malformed version range: {requirement!r}")
                restrictions.append(
                    Restriction(lower=body, lower_inclusive=True, upper=body, upper_inclusive=True)
                )
                continue

            lower, upper = body.split(",", 1)
            restrictions.append(
                Restriction(
                    lower=lower or None,
                    lower_inclusive=lower_inclusive,
                    upper=upper or None,
                    upper_inclusive=upper_inclusive,
                )
            )

        if not restrictions or position != len(text):
            raise ValueError(f"Malformed version range: {requirement!r}")
        return cls(restrictions=restrictions)

    def contains(self, version: str) -> bool:
        return any(restriction.contains(version) for restriction in self.restrictions)


# =============================================================================
# Version Selection
# =============================================================================
def needs_metadata(requirement: str) -> bool:
    """True when a requirement can only be settled from repository metadata."""
    return requirement.upper() in ("LATEST", "RELEASE") or VersionRange.is_range(requirement)


def select_version(
    requirement: str,
    available: Iterable[str],
    coordinate: Optional[str] = None,
) -> str:
    """Pick a concrete version for a requirement.

    Soft requirements ("1.2.3") are returned unchanged. Ranges pick the
    highest available version they contain. LATEST picks the newest version,
    RELEASE the newest non-snapshot.

    Raises:
        NotFoundError: If nothing in ``available`` satisfies the requirement.
    """
    if not needs_metadata(requirement):
        return requirement

    candidates = list(available)
    keyword = requirement.upper()
    if keyword == "RELEASE":
        candidates = [v for v in candidates if not is_snapshot(v)]
    elif keyword != "LATEST":
        try:
            version_range = VersionRange.parse(requirement)
        except ValueError as exc:
            raise NotFoundError(
                message=str(exc),
                coordinate=coordinate,
                error_code="INVALID_VERSION_RANGE",
            ) from exc
        candidates = [v for v in candidates if version_range.contains(v)]

    selected = max_version(candidates)
    if selected is None:
        raise NotFoundError(
            message=f"No available version satisfies '{requirement}'",
            coordinate=coordinate,
            error_code="NO_MATCHING_VERSION",
            details={"requirement": requirement},
        )
    return selected
