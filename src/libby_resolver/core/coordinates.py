"""
libby_resolver.core.coordinates - Coordinate Parser
=====================================================

Turns the textual forms users type into Coordinate and Exclusion models.

Accepted forms:
    group:artifact:version
    group:artifact:classifier:version

Exclusion form:
    group:artifact      (either side may be "*")
"""

from __future__ import annotations

from typing import Iterable, Optional

from libby_resolver.core.exceptions import MalformedCoordinateError
from libby_resolver.core.models import DEFAULT_PACKAGING, Coordinate, Exclusion


def _split(text: str, allowed_counts: tuple[int, ...], kind: str) -> list[str]:
    if not isinstance(text, str):
        raise MalformedCoordinateError(
            message=f"{kind} must be a string, got {type(text).__name__}",
            coordinate=repr(text),
        )

    segments = [segment.strip() for segment in text.strip().split(":")]

    if len(segments) not in allowed_counts:
        expected = " or ".join(str(count) for count in allowed_counts)
        raise MalformedCoordinateError(
            message=(
                f"Malformed {kind} '{text}': expected {expected} "
                f"colon-separated segments, got {len(segments)}"
            ),
            coordinate=text,
            details={"segments": len(segments)},
        )

    if any(not segment for segment in segments):
        raise MalformedCoordinateError(
            message=f"Malformed {kind} '{text}': empty segment",
            coordinate=text,
        )

    return segments


def parse_coordinate(text: str, packaging: str = DEFAULT_PACKAGING) -> Coordinate:
    """Parse ``group:artifact[:classifier]:version`` into a Coordinate.

    Args:
        text: The coordinate string. Surrounding whitespace is ignored.
        packaging: File extension to attach (not part of the string form).

    Returns:
        The parsed Coordinate. ``str(result)`` reproduces the input.

    Raises:
        MalformedCoordinateError: If the segment count is not 3 or 4, or
            any segment is empty.

    Example:
        >>> parse_coordinate("com.example:lib:2.0").version
        '2.0'
        >>> parse_coordinate("com.example:lib:sources:2.0").classifier
        'sources'
    """
    segments = _split(text, (3, 4), "coordinate")

    classifier: Optional[str] = None
    if len(segments) == 4:
        group_id, artifact_id, classifier, version = segments
    else:
        group_id, artifact_id, version = segments

    return Coordinate(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        classifier=classifier,
        packaging=packaging,
    )


def parse_coordinates(texts: Iterable[str]) -> list[Coordinate]:
    return [parse_coordinate(text) for text in texts]


def parse_exclusion(text: str) -> Exclusion:
    """Parse a ``group:artifact`` exclusion pattern.

    Raises:
        MalformedCoordinateError: If the pattern does not have exactly two
            non-empty segments.
    """
    group_id, artifact_id = _split(text, (2,), "exclusion")
    return Exclusion(group_id=group_id, artifact_id=artifact_id)
