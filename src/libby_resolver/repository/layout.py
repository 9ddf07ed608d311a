"""
libby_resolver.repository.layout - Maven Repository Layout
============================================================

Maps coordinates to relative paths in the standard Maven repository layout,
shared by remote repositories and the local cache:

    com/example/lib/2.0/lib-2.0.jar
    com/example/lib/2.0/lib-2.0-sources.jar
    com/example/lib/2.0/lib-2.0.pom
    com/example/lib/maven-metadata.xml
"""

from __future__ import annotations

from typing import Optional

from libby_resolver.core.enums import ChecksumAlgorithm
from libby_resolver.core.models import Coordinate


METADATA_FILE = "maven-metadata.xml"

# Dependency <type> → (extension, implied classifier)
_TYPE_MAPPING: dict[str, tuple[str, Optional[str]]] = {
    "jar": ("jar", None),
    "bundle": ("jar", None),
    "maven-plugin": ("jar", None),
    "ejb": ("jar", None),
    "ejb-client": ("jar", "client"),
    "test-jar": ("jar", "tests"),
    "java-source": ("jar", "sources"),
    "javadoc": ("jar", "javadoc"),
    "pom": ("pom", None),
}


def extension_for_type(declared_type: str) -> tuple[str, Optional[str]]:
    """Return (extension, implied classifier) for a dependency <type>.

    Unknown types are their own extension ("war", "aar", "zip", ...).
    """
    return _TYPE_MAPPING.get(declared_type, (declared_type, None))


def _require_version(coordinate: Coordinate) -> str:
    if coordinate.version is None:
        raise ValueError(f"Coordinate {coordinate} has no version")
    return coordinate.version


def artifact_directory(coordinate: Coordinate) -> str:
    """``group/path/artifact/version``"""
    version = _require_version(coordinate)
    return "/".join([*coordinate.group_id.split("."), coordinate.artifact_id, version])


def artifact_file_name(coordinate: Coordinate, extension: Optional[str] = None) -> str:
    version = _require_version(coordinate)
    name = f"{coordinate.artifact_id}-{version}"
    if coordinate.classifier:
        name = f"{name}-{coordinate.classifier}"
    return f"{name}.{extension or coordinate.packaging}"


def artifact_path(coordinate: Coordinate) -> str:
    return f"{artifact_directory(coordinate)}/{artifact_file_name(coordinate)}"


def pom_path(coordinate: Coordinate) -> str:
    """Descriptor path; POMs never carry a classifier."""
    pom_coordinate = coordinate.model_copy(update={"classifier": None})
    return f"{artifact_directory(coordinate)}/{artifact_file_name(pom_coordinate, 'pom')}"


def metadata_path(coordinate: Coordinate) -> str:
    """Version listing for a group:artifact, independent of version."""
    return "/".join([*coordinate.group_id.split("."), coordinate.artifact_id, METADATA_FILE])


def checksum_path(path: str, algorithm: ChecksumAlgorithm) -> str:
    return f"{path}.{algorithm.value}"
