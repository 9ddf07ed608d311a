"""
libby_resolver.repository.pom - Descriptor and Metadata Parsing
=================================================================

Parses the two XML documents a Maven repository serves:

    <artifact>-<version>.pom   → Pom (raw, uninterpolated project model)
    maven-metadata.xml         → MavenMetadata (available versions)

Parsing is namespace-agnostic: POMs in the wild come both with and without
the ``http://maven.apache.org/POM/4.0.0`` default namespace, so elements are
matched on their local name only.

The raw Pom keeps every value exactly as written, ``${property}``
placeholders included. Building the *effective* descriptor (parent
inheritance, BOM imports, interpolation, dependency management) needs
further fetches and therefore lives in RepositoryClient.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Iterator, Optional

from pydantic import BaseModel, Field

from libby_resolver.core.exceptions import InvalidDescriptorError
from libby_resolver.core.models import Coordinate, DependencyDeclaration, Exclusion


# =============================================================================
# XML Helpers
# =============================================================================
def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: Optional[ET.Element], name: str) -> Iterator[ET.Element]:
    if element is None:
        return
    for child in element:
        if _local_name(child.tag) == name:
            yield child


def _child(element: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    return next(_children(element, name), None)


def _text(element: Optional[ET.Element], name: str) -> Optional[str]:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def _parse_xml(data: bytes, source: Optional[str]) -> ET.Element:
    try:
        return ET.fromstring(data)
    except ET.ParseError as exc:
        raise InvalidDescriptorError(
            message=f"Unparseable XML: {exc}",
            coordinate=source,
        ) from exc


# =============================================================================
# Property Interpolation
# =============================================================================
_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_MAX_INTERPOLATION_PASSES = 10


def interpolate(value: Optional[str], properties: dict[str, str]) -> Optional[str]:
    """Replace ``${name}`` placeholders, following nested references.

    Unknown placeholders are left untouched, which keeps the unresolved
    name visible in later error messages.
    """
    if value is None or "${" not in value:
        return value

    for _ in range(_MAX_INTERPOLATION_PASSES):
        replaced = _PLACEHOLDER.sub(lambda m: properties.get(m.group(1), m.group(0)), value)
        if replaced == value:
            break
        value = replaced
    return value


# =============================================================================
# Raw Project Model
# =============================================================================
class PomDependency(BaseModel):
    """A <dependency> element as written, before interpolation."""

    group_id: str
    artifact_id: str
    version: Optional[str] = None
    type: str = "jar"
    classifier: Optional[str] = None
    scope: Optional[str] = None
    optional: Optional[str] = None
    exclusions: list[Exclusion] = Field(default_factory=list)

    @property
    def management_key(self) -> tuple[str, str, Optional[str], str]:
        return (self.group_id, self.artifact_id, self.classifier, self.type)

    def interpolated(self, properties: dict[str, str]) -> PomDependency:
        return self.model_copy(
            update={
                "group_id": interpolate(self.group_id, properties),
                "artifact_id": interpolate(self.artifact_id, properties),
                "version": interpolate(self.version, properties),
                "type": interpolate(self.type, properties),
                "classifier": interpolate(self.classifier, properties),
                "scope": interpolate(self.scope, properties),
                "optional": interpolate(self.optional, properties),
            }
        )


class PomParent(BaseModel):
    group_id: str
    artifact_id: str
    version: str

    def to_coordinate(self) -> Coordinate:
        return Coordinate(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            version=self.version,
            packaging="pom",
        )


class Pom(BaseModel):
    """The raw content of one POM file."""

    group_id: Optional[str] = None
    artifact_id: str
    version: Optional[str] = None
    packaging: str = "jar"
    parent: Optional[PomParent] = None
    properties: dict[str, str] = Field(default_factory=dict)
    dependencies: list[PomDependency] = Field(default_factory=list)
    dependency_management: list[PomDependency] = Field(default_factory=list)

    @property
    def effective_group_id(self) -> Optional[str]:
        return self.group_id or (self.parent.group_id if self.parent else None)

    @property
    def effective_version(self) -> Optional[str]:
        return self.version or (self.parent.version if self.parent else None)


def _parse_dependency(element: ET.Element) -> Optional[PomDependency]:
    group_id = _text(element, "groupId")
    artifact_id = _text(element, "artifactId")
    if group_id is None or artifact_id is None:
        return None

    exclusions = []
    for exclusion in _children(_child(element, "exclusions"), "exclusion"):
        excluded_group = _text(exclusion, "groupId")
        excluded_artifact = _text(exclusion, "artifactId")
        if excluded_group and excluded_artifact:
            exclusions.append(Exclusion(group_id=excluded_group, artifact_id=excluded_artifact))

    return PomDependency(
        group_id=group_id,
        artifact_id=artifact_id,
        version=_text(element, "version"),
        type=_text(element, "type") or "jar",
        classifier=_text(element, "classifier"),
        scope=_text(element, "scope"),
        optional=_text(element, "optional"),
        exclusions=exclusions,
    )


def _parse_dependency_list(container: Optional[ET.Element]) -> list[PomDependency]:
    dependencies = []
    for element in _children(container, "dependency"):
        dependency = _parse_dependency(element)
        if dependency is not None:
            dependencies.append(dependency)
    return dependencies


def parse_pom(data: bytes, source: Optional[str] = None) -> Pom:
    """Parse POM bytes into a raw Pom.

    Args:
        data: The POM file content.
        source: Coordinate string used in error messages.

    Raises:
        InvalidDescriptorError: If the XML is malformed or has no artifactId.
    """
    root = _parse_xml(data, source)
    if _local_name(root.tag) != "project":
        raise InvalidDescriptorError(
            message=f"Expected <project> root element, found <{_local_name(root.tag)}>",
            coordinate=source,
        )

    artifact_id = _text(root, "artifactId")
    if artifact_id is None:
        raise InvalidDescriptorError(message="POM has no artifactId", coordinate=source)

    parent = None
    parent_element = _child(root, "parent")
    if parent_element is not None:
        parent_group = _text(parent_element, "groupId")
        parent_artifact = _text(parent_element, "artifactId")
        parent_version = _text(parent_element, "version")
        if parent_group and parent_artifact and parent_version:
            parent = PomParent(
                group_id=parent_group,
                artifact_id=parent_artifact,
                version=parent_version,
            )

    properties = {}
    properties_element = _child(root, "properties")
    if properties_element is not None:
        for prop in properties_element:
            if prop.text is not None:
                properties[_local_name(prop.tag)] = prop.text.strip()

    return Pom(
        group_id=_text(root, "groupId"),
        artifact_id=artifact_id,
        version=_text(root, "version"),
        packaging=_text(root, "packaging") or "jar",
        parent=parent,
        properties=properties,
        dependencies=_parse_dependency_list(_child(root, "dependencies")),
        dependency_management=_parse_dependency_list(
            _child(_child(root, "dependencyManagement"), "dependencies")
        ),
    )


# =============================================================================
# Effective Descriptor
# =============================================================================
class ProjectDescriptor(BaseModel):
    """The effective project model of a coordinate.

    Parent inheritance, BOM imports, interpolation and dependency management
    have all been applied; every dependency carries a concrete version
    requirement.

    Attributes:
        coordinate: The project's own coordinate.
        packaging: Declared <packaging>.
        properties: Merged properties (child overrides parent).
        dependencies: Effective dependencies in declaration order.
        dependency_management: Managed versions/scopes, first entry per key
            wins. Applied by the graph builder to transitive dependencies
            when this descriptor belongs to a root.
        repository_url: Repository that served the POM.
    """

    coordinate: Coordinate
    packaging: str = "jar"
    properties: dict[str, str] = Field(default_factory=dict)
    dependencies: list[DependencyDeclaration] = Field(default_factory=list)
    dependency_management: list[DependencyDeclaration] = Field(default_factory=list)
    repository_url: Optional[str] = None


# =============================================================================
# Repository Metadata
# =============================================================================
class MavenMetadata(BaseModel):
    """Content of a group:artifact ``maven-metadata.xml``."""

    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    versions: list[str] = Field(default_factory=list)
    latest: Optional[str] = None
    release: Optional[str] = None


def parse_metadata(data: bytes, source: Optional[str] = None) -> MavenMetadata:
    """Parse a ``maven-metadata.xml`` document.

    Raises:
        InvalidDescriptorError: If the XML is malformed.
    """
    root = _parse_xml(data, source)
    versioning = _child(root, "versioning")

    versions = []
    for version in _children(_child(versioning, "versions"), "version"):
        if version.text and version.text.strip():
            versions.append(version.text.strip())

    return MavenMetadata(
        group_id=_text(root, "groupId"),
        artifact_id=_text(root, "artifactId"),
        versions=versions,
        latest=_text(versioning, "latest"),
        release=_text(versioning, "release"),
    )
