"""
libby_resolver.repository.mock - In-Memory Repository for Testing
===================================================================

InMemoryTransport is a fake Maven repository held in a dict. It is the
default stub for tests, examples and offline experiments.

Why an In-Memory Repository?
    1. **No network**: tests never touch Maven Central.
    2. **Deterministic**: the repository contains exactly what a test
       publishes.
    3. **Call tracking**: every fetch is recorded, so tests can assert
       "exactly one download per coordinate".
    4. **Failure injection**: queue NetworkErrors or corrupted checksums for
       specific files to exercise retries.

Usage:
    >>> transport = InMemoryTransport()
    >>> transport.publish("com.example:app:1.0", dependencies=["com.example:lib:2.0"])
    >>> transport.publish("com.example:lib:2.0")
    >>> repository = RepositoryConfig(id="memory", url=transport.base_url)
    >>> client = RepositoryClient(config, transport=transport)
"""

from __future__ import annotations

import hashlib
import xml.etree.ElementTree as ET
from collections import defaultdict, deque
from typing import Any, Iterable, Optional, Union

import structlog

from libby_resolver.core.config import Credentials
from libby_resolver.core.coordinates import parse_coordinate
from libby_resolver.core.enums import ChecksumAlgorithm
from libby_resolver.core.exceptions import ResolverError
from libby_resolver.core.models import Coordinate
from libby_resolver.core.versions import sort_versions
from libby_resolver.repository.layout import (
    artifact_path,
    checksum_path,
    metadata_path,
    pom_path,
)
from libby_resolver.repository.transport import Transport


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


DEFAULT_BASE_URL = "memory://central/"
POM_NAMESPACE = "http://maven.apache.org/POM/4.0.0"

DependencySpec = Union[str, dict[str, Any]]


def _digest(data: bytes, algorithm: ChecksumAlgorithm) -> str:
    return hashlib.new(algorithm.value, data).hexdigest()


def _sub(parent: ET.Element, tag: str, text: Optional[str] = None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if text is not None:
        element.text = text
    return element


def _dependency_element(parent: ET.Element, spec: DependencySpec) -> None:
    """Append a <dependency> element described by a string or dict.

    String form: "group:artifact[:classifier]:version".
    Dict form keys: coordinate (or group_id/artifact_id/version), scope,
    optional, exclusions (list of "group:artifact"), type, classifier.
    """
    if isinstance(spec, str):
        spec = {"coordinate": spec}

    if "coordinate" in spec:
        coordinate = parse_coordinate(spec["coordinate"])
        group_id, artifact_id = coordinate.group_id, coordinate.artifact_id
        version, classifier = coordinate.version, coordinate.classifier
    else:
        group_id, artifact_id = spec["group_id"], spec["artifact_id"]
        version, classifier = spec.get("version"), spec.get("classifier")

    element = _sub(parent, "dependency")
    _sub(element, "groupId", group_id)
    _sub(element, "artifactId", artifact_id)
    if version is not None:
        _sub(element, "version", version)
    if spec.get("type"):
        _sub(element, "type", spec["type"])
    if classifier:
        _sub(element, "classifier", classifier)
    if spec.get("scope"):
        _sub(element, "scope", spec["scope"])
    if spec.get("optional"):
        _sub(element, "optional", "true")
    if spec.get("exclusions"):
        exclusions = _sub(element, "exclusions")
        for pattern in spec["exclusions"]:
            excluded_group, excluded_artifact = pattern.split(":")
            exclusion = _sub(exclusions, "exclusion")
            _sub(exclusion, "groupId", excluded_group)
            _sub(exclusion, "artifactId", excluded_artifact)


def build_pom(
    coordinate: Coordinate,
    dependencies: Iterable[DependencySpec] = (),
    *,
    parent: Optional[str] = None,
    properties: Optional[dict[str, str]] = None,
    dependency_management: Iterable[DependencySpec] = (),
    packaging: Optional[str] = None,
) -> bytes:
    """Render a minimal POM document in the Maven 4.0.0 namespace."""
    project = ET.Element("project", {"xmlns": POM_NAMESPACE})
    sub = _sub

    sub(project, "modelVersion", "4.0.0")
    if parent is not None:
        parent_coordinate = parse_coordinate(parent)
        parent_element = sub(project, "parent")
        sub(parent_element, "groupId", parent_coordinate.group_id)
        sub(parent_element, "artifactId", parent_coordinate.artifact_id)
        sub(parent_element, "version", parent_coordinate.version)
    sub(project, "groupId", coordinate.group_id)
    sub(project, "artifactId", coordinate.artifact_id)
    sub(project, "version", coordinate.version)
    if packaging:
        sub(project, "packaging", packaging)

    if properties:
        properties_element = sub(project, "properties")
        for name, value in properties.items():
            sub(properties_element, name, value)

    managed = list(dependency_management)
    if managed:
        management = sub(sub(project, "dependencyManagement"), "dependencies")
        for spec in managed:
            _dependency_element(management, spec)

    declared = list(dependencies)
    if declared:
        container = sub(project, "dependencies")
        for spec in declared:
            _dependency_element(container, spec)

    return ET.tostring(project, encoding="utf-8", xml_declaration=True)


def build_metadata(group_id: str, artifact_id: str, versions: Iterable[str]) -> bytes:
    ordered = sort_versions(set(versions))
    root = ET.Element("metadata")
    _sub(root, "groupId", group_id)
    _sub(root, "artifactId", artifact_id)
    versioning = _sub(root, "versioning")
    if ordered:
        _sub(versioning, "latest", ordered[-1])
        releases = [v for v in ordered if not v.upper().endswith("SNAPSHOT")]
        if releases:
            _sub(versioning, "release", releases[-1])
    versions_element = _sub(versioning, "versions")
    for version in ordered:
        _sub(versions_element, "version", version)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


class InMemoryTransport(Transport):
    """A dict-backed fake repository with call tracking and failure injection.

    Attributes:
        base_url: URL prefix of the default repository. Files may also be
            published under other prefixes to simulate several repositories.
        call_history: Every URL passed to fetch(), in call order.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        checksum_algorithms: Iterable[ChecksumAlgorithm] = (ChecksumAlgorithm.SHA1,),
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self._checksum_algorithms = tuple(checksum_algorithms)

        # --- Storage ---
        self._files: dict[str, bytes] = {}
        self._versions: dict[tuple[str, str, str], set[str]] = defaultdict(set)

        # --- Call Tracking ---
        self._call_history: list[str] = []
        self._credentials_seen: list[Optional[Credentials]] = []

        # --- Failure Injection ---
        # URL → queue of errors raised (one per call) before serving normally
        self._failures: dict[str, deque[ResolverError]] = defaultdict(deque)

        self._logger = logger.bind(component="in_memory_transport")

    # =========================================================================
    # Publishing
    # =========================================================================

    def publish_file(self, url: str, data: bytes, *, with_checksums: bool = True) -> None:
        """Store raw bytes under an absolute URL, plus checksum files."""
        self._files[url] = data
        if with_checksums:
            for algorithm in self._checksum_algorithms:
                self._files[checksum_path(url, algorithm)] = _digest(data, algorithm).encode()

    def publish(
        self,
        coordinate: Union[str, Coordinate],
        dependencies: Iterable[DependencySpec] = (),
        *,
        data: Optional[bytes] = None,
        repository_url: Optional[str] = None,
        parent: Optional[str] = None,
        properties: Optional[dict[str, str]] = None,
        dependency_management: Iterable[DependencySpec] = (),
        packaging: Optional[str] = None,
        with_artifact: bool = True,
        with_checksums: bool = True,
    ) -> Coordinate:
        """Publish a POM (and by default an artifact file) for a coordinate.

        Args:
            coordinate: "group:artifact[:classifier]:version" or a Coordinate.
            dependencies: Dependency specs written into the POM.
            data: Artifact content. Defaults to a deterministic placeholder.
            repository_url: Repository prefix; defaults to ``base_url``.
            parent: Parent coordinate string for the POM.
            properties: <properties> entries.
            dependency_management: Specs for <dependencyManagement>.
            packaging: <packaging> value; "pom" skips the artifact file.
            with_artifact: Publish the artifact file next to the POM.
            with_checksums: Publish checksum files.

        Returns:
            The published Coordinate.
        """
        if isinstance(coordinate, str):
            coordinate = parse_coordinate(coordinate, packaging="pom" if packaging == "pom" else "jar")
        base = (repository_url or self.base_url).rstrip("/") + "/"

        pom = build_pom(
            coordinate,
            dependencies,
            parent=parent,
            properties=properties,
            dependency_management=dependency_management,
            packaging=packaging,
        )
        self.publish_file(base + pom_path(coordinate), pom, with_checksums=with_checksums)

        if with_artifact and packaging != "pom":
            content = data if data is not None else f"content of {coordinate.gav}".encode()
            self.publish_file(base + artifact_path(coordinate), content, with_checksums=with_checksums)

        self._record_version(base, coordinate)
        return coordinate

    def publish_pom(
        self,
        coordinate: Union[str, Coordinate],
        pom_xml: Union[str, bytes],
        *,
        repository_url: Optional[str] = None,
    ) -> Coordinate:
        """Publish a hand-written POM document."""
        if isinstance(coordinate, str):
            coordinate = parse_coordinate(coordinate)
        if isinstance(pom_xml, str):
            pom_xml = pom_xml.encode()
        base = (repository_url or self.base_url).rstrip("/") + "/"
        self.publish_file(base + pom_path(coordinate), pom_xml)
        self._record_version(base, coordinate)
        return coordinate

    def _record_version(self, base: str, coordinate: Coordinate) -> None:
        versions = self._versions[(base, coordinate.group_id, coordinate.artifact_id)]
        versions.add(coordinate.version)
        self.publish_file(
            base + metadata_path(coordinate),
            build_metadata(coordinate.group_id, coordinate.artifact_id, versions),
        )

    def artifact_url(self, coordinate: Union[str, Coordinate], repository_url: Optional[str] = None) -> str:
        if isinstance(coordinate, str):
            coordinate = parse_coordinate(coordinate)
        return (repository_url or self.base_url).rstrip("/") + "/" + artifact_path(coordinate)

    def remove(self, url: str) -> None:
        self._files.pop(url, None)

    # =========================================================================
    # Failure Injection
    # =========================================================================

    def fail_next(self, url: str, error: ResolverError, times: int = 1) -> None:
        """Raise ``error`` for the next ``times`` fetches of ``url``."""
        for _ in range(times):
            self._failures[url].append(error)

    # =========================================================================
    # Call Tracking
    # =========================================================================

    @property
    def call_history(self) -> list[str]:
        return list(self._call_history)

    @property
    def credentials_seen(self) -> list[Optional[Credentials]]:
        return list(self._credentials_seen)

    def calls_for(self, url: str) -> int:
        """How many times exactly ``url`` was fetched."""
        return self._call_history.count(url)

    def reset_history(self) -> None:
        self._call_history.clear()
        self._credentials_seen.clear()

    # =========================================================================
    # Transport Interface
    # =========================================================================

    async def fetch(self, url: str, credentials: Optional[Credentials] = None) -> Optional[bytes]:
        self._call_history.append(url)
        self._credentials_seen.append(credentials)

        pending = self._failures.get(url)
        if pending:
            error = pending.popleft()
            self._logger.debug("injected_failure", url=url, error_code=error.error_code)
            raise error

        return self._files.get(url)
