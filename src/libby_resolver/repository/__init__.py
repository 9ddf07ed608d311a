"""
libby_resolver.repository - Repository Integration Layer
==========================================================

Everything that knows how a Maven repository is laid out and how to talk to
it:

    - layout:     coordinate → relative path mapping
    - pom:        POM and maven-metadata.xml parsing
    - transport:  Transport ABC, HttpTransport (httpx), FileTransport
    - mock:       InMemoryTransport, a fake repository for tests
    - client:     RepositoryClient (metadata, artifacts, effective descriptors)

Usage:
    from libby_resolver.repository import RepositoryClient, InMemoryTransport
"""

from libby_resolver.repository.client import FetchedArtifact, RepositoryClient
from libby_resolver.repository.mock import InMemoryTransport
from libby_resolver.repository.pom import MavenMetadata, Pom, ProjectDescriptor, parse_metadata, parse_pom
from libby_resolver.repository.transport import (
    FileTransport,
    HttpTransport,
    Transport,
    create_transport,
)

__all__ = [
    "RepositoryClient",
    "FetchedArtifact",
    "Transport",
    "HttpTransport",
    "FileTransport",
    "InMemoryTransport",
    "create_transport",
    "Pom",
    "ProjectDescriptor",
    "MavenMetadata",
    "parse_pom",
    "parse_metadata",
]
