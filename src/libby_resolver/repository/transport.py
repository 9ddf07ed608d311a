"""
libby_resolver.repository.transport - Repository Transports
=============================================================

A Transport fetches one URL and classifies the outcome. RepositoryClient
never talks HTTP or the filesystem directly; it calls a Transport, which
gives us:

    1. **Swappability**: remote (HTTP) and local (file) repositories behind
       one interface.
    2. **Testability**: InMemoryTransport (see mock.py) replaces the network
       in tests and counts calls.
    3. **Uniform errors**: every transport maps its failures onto
       NetworkError with the right retryable flag.

    ┌──────────────────┐    fetch(url)    ┌─────────────────┐
    │ RepositoryClient │ ───────────────→ │   Transport     │
    │                  │ ←─ bytes | None ─│   (abstract)    │
    └──────────────────┘                  └────────┬────────┘
                                     ┌─────────────┼──────────────┐
                                ┌────▼────┐  ┌─────▼─────┐  ┌─────▼─────┐
                                │  Http   │  │   File    │  │ InMemory  │
                                └─────────┘  └───────────┘  └───────────┘

Outcome Contract:
    bytes         → the file exists and was read completely
    None          → the file does not exist in this repository
    NetworkError  → the request failed; ``retryable`` says whether trying
                    again may help
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
import structlog

from libby_resolver.core.config import Credentials, HttpConfig
from libby_resolver.core.exceptions import ConfigurationError, NetworkError


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


_NOT_FOUND_STATUSES = frozenset({404, 410})


# =============================================================================
# Abstract Base Transport
# =============================================================================
class Transport(ABC):
    """Abstract interface for fetching files from a repository."""

    @abstractmethod
    async def fetch(self, url: str, credentials: Optional[Credentials] = None) -> Optional[bytes]:
        """Fetch the content at ``url``.

        Args:
            url: Absolute URL (or path) of the file.
            credentials: Optional basic-auth credentials.

        Returns:
            The file content, or None if the file does not exist.

        Raises:
            NetworkError: If the request failed.
        """
        ...

    async def close(self) -> None:
        """Release held resources (connection pools, file handles)."""


# =============================================================================
# HTTP Transport
# =============================================================================
class HttpTransport(Transport):
    """Fetches files from http(s) repositories with an httpx AsyncClient.

    The client is created lazily on first use and shared by every request,
    so all repositories reuse one connection pool.

    Status mapping:
        2xx         → content
        404, 410    → None (not in this repository)
        429, 5xx    → retryable NetworkError
        other 4xx   → non-retryable NetworkError (401/403: bad credentials)
        timeouts, connection failures → retryable NetworkError
    """

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or HttpConfig()
        self._client = client
        self._owns_client = client is None
        self._logger = logger.bind(component="http_transport")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._config.user_agent},
                timeout=self._config.timeout,
                follow_redirects=self._config.follow_redirects,
                limits=httpx.Limits(max_connections=self._config.max_connections),
            )
        return self._client

    async def fetch(self, url: str, credentials: Optional[Credentials] = None) -> Optional[bytes]:
        client = self._get_client()
        auth = (credentials.username, credentials.password) if credentials else None

        try:
            response = await client.get(url, auth=auth)
        except httpx.TimeoutException as exc:
            raise NetworkError(message=f"Timed out fetching {url}", url=url) from exc
        except httpx.TransportError as exc:
            raise NetworkError(message=f"Transport failure fetching {url}: {exc}", url=url) from exc

        status = response.status_code
        if status in _NOT_FOUND_STATUSES:
            self._logger.debug("http_not_found", url=url, status_code=status)
            return None

        if status == 429 or status >= 500:
            raise NetworkError(
                message=f"Repository returned HTTP {status} for {url}",
                url=url,
                status_code=status,
                retryable=True,
            )
        if status >= 400:
            raise NetworkError(
                message=f"Repository rejected request with HTTP {status} for {url}",
                url=url,
                status_code=status,
                retryable=False,
            )

        self._logger.debug("http_fetched", url=url, size_bytes=len(response.content))
        return response.content

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


# =============================================================================
# File Transport
# =============================================================================
def url_to_path(url: str) -> Path:
    """Convert a ``file://`` URL or a plain path into a Path."""
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path))
    return Path(url)


class FileTransport(Transport):
    """Reads files from a local directory laid out as a Maven repository."""

    async def fetch(self, url: str, credentials: Optional[Credentials] = None) -> Optional[bytes]:
        path = url_to_path(url)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise NetworkError(
                message=f"Cannot read {path}: {exc}",
                url=url,
                retryable=False,
            ) from exc


# =============================================================================
# Transport Factory
# =============================================================================
def transport_kind(url: str) -> str:
    """Classify a repository URL as "http" or "file".

    Raises:
        ConfigurationError: If the URL scheme is not supported.
    """
    scheme = urlparse(url).scheme.lower()
    if scheme in ("http", "https"):
        return "http"
    # Windows drive letters parse as one-letter schemes
    if scheme in ("", "file") or len(scheme) == 1:
        return "file"
    raise ConfigurationError(
        message=f"Unsupported repository URL scheme: '{scheme}'",
        error_code="UNSUPPORTED_SCHEME",
        details={"url": url},
    )


def create_transport(url: str, config: Optional[HttpConfig] = None) -> Transport:
    """Create the transport that can serve a repository URL.

    Example:
        >>> type(create_transport("https://repo.maven.apache.org/maven2/"))
        <class 'libby_resolver.repository.transport.HttpTransport'>
        >>> type(create_transport("/home/me/.m2/repository"))
        <class 'libby_resolver.repository.transport.FileTransport'>
    """
    if transport_kind(url) == "http":
        return HttpTransport(config)
    return FileTransport()
