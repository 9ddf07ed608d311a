"""
Tests for libby_resolver.core.config
======================================

These tests verify that the configuration system works correctly:
    - Default values are sensible and complete
    - Environment variables override defaults
    - YAML files are parsed correctly
    - Validation catches invalid values
    - Nested configs (http, retry, cache) work properly
"""

from pathlib import Path

import pytest
import yaml

from libby_resolver.core.config import (
    MAVEN_CENTRAL_URL,
    CacheConfig,
    RepositoryConfig,
    ResolverConfig,
    RetryConfig,
    get_default_config,
    load_config,
)
from libby_resolver.core.enums import ChecksumAlgorithm, ChecksumPolicy, ConflictPolicy, Scope


# =============================================================================
# Test: Default Configuration
# =============================================================================
class TestDefaultConfig:
    """Tests for default configuration values."""

    def test_default_config_creates_successfully(self) -> None:
        """ResolverConfig() should work with no arguments (zero-config startup)."""
        assert ResolverConfig() is not None

    def test_default_repository_is_maven_central(self) -> None:
        config = ResolverConfig()
        assert [r.url for r in config.repositories] == [MAVEN_CENTRAL_URL]
        assert config.repositories[0].id == "central"

    def test_default_scopes_are_compile_and_runtime(self) -> None:
        assert ResolverConfig().scopes == [Scope.COMPILE, Scope.RUNTIME]

    def test_default_policies(self) -> None:
        config = ResolverConfig()
        assert config.conflict_policy == ConflictPolicy.NEAREST
        assert config.checksum_algorithm == ChecksumAlgorithm.SHA1
        assert config.checksum_policy == ChecksumPolicy.WARN
        assert config.include_optional is False

    def test_default_cache_directory(self) -> None:
        assert ResolverConfig().cache.directory == Path.home() / ".libby" / "repository"

    def test_default_retry(self) -> None:
        retry = ResolverConfig().retry
        assert retry.max_attempts == 3
        assert retry.checksum_retries == 1

    def test_get_default_config(self) -> None:
        assert isinstance(get_default_config(), ResolverConfig)


# =============================================================================
# Test: Environment Variable Overrides
# =============================================================================
class TestEnvOverrides:
    """Tests for LIBBY_* environment variables."""

    def test_top_level_override(self, monkeypatch) -> None:
        monkeypatch.setenv("LIBBY_MAX_WORKERS", "16")
        assert ResolverConfig().max_workers == 16

    def test_nested_override(self, monkeypatch) -> None:
        monkeypatch.setenv("LIBBY_RETRY__MAX_ATTEMPTS", "5")
        monkeypatch.setenv("LIBBY_CACHE__DIRECTORY", "/var/cache/libby")
        config = ResolverConfig()
        assert config.retry.max_attempts == 5
        assert config.cache.directory == Path("/var/cache/libby")

    def test_enum_override(self, monkeypatch) -> None:
        monkeypatch.setenv("LIBBY_CONFLICT_POLICY", "highest")
        assert ResolverConfig().conflict_policy == ConflictPolicy.HIGHEST


# =============================================================================
# Test: Validation
# =============================================================================
class TestValidation:
    """Invalid values are rejected by pydantic."""

    def test_max_workers_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ResolverConfig(max_workers=0)

    def test_retry_attempts_bounded(self) -> None:
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)

    def test_repository_base_url_has_single_trailing_slash(self) -> None:
        assert RepositoryConfig(url="https://repo.example.com/maven//").base_url == (
            "https://repo.example.com/maven/"
        )
        assert RepositoryConfig(url="/srv/repo").base_url == "/srv/repo/"


# =============================================================================
# Test: YAML Loading
# =============================================================================
class TestLoadConfig:
    """Tests for load_config()."""

    def test_load_from_yaml(self, tmp_path) -> None:
        path = tmp_path / "libby.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "max_workers": 4,
                    "include_optional": True,
                    "repositories": [
                        {"id": "internal", "url": "https://nexus.example.com/repository/maven/",
                         "credentials": {"username": "ci", "password": "secret"}},
                    ],
                    "cache": {"directory": str(tmp_path / "libs")},
                }
            )
        )

        config = load_config(str(path))

        assert config.max_workers == 4
        assert config.include_optional is True
        assert config.repositories[0].id == "internal"
        assert config.repositories[0].credentials.username == "ci"
        assert config.cache.directory == tmp_path / "libs"

    def test_missing_explicit_file_raises(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_auto_detects_libby_yaml_in_cwd(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "libby.yaml").write_text("max_workers: 3\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().max_workers == 3

    def test_no_file_falls_back_to_defaults(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_config().max_workers == 8

    def test_empty_yaml_gives_defaults(self, tmp_path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)).max_workers == 8

    def test_yaml_wins_over_environment(self, tmp_path, monkeypatch) -> None:
        """YAML values arrive as constructor arguments; env only fills the gaps."""
        path = tmp_path / "libby.yaml"
        path.write_text("max_workers: 4\n")
        monkeypatch.setenv("LIBBY_MAX_WORKERS", "16")
        monkeypatch.setenv("LIBBY_RETRY__MAX_ATTEMPTS", "5")

        config = load_config(str(path))

        assert config.max_workers == 4
        assert config.retry.max_attempts == 5

    def test_cache_config_accepts_string_path(self) -> None:
        assert CacheConfig(directory="/tmp/x").directory == Path("/tmp/x")
