"""
libby-resolver Test Suite
=========================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → Tests for libby_resolver.core (config, models, coordinates, versions)
    ├── test_repository/    → Tests for libby_resolver.repository (layout, POMs, transports, client)
    ├── test_resolution/    → Tests for libby_resolver.resolution (graph, downloads, retry, cancellation)
    ├── test_infrastructure/→ Tests for libby_resolver.infrastructure (local cache)
    ├── test_integration/   → End-to-end integration tests
    ├── test_facade.py      → LibbyResolver facade
    └── conftest.py         → Shared pytest fixtures

Every test runs offline against InMemoryTransport or a temporary directory.

Running Tests:
    pytest                            # Run all tests
    pytest tests/test_resolution/     # Run only resolution tests
    pytest -k checksum                # Run tests matching a keyword
"""
