"""
Shared utilities for the token service.

This package aggregates the ambient building blocks the token engine uses:

- config: Service configuration via pydantic-settings
- logging: Structured logging via structlog
- metrics: Prometheus counters for minting and verification
- errors: Canonical usage-error types and responses
- test_helpers: Key, clock and token factories for tests

Do not import from token_service into shared/.
"""
