"""
Token service package.

Issues and verifies signed, time-bounded JWTs. It is intentionally small
and focused:

- app.signing: binds key material to its single legal algorithm.
- app.tokens: the token engine (mint, verify) and its result types.
- app.main: factory wiring configuration, logging and metrics.

Design notes:
- Package import has no side effects; nothing here performs I/O.
- Use the shared/ utilities for logging, metrics, config and errors.
- The engine is stateless; there is no registry of issued tokens.
"""
