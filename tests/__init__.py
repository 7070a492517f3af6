"""
cellmap Test Suite.

This package contains:
- unit/: Unit tests (registry, names, attribute store, cells, proxies,
  overlays, in-memory store, config)
- integration/: Entity and repository round trips through the in-memory store
"""
