"""Entity sources.

Every source implements the small polling contract in ``base``. The JSON file
source is the adapter the CLI and web UI use; anything else (bookmark stores,
caches, remote collections) plugs in by subclassing ``Source``.
"""
