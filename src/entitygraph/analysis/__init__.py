"""Pure, deterministic graph operations over ``(nodes, edges)``."""
