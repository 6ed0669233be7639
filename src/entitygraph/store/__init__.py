"""SQLite-backed persistence: the enabled-source toggle and the relationship store."""
