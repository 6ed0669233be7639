"""Optional JSON API over the aggregated graph (``web`` extra)."""
