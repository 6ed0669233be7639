"""Multi-source aggregation.

Collect entities from every enabled source, collapse duplicates with the
persistent-set priority rule, derive edges between known nodes, and fold later
discoveries into the same graph without a reload.
"""
