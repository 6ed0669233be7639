"""Entity Graph: aggregate entities from many sources into one graph.

Sources are polled in parallel, duplicate records are collapsed with the
persistent working set taking priority, and relationships between known
entities become edges. The analysis subpackage holds pure operations over the
resulting nodes and edges.
"""

__version__ = "0.1.0"
