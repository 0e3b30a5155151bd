"""Mining, dedupe and graph-building stages."""

from . import dedupe, graph, pmi, taxonomy

__all__ = ["dedupe", "graph", "pmi", "taxonomy"]
