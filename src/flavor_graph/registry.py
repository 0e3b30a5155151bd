"""Pipeline stage registry."""

from __future__ import annotations

from typing import Callable, Dict

from .analysis import dedupe, graph, pmi
from .core import StageResult
from .preprocessing import ingest

StageFn = Callable[..., StageResult]

STAGES: Dict[str, StageFn] = {
    "ingest_recipes": ingest.run,
    "analysis_pmi": pmi.run,
    "analysis_dedupe": dedupe.run,
    "analysis_graph": graph.run,
}

__all__ = ["STAGES", "StageFn"]
