"""Flavor graph: ingredient pairings mined from a recipe corpus."""

from .runner import PIPELINE_ORDER, PipelineRunner, StageName

__all__ = ["PIPELINE_ORDER", "PipelineRunner", "StageName"]
