from __future__ import annotations

import logging
from typing import Optional

from flavor_graph.common.logging_setup import setup_logging
from .core import PipelineContext


def stage_logger(context: PipelineContext | logging.Logger, stage_name: str, *, force: bool = False) -> logging.Logger:
    """
    Configure logging for a stage and return a namespaced logger.
    """
    if isinstance(context, logging.Logger):
        # Already a logger; logging config isn't applied
        return context

    setup_logging(context.logging(stage_name), force=force)
    return logging.getLogger(f"flavor_graph.{stage_name}")


def bool_from_cfg(value: Optional[bool], default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
