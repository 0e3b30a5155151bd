from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from flavor_graph.config import PipelineConfig


@dataclass
class StageResult:
    name: str = ""
    status: str = "success"
    outputs: Dict[str, Any] = field(default_factory=dict)
    details: Optional[str] = None
    artifacts: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineContext:
    config: PipelineConfig
    workdir: Path = field(default_factory=Path.cwd)
    # results of stages already run in this session, by stage name
    results: Dict[str, StageResult] = field(default_factory=dict)

    def stage(self, name: str, *, required: bool = True) -> Dict[str, Any]:
        return self.config.stage(name, required=required)

    def logging(self, name: str) -> Dict[str, Any]:
        return self.config.logging(name)

    def resolve(self, value: str | Path | None) -> Optional[Path]:
        """Resolve a config path relative to the working directory."""
        if value is None or str(value) == "":
            return None
        p = Path(value)
        return p if p.is_absolute() else self.workdir / p
