import json

import pytest

from flavor_graph.config import PipelineConfig
from flavor_graph.core import PipelineContext


@pytest.fixture
def basic_corpus():
    return [
        {"ingredients": ["tomato", "basil", "garlic"]},
        {"ingredients": ["tomato", "basil"]},
        {"ingredients": ["tomato", "garlic"]},
        {"ingredients": ["basil", "garlic"]},
    ]


@pytest.fixture
def workspace(tmp_path):
    """A working directory laid out like the default pipeline.yaml expects."""
    for sub in ("data/raw", "data/stage", "data/config"):
        (tmp_path / sub).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def make_context(workspace):
    def _make(pipeline_cfg):
        config = PipelineConfig.from_mapping({"pipeline": pipeline_cfg})
        return PipelineContext(config=config, workdir=workspace)

    return _make


@pytest.fixture
def write_jsonl():
    def _write(path, rows):
        path.write_text("".join(json.dumps(r) + "\n" for r in rows), encoding="utf-8")
        return path

    return _write
