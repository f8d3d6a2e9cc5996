from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from codegen_sync.copy.copy_code import WithNestedCommitDelimiters
from codegen_sync.pipeline.config import ScanConfig, ScanOptions


def test_defaults_are_unbounded() -> None:
    cfg = ScanConfig()
    assert cfg.source.clone_depth == 100
    assert cfg.scan.combine_pulls_threshold is None
    assert cfg.scan.max_yaml_count_per_pull_request is None
    assert cfg.scan.nested_delimiters() == WithNestedCommitDelimiters.NO
    assert cfg.scan.draft_pull_requests is False


def test_load_toml(tmp_path: Path) -> None:
    path = tmp_path / "scan_config.toml"
    path.write_text(
        """
[source]
repo = "googleapis/googleapis-gen"
clone_depth = 20

[scan]
combine_pulls_threshold = 3
max_yaml_count_per_pull_request = "unbounded"
nested_commit_delimiters = true

[outputs]
base_dir = "%s"
"""
        % tmp_path.as_posix()
    )
    cfg = ScanConfig.load(path)

    assert cfg.source.clone_depth == 20
    assert cfg.scan.combine_pulls_threshold == 3
    assert cfg.scan.max_yaml_count_per_pull_request is None
    assert cfg.scan.nested_delimiters() == WithNestedCommitDelimiters.YES
    outs = cfg.outputs.resolve()
    assert outs.state_db == tmp_path.resolve() / "state.sqlite"


def test_example_config_is_valid() -> None:
    import codegen_sync.cli as cli

    template = Path(cli.__file__).resolve().parent / "pipeline" / "scan_config.example.toml"
    cfg = ScanConfig.load(template)
    assert cfg.source.repo == "googleapis/googleapis-gen"


def test_rejects_zero_yaml_count() -> None:
    with pytest.raises(ValidationError):
        ScanOptions(max_yaml_count_per_pull_request=0)
