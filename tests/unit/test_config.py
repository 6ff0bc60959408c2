from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from adpatch.config import AdaptivePatchConfig, load_config
from adpatch.engine.rules import CaptureKind
from adpatch.errors import ConfigError


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "config.yaml", env={})

    assert isinstance(config, AdaptivePatchConfig)
    assert config.encoding == "utf-8"
    assert config.rules == []
    assert config.base_dir == tmp_path.resolve()
    assert config.paths.extracted == (tmp_path / "extracted").resolve()
    assert config.paths.patches == (tmp_path / "patches").resolve()


def test_config_loads_paths_and_rules(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        textwrap.dedent(
            """
            paths:
              extracted: ../builds
              patches: /srv/patches
            encoding: latin-1
            rules:
              - name: experiment-search-input
                trigger: "name: 'experimentSearch'"
                placeholder: k.p
                anchor: "placeholder: 'Experiment name'"
                lookback: 4
                capture: jsx-component
            """
        ).lstrip(),
        encoding="utf-8",
    )

    config = load_config(config_path, env={})

    assert config.paths.extracted == (tmp_path.parent / "builds").resolve()
    assert config.paths.patches == Path("/srv/patches")
    assert config.encoding == "latin-1"
    assert len(config.rules) == 1
    assert config.rules[0].capture is CaptureKind.JSX_COMPONENT
    assert config.rules[0].anchor == ["placeholder: 'Experiment name'"]


def test_environment_overrides_encoding(tmp_path: Path) -> None:
    config = load_config(tmp_path / "config.yaml", env={"ADPATCH_ENCODING": "cp1251"})

    assert config.encoding == "cp1251"


def test_resolve_uses_config_directory(tmp_path: Path) -> None:
    config = load_config(tmp_path / "config.yaml", env={})

    assert config.resolve("build") == (tmp_path / "build").resolve()
    assert config.resolve(tmp_path / "abs") == tmp_path / "abs"


@pytest.mark.parametrize(
    "content",
    [
        "paths: [unclosed\n",
        "- just\n- a list\n",
        "unknown_section: true\n",
        "rules:\n  - name: missing-fields\n",
        "encoding: no-such-codec\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_path, env={})
