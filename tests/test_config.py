from pathlib import Path

import pytest

from envforge.config import DEFAULT_VERSIONS_URL, EngineConfig, load_config


def test_defaults_derive_from_home(tmp_path: Path) -> None:
    cfg = load_config(None, home=tmp_path)
    assert cfg == EngineConfig.from_home(tmp_path)
    assert cfg.state_dir == tmp_path / ".state"
    assert cfg.tools_dir == tmp_path / "tools"
    assert cfg.bundles_dir == tmp_path / "bundles"
    assert cfg.log_path == tmp_path / "logs" / "envforge.log"
    assert cfg.versions_url == DEFAULT_VERSIONS_URL


def test_yaml_overrides(tmp_path: Path) -> None:
    p = tmp_path / "envforge.yaml"
    p.write_text(
        "state_dir: /var/lib/envforge\n"
        "tools_dir: my-tools\n"
        "branch: main\n",
        encoding="utf-8",
    )
    cfg = load_config(p, home=tmp_path)
    assert cfg.state_dir == Path("/var/lib/envforge")
    assert cfg.tools_dir == tmp_path / "my-tools"
    assert cfg.branch == "main"
    assert cfg.remote == "origin"


def test_rejects_unknown_keys_and_non_yaml(tmp_path: Path) -> None:
    bad = tmp_path / "c.yaml"
    bad.write_text("colour: blue\n", encoding="utf-8")
    with pytest.raises(ValueError, match="colour"):
        load_config(bad, home=tmp_path)

    js = tmp_path / "c.json"
    js.write_text("{}", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(js, home=tmp_path)

    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml", home=tmp_path)


def test_invalid_yaml_is_a_value_error(tmp_path: Path) -> None:
    p = tmp_path / "envforge.yaml"
    p.write_text("branch: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config(p, home=tmp_path)
