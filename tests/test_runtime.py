import shutil
from pathlib import Path

import pytest

from envforge.errors import ToolNotFoundError
from envforge.lib.command import CmdResult
from envforge.runtime import CallableToolRuntime, PhaseResult, ScriptToolRuntime, ToolRegistry

needs_bash = pytest.mark.skipif(shutil.which("bash") is None, reason="bash not available")


SCRIPT = """#!/bin/bash
pre_install() {
    echo "pre $ENVFORGE_TOOL" >> "$LOG"
}

install() {
    echo "install" >> "$LOG"
    return ${INSTALL_STATUS:-0}
}

if [[ "${BASH_SOURCE[0]}" == "${0}" ]]; then
    echo "standalone" >> "$LOG"
fi
"""


def _write_script(tmp_path: Path, name: str = "nvm.sh") -> Path:
    p = tmp_path / name
    p.write_text(SCRIPT, encoding="utf-8")
    return p


@needs_bash
def test_script_runtime_runs_phase_functions(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    rt = ScriptToolRuntime("nvm", _write_script(tmp_path), env={"LOG": str(log)})

    assert rt.pre_install().ok
    assert rt.install().ok
    # post_install is not defined by the script
    assert rt.post_install().ok

    assert log.read_text(encoding="utf-8").splitlines() == ["pre nvm", "install"]


@needs_bash
def test_script_runtime_maps_exit_status_to_failure(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    rt = ScriptToolRuntime("nvm", _write_script(tmp_path), env={"LOG": str(log), "INSTALL_STATUS": "3"})

    result = rt.install()
    assert not result.ok
    assert result.reason == "exit status 3"


def test_script_runtime_uses_injected_runner(tmp_path: Path) -> None:
    seen = []

    def runner(argv, **kwargs):
        seen.append((argv, kwargs))
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")

    script = tmp_path / "docker.sh"
    rt = ScriptToolRuntime("docker", script, env={"ENVFORGE_HOME": "/h"}, runner=runner)
    assert rt.post_install().ok

    argv, kwargs = seen[0]
    assert argv[0] == "bash"
    assert argv[-2:] == [str(script), "post_install"]
    assert kwargs["env"] == {"ENVFORGE_HOME": "/h", "ENVFORGE_TOOL": "docker"}
    assert kwargs["check"] is False
    assert rt.describe() == str(script)


def test_callable_runtime_return_values() -> None:
    rt = CallableToolRuntime(
        "x",
        pre_install=lambda: None,
        install=lambda: False,
        post_install=lambda: PhaseResult.failure("nope"),
    )
    assert rt.pre_install().ok
    assert not rt.install().ok
    assert rt.post_install() == PhaseResult(ok=False, reason="nope")
    assert CallableToolRuntime("y").install().ok


def test_registry_resolve_and_missing() -> None:
    rt = CallableToolRuntime("git")
    reg = ToolRegistry([rt])
    assert reg.resolve("git") is rt
    assert "git" in reg
    assert reg.get("svn") is None
    with pytest.raises(ToolNotFoundError) as exc:
        reg.resolve("svn")
    assert exc.value.tool == "svn"


def test_registry_rejects_conflicting_ids() -> None:
    reg = ToolRegistry([CallableToolRuntime("git")])
    with pytest.raises(ValueError):
        reg.register(CallableToolRuntime("git"))


def test_registry_from_directory(tmp_path: Path) -> None:
    for name in ("nvm.sh", "10-docker.sh", "20_go.sh", "README.md"):
        (tmp_path / name).write_text("", encoding="utf-8")

    reg = ToolRegistry.from_directory(tmp_path, env={"ENVFORGE_HOME": str(tmp_path)})
    assert reg.ids() == ["10-docker", "20_go", "docker", "go", "nvm"]
    assert reg.resolve("docker") is reg.resolve("10-docker")
    assert reg.resolve("nvm").describe() == str(tmp_path / "nvm.sh")


def test_registry_from_missing_directory(tmp_path: Path) -> None:
    assert len(ToolRegistry.from_directory(tmp_path / "nope")) == 0


@needs_bash
def test_script_phases_do_not_share_shell_state(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    script = tmp_path / "go.sh"
    script.write_text(
        "echo top >> \"$LOG\"\n"
        "pre_install() { export GO_ROOT=/opt/go; }\n"
        "install() { echo \"root=${GO_ROOT:-unset}\" >> \"$LOG\"; }\n",
        encoding="utf-8",
    )
    rt = ScriptToolRuntime("go", script, env={"LOG": str(log)})
    assert rt.pre_install().ok
    assert rt.install().ok

    assert log.read_text(encoding="utf-8").splitlines() == ["top", "top", "root=unset"]


def test_registry_from_directory_with_conflicting_scripts(tmp_path: Path) -> None:
    for name in ("nvm.sh", "10-nvm.sh"):
        (tmp_path / name).write_text("", encoding="utf-8")
    with pytest.raises(ValueError, match="registered twice"):
        ToolRegistry.from_directory(tmp_path)
