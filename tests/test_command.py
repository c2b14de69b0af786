import shutil

import pytest

from envforge.lib.command import fmt_argv, run_cmd

needs_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="sh not available")


def test_fmt_argv_quotes_arguments() -> None:
    assert fmt_argv(["echo", "two words", "x"]) == "echo 'two words' x"


@needs_sh
def test_run_cmd_captures_output_and_status() -> None:
    r = run_cmd(["sh", "-c", "echo out; echo err >&2; exit 3"], check=False)
    assert r.returncode == 3
    assert not r.ok
    assert r.stdout.strip() == "out"
    assert r.stderr.strip() == "err"


@needs_sh
def test_run_cmd_check_raises_on_failure() -> None:
    with pytest.raises(RuntimeError, match="Command failed \\(2\\)"):
        run_cmd(["sh", "-c", "exit 2"])


@needs_sh
def test_run_cmd_without_capture_and_with_env(tmp_path) -> None:
    out = tmp_path / "v.txt"
    r = run_cmd(
        ["sh", "-c", 'printf "%s" "$FORGE_VALUE" > v.txt'],
        env={"FORGE_VALUE": "42"},
        cwd=str(tmp_path),
        capture=False,
    )
    assert r.ok
    assert r.stdout == "" and r.stderr == ""
    assert out.read_text(encoding="utf-8") == "42"
