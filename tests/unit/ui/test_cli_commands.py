"""In-process CLI routing tests over the bundled catalog; nothing is executed."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from pipeline_orchestrator.errors import ConfigurationError
from pipeline_orchestrator.main import ExitCode, cli_entrypoint
from pipeline_orchestrator.ui import cli
from pipeline_orchestrator.ui.cli import CLIError, build_parser, run_cli
from pipeline_orchestrator.ui.render import CLIRenderer


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith(("PIPELINE_", "GITHUB_")):
            monkeypatch.delenv(name)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.chdir(tmp_path)


def _plan_json(capsys: pytest.CaptureFixture[str], *argv: str) -> dict[str, object]:
    code = run_cli(["plan", "--json", *argv])
    captured = capsys.readouterr()
    assert code == 0, captured.err
    payload = json.loads(captured.out)
    assert isinstance(payload, dict)
    return payload


def test_parser_requires_a_subcommand() -> None:
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args([])
    assert exc.value.code == 2


def test_parser_rejects_unknown_trigger() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["plan", "--trigger", "nightly"])


def test_plan_pull_request_defaults(capsys: pytest.CaptureFixture[str]) -> None:
    payload = _plan_json(capsys, "--trigger", "pull_request")

    assert payload["command"] == "plan"
    assert payload["catalog"] == "react-native"
    plan = payload["plan"]
    assert isinstance(plan, dict)
    assert plan["platform"] == "both"
    assert plan["environment"] == "staging"
    steps = plan["selected_steps"]
    assert isinstance(steps, list)
    assert steps[0] == "check-project-layout"
    assert "build-ios" in steps
    assert not any(step.startswith(("deploy-", "configure-")) for step in steps)


def test_plan_from_github_tag_push(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GITHUB_EVENT_NAME", "push")
    monkeypatch.setenv("GITHUB_REF", "refs/tags/v1.4.0")

    plan = _plan_json(capsys, "--from-github", "--platform", "android")["plan"]

    assert isinstance(plan, dict)
    assert plan["trigger"] == "tag"
    assert plan["ref"] == "refs/tags/v1.4.0"
    assert plan["platform"] == "android"
    assert plan["environment"] == "production"
    steps = plan["selected_steps"]
    assert isinstance(steps, list)
    assert steps[-1] == "deploy-android-production"
    assert "deploy-ios-production" not in steps


def test_plan_text_suggests_run_command(capsys: pytest.CaptureFixture[str]) -> None:
    code = run_cli(
        ["plan", "--trigger", "manual_dispatch", "--platform", "ios", "--environment", "staging"]
    )
    out = capsys.readouterr().out

    assert code == 0
    assert out.startswith("Pipeline plan\n")
    assert "Trigger: manual_dispatch" in out
    assert "deploy-ios-staging" in out
    assert "deploy-android-staging" not in out
    assert (
        "$ pipeline run --trigger manual_dispatch --platform ios --environment staging" in out
    )


@pytest.mark.parametrize(
    ("argv", "message"),
    [
        (["plan"], "missing --trigger"),
        (["plan", "--trigger", "push", "--from-github"], "mutually exclusive"),
        (["plan", "--trigger", "manual_dispatch"], "platform"),
        (["run", "--trigger", "manual_dispatch", "--platform", "ios"], "environment"),
        (["plan", "--trigger", "push", "--project-root", "missing-dir"], "not a directory"),
        (["plan", "--trigger", "push", "--catalog", "nope.yaml"], "catalog file not found"),
        (["config", "--config", "absent.toml"], "absent.toml"),
    ],
)
def test_configuration_problems_exit_with_config_error(
    capsys: pytest.CaptureFixture[str], argv: list[str], message: str
) -> None:
    code = run_cli(argv)
    err = capsys.readouterr().err

    assert code == ExitCode.CONFIG_ERROR
    assert err.startswith("error: ")
    assert message in err


def test_from_github_outside_actions_is_config_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli(["plan", "--from-github"]) == ExitCode.CONFIG_ERROR
    assert "GITHUB_EVENT_NAME" in capsys.readouterr().err


def test_config_json_reflects_cli_overrides(
    capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    code = run_cli(["config", "--json", "--project-root", str(tmp_path)])
    payload = json.loads(capsys.readouterr().out)

    assert code == 0
    assert payload["command"] == "config"
    assert payload["config"]["paths"]["project_root"] == tmp_path.resolve().as_posix()


def test_cli_error_carries_exit_code() -> None:
    error = CLIError("boom", exit_code=2)

    assert str(error) == "boom"
    assert isinstance(error, RuntimeError)
    assert error.exit_code == 2


def test_renderer_plain_markers_and_table(capsys: pytest.CaptureFixture[str]) -> None:
    renderer = CLIRenderer(no_color=True)

    renderer.ok("node: v20.11.0")
    renderer.warn("adb missing")
    renderer.fail("pod missing")
    renderer.table(("A", "LONGER"), [("1", "x"), ("22", "yy")], title="Rows:")
    renderer.table(("A",), [])
    renderer.next_steps([])

    assert capsys.readouterr().out.splitlines() == [
        "  OK  node: v20.11.0",
        "  WARN  adb missing",
        "  FAIL  pod missing",
        "",
        "Rows:",
        "  A   LONGER",
        "  --  ------",
        "  1   x",
        "  22  yy",
    ]


def test_entrypoint_routes_configuration_errors(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def boom(argv: object = None) -> int:
        raise ConfigurationError("catalog is broken")

    monkeypatch.setattr(cli, "run_cli", boom)

    assert cli_entrypoint([]) == ExitCode.CONFIG_ERROR
    assert capsys.readouterr().err == "catalog is broken\n"


def test_entrypoint_routes_unexpected_errors(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def boom(argv: object = None) -> int:
        raise RuntimeError("kaboom")

    monkeypatch.setattr(cli, "run_cli", boom)

    assert cli_entrypoint([]) == ExitCode.INTERNAL_ERROR
    assert "RuntimeError: kaboom" in capsys.readouterr().err


@pytest.mark.parametrize(("raw", "expected"), [(None, 0), (3, 3), (99, 4), ("usage", 4)])
def test_entrypoint_normalizes_system_exit(
    monkeypatch: pytest.MonkeyPatch, raw: object, expected: int
) -> None:
    def leave(argv: object = None) -> int:
        raise SystemExit(raw)

    monkeypatch.setattr(cli, "run_cli", leave)

    assert cli_entrypoint([]) == expected
