"""Unit tests for execution.toolchain.SubprocessToolchain."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING
from unittest import mock

import pytest

from pipeline_orchestrator.domain.models import FailureKind, ProbeKind, ProbeQuery
from pipeline_orchestrator.errors import ToolchainTimeout
from pipeline_orchestrator.execution.toolchain import SubprocessToolchain, Toolchain

if TYPE_CHECKING:
    from pathlib import Path

_MODULE = "pipeline_orchestrator.execution.toolchain"


def _completed(
    returncode: int, stdout: str = "", stderr: str = ""
) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(
        args=[], returncode=returncode, stdout=stdout, stderr=stderr
    )


def test_satisfies_toolchain_protocol(tmp_path: Path) -> None:
    assert isinstance(SubprocessToolchain(tmp_path), Toolchain)


def test_file_and_directory_probes_are_relative_to_project_root(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    (tmp_path / ".github" / "workflows").mkdir(parents=True)
    toolchain = SubprocessToolchain(tmp_path)

    assert toolchain.probe(ProbeQuery(ProbeKind.FILE, "package.json")).ok
    assert toolchain.probe(ProbeQuery(ProbeKind.DIRECTORY, ".github/workflows")).ok

    missing = toolchain.probe(ProbeQuery(ProbeKind.FILE, "ios/Podfile"))
    assert not missing.ok
    assert missing.failure is FailureKind.MISSING_FILE
    assert missing.message == "file ios/Podfile not found"
    assert not toolchain.probe(ProbeQuery(ProbeKind.DIRECTORY, "package.json")).ok


def test_command_probe_uses_path_lookup(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path, environ={"PATH": "/opt/bin"})

    with mock.patch(f"{_MODULE}.shutil.which", return_value="/opt/bin/adb") as which:
        found = toolchain.probe(ProbeQuery(ProbeKind.COMMAND, "adb"))
    which.assert_called_once_with("adb", path="/opt/bin")
    assert found.ok

    with mock.patch(f"{_MODULE}.shutil.which", return_value=None):
        missing = toolchain.probe(ProbeQuery(ProbeKind.COMMAND, "adb"))
    assert missing.failure is FailureKind.MISSING_TOOL
    assert missing.message == "adb not found in PATH"


def test_version_probe_compares_major_version(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path)
    query = ProbeQuery(ProbeKind.VERSION, "node", minimum=18)

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/usr/bin/node"),
        mock.patch(f"{_MODULE}.subprocess.run", return_value=_completed(0, "v20.11.1\n")),
    ):
        assert toolchain.probe(query).message == "node version: v20.11.1"

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/usr/bin/node"),
        mock.patch(f"{_MODULE}.subprocess.run", return_value=_completed(0, "v16.20.0\n")),
    ):
        outdated = toolchain.probe(query)
    assert outdated.failure is FailureKind.VERSION_MISMATCH
    assert outdated.message == "node 18+ is required. Current version: v16.20.0"


def test_version_probe_with_unreadable_version(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path)

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/usr/bin/node"),
        mock.patch(f"{_MODULE}.subprocess.run", return_value=_completed(1, "", "boom")),
    ):
        outcome = toolchain.probe(ProbeQuery(ProbeKind.VERSION, "node", minimum=18))
    assert outcome.failure is FailureKind.VERSION_MISMATCH
    assert outcome.message == "unable to read node version"


def test_version_probe_uses_injected_environment(tmp_path: Path) -> None:
    environ = {"PATH": "/opt/node/bin", "NODE_OPTIONS": "--no-warnings"}
    toolchain = SubprocessToolchain(tmp_path, environ=environ)

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/opt/node/bin/node"),
        mock.patch(f"{_MODULE}.subprocess.run", return_value=_completed(0, "v20.0.0\n")) as run,
    ):
        assert toolchain.probe(ProbeQuery(ProbeKind.VERSION, "node", minimum=18)).ok

    assert run.call_args.args[0] == ["/opt/node/bin/node", "--version"]
    assert run.call_args.kwargs["env"] == environ


def test_directory_probe_lists_files_matching_pattern(tmp_path: Path) -> None:
    workflows = tmp_path / ".github" / "workflows"
    workflows.mkdir(parents=True)
    for name in ("deploy.yml", "ci.yml", "README.md"):
        (workflows / name).write_text("", encoding="utf-8")
    toolchain = SubprocessToolchain(tmp_path)
    query = ProbeQuery(ProbeKind.DIRECTORY, ".github/workflows", pattern="*.yml")

    outcome = toolchain.probe(query)

    assert outcome.ok
    assert outcome.message == "directory .github/workflows found: ci.yml, deploy.yml"


def test_directory_probe_pattern_without_matches(tmp_path: Path) -> None:
    (tmp_path / ".github" / "workflows").mkdir(parents=True)
    toolchain = SubprocessToolchain(tmp_path)
    query = ProbeQuery(ProbeKind.DIRECTORY, ".github/workflows", pattern="*.yml")

    outcome = toolchain.probe(query)

    assert outcome.ok
    assert outcome.message == "directory .github/workflows found: no *.yml files"


def test_secret_probe_checks_presence_without_exposing_value(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path, environ={"MATCH_PASSWORD": "hunter2", "EMPTY": " "})

    present = toolchain.probe(ProbeQuery(ProbeKind.SECRET, "MATCH_PASSWORD"))
    assert present.ok
    assert "hunter2" not in present.message

    for name in ("EMPTY", "APP_STORE_CONNECT_API_KEY"):
        missing = toolchain.probe(ProbeQuery(ProbeKind.SECRET, name))
        assert missing.failure is FailureKind.MISSING_SECRET


def test_invoke_runs_in_project_root_with_timeout(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(
        tmp_path, environ={"PATH": "/usr/bin"}, default_timeout_seconds=60
    )

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/usr/bin/npm"),
        mock.patch(f"{_MODULE}.subprocess.run", return_value=_completed(0)) as run,
    ):
        outcome = toolchain.invoke("npm", ["run", "lint"])

    assert outcome.ok
    assert outcome.message == "npm run lint completed"
    args, kwargs = run.call_args
    assert args[0] == ["/usr/bin/npm", "run", "lint"]
    assert kwargs["cwd"] == tmp_path.resolve()
    assert kwargs["timeout"] == 60
    assert kwargs["env"] == {"PATH": "/usr/bin"}


def test_invoke_honours_cwd_and_explicit_timeout(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path, default_timeout_seconds=60)

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/usr/bin/pod"),
        mock.patch(f"{_MODULE}.subprocess.run", return_value=_completed(0)) as run,
    ):
        toolchain.invoke("pod", ["install"], 1800, cwd="ios")

    assert run.call_args.kwargs["cwd"] == tmp_path.resolve() / "ios"
    assert run.call_args.kwargs["timeout"] == 1800


def test_invoke_reports_exit_status_and_stderr_tail(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path)

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/usr/bin/npm"),
        mock.patch(
            f"{_MODULE}.subprocess.run",
            return_value=_completed(2, "noise", "src/App.tsx: error TS2322\n"),
        ),
    ):
        outcome = toolchain.invoke("npm", ["run", "type-check"])

    assert outcome.failure is FailureKind.COMMAND_FAILED
    assert not outcome.transient
    assert outcome.message == "npm run type-check exited with status 2: src/App.tsx: error TS2322"


def test_invoke_missing_binary_is_a_missing_tool_failure(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path)

    with mock.patch(f"{_MODULE}.shutil.which", return_value=None):
        outcome = toolchain.invoke("fastlane", ["beta"])

    assert outcome.failure is FailureKind.MISSING_TOOL


def test_invoke_timeout_raises_toolchain_timeout(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(tmp_path)
    expired = subprocess.TimeoutExpired(cmd=["npm", "install"], timeout=5)

    with (
        mock.patch(f"{_MODULE}.shutil.which", return_value="/usr/bin/npm"),
        mock.patch(f"{_MODULE}.subprocess.run", side_effect=expired),
        pytest.raises(ToolchainTimeout) as error,
    ):
        toolchain.invoke("npm", ["install"], 5)

    assert error.value.command == "npm install"
    assert error.value.timeout_seconds == 5


def test_default_timeout_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="default_timeout_seconds"):
        SubprocessToolchain(tmp_path, default_timeout_seconds=0)
