"""Toolchain capability: environment probes and external command invocation.

File: src/pipeline_orchestrator/execution/toolchain.py

Purpose
- Give probes and steps one opaque seam to the outside world (Node, Gradle,
  CocoaPods, Fastlane, Xcode, store uploaders).
- Interpret exit codes and output; never run build logic in-process.

Security
- Secret probes check presence only; values are never returned or logged.
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from pipeline_orchestrator.domain.models import FailureKind, Outcome, ProbeKind, ProbeQuery
from pipeline_orchestrator.errors import ToolchainTimeout

_VERSION_TIMEOUT_SECONDS: Final[float] = 5.0
_MAX_DETAIL_CHARS: Final[int] = 2000
_MAJOR_VERSION_PATTERN: Final[re.Pattern[str]] = re.compile(r"v?(\d+)(?:\.\d+)*")


@runtime_checkable
class Toolchain(Protocol):
    """External capability consumed by probes and step actions."""

    def probe(self, query: ProbeQuery) -> Outcome: ...

    def invoke(
        self,
        command: str,
        args: Sequence[str] = (),
        timeout: float | None = None,
        *,
        cwd: str | None = None,
    ) -> Outcome: ...


class SubprocessToolchain:
    """Toolchain backed by the local filesystem, ``PATH``, and subprocesses."""

    def __init__(
        self,
        project_root: Path | str = ".",
        *,
        environ: Mapping[str, str] | None = None,
        default_timeout_seconds: float | None = None,
    ) -> None:
        self.project_root = Path(project_root).expanduser().resolve()
        self._environ = dict(os.environ if environ is None else environ)
        if default_timeout_seconds is not None and default_timeout_seconds <= 0:
            raise ValueError("default_timeout_seconds must be > 0")
        self._default_timeout_seconds = default_timeout_seconds

    def probe(self, query: ProbeQuery) -> Outcome:
        if query.kind is ProbeKind.FILE:
            return self._probe_path(query.target, want_dir=False)
        if query.kind is ProbeKind.DIRECTORY:
            return self._probe_path(query.target, want_dir=True, pattern=query.pattern)
        if query.kind is ProbeKind.COMMAND:
            path = self._which(query.target)
            if path is None:
                return Outcome.hard(
                    f"{query.target} not found in PATH", failure=FailureKind.MISSING_TOOL
                )
            return Outcome.success(f"{query.target} found at {path}")
        if query.kind is ProbeKind.VERSION:
            return self._probe_version(query.target, query.minimum or 0)
        return self._probe_secret(query.target)

    def invoke(
        self,
        command: str,
        args: Sequence[str] = (),
        timeout: float | None = None,
        *,
        cwd: str | None = None,
    ) -> Outcome:
        binary = self._which(command)
        if binary is None:
            return Outcome.hard(f"{command} not found in PATH", failure=FailureKind.MISSING_TOOL)

        argv = [binary, *args]
        display = " ".join([command, *args])
        effective_timeout = timeout if timeout is not None else self._default_timeout_seconds
        try:
            completed = subprocess.run(
                argv,
                cwd=self.project_root / cwd if cwd else self.project_root,
                env=self._environ,
                capture_output=True,
                text=True,
                timeout=effective_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolchainTimeout(display, effective_timeout or 0.0) from exc
        except OSError as exc:
            return Outcome.hard(f"{display}: {exc}", failure=FailureKind.MISSING_TOOL)

        if completed.returncode == 0:
            return Outcome.success(f"{display} completed")

        detail = _tail(completed.stderr) or _tail(completed.stdout)
        message = f"{display} exited with status {completed.returncode}"
        if detail:
            message = f"{message}: {detail}"
        return Outcome.hard(message, failure=FailureKind.COMMAND_FAILED)

    def _probe_path(self, target: str, *, want_dir: bool, pattern: str | None = None) -> Outcome:
        candidate = self.project_root / target
        exists = candidate.is_dir() if want_dir else candidate.is_file()
        label = "directory" if want_dir else "file"
        if exists and pattern is not None:
            matches = sorted(path.name for path in candidate.glob(pattern) if path.is_file())
            listing = ", ".join(matches) if matches else f"no {pattern} files"
            return Outcome.success(f"{label} {target} found: {listing}")
        if exists:
            return Outcome.success(f"{label} {target} found")
        return Outcome.hard(f"{label} {target} not found", failure=FailureKind.MISSING_FILE)

    def _probe_version(self, command: str, minimum: int) -> Outcome:
        binary = self._which(command)
        if binary is None:
            return Outcome.hard(f"{command} not found in PATH", failure=FailureKind.MISSING_TOOL)

        version = _read_version(binary, self._environ)
        if version is None:
            return Outcome.hard(
                f"unable to read {command} version", failure=FailureKind.VERSION_MISMATCH
            )
        major = _major_version(version)
        if major is None or major < minimum:
            return Outcome.hard(
                f"{command} {minimum}+ is required. Current version: {version}",
                failure=FailureKind.VERSION_MISMATCH,
            )
        return Outcome.success(f"{command} version: {version}")

    def _probe_secret(self, name: str) -> Outcome:
        if self._environ.get(name, "").strip():
            return Outcome.success(f"secret {name} is set")
        return Outcome.hard(f"secret {name} is not set", failure=FailureKind.MISSING_SECRET)

    def _which(self, command: str) -> str | None:
        return shutil.which(command, path=self._environ.get("PATH"))


def _read_version(binary_path: str, environ: Mapping[str, str]) -> str | None:
    """Run ``binary --version`` and return its first output line.

    Returns None on timeout, non-zero exit, or empty output.
    """
    try:
        result = subprocess.run(
            [binary_path, "--version"],
            env=dict(environ),
            capture_output=True,
            text=True,
            timeout=_VERSION_TIMEOUT_SECONDS,
            check=False,
        )
    except (subprocess.TimeoutExpired, OSError):
        return None
    if result.returncode == 0 and result.stdout.strip():
        return result.stdout.strip().splitlines()[0]
    return None


def _major_version(version: str) -> int | None:
    match = _MAJOR_VERSION_PATTERN.search(version)
    if match is None:
        return None
    return int(match.group(1))


def _tail(text: str | None) -> str:
    if not text:
        return ""
    stripped = text.strip()
    if len(stripped) <= _MAX_DETAIL_CHARS:
        return stripped
    return "..." + stripped[-_MAX_DETAIL_CHARS:]


__all__ = ["SubprocessToolchain", "Toolchain"]
