"""Command-line interface router for pipeline-orchestrator."""

from __future__ import annotations

import argparse
import json
import signal
import sys
import time
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from pipeline_orchestrator.config import (
    ConfigLoadError,
    ConfigValidationError,
    effective_config,
    load_config,
)
from pipeline_orchestrator.domain.models import (
    Environment,
    Platform,
    Severity,
    TriggerEvent,
    TriggerKind,
)
from pipeline_orchestrator.errors import ConfigurationError
from pipeline_orchestrator.execution import CancellationToken, SubprocessToolchain
from pipeline_orchestrator.observability import get_active_logging_handle, setup_logging
from pipeline_orchestrator.observability import shutdown_logging
from pipeline_orchestrator.orchestration import (
    PipelineCatalog,
    PipelineOrchestrator,
    PipelinePlan,
    load_catalog,
    parse_trigger_event,
    trigger_from_github,
)
from pipeline_orchestrator.reporting import render
from pipeline_orchestrator.ui.render import CLIRenderer, create_renderer

PROG: Final[str] = "pipeline"


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog=PROG,
        description=(
            "pipeline-orchestrator: environment readiness checks and CI pipeline runs.\n\n"
            "Common workflows:\n"
            "  pipeline doctor                         Check the build environment\n"
            "  pipeline plan --trigger pull_request    Show which steps would run\n"
            "  pipeline run --trigger push             Run the pipeline for a push\n"
            "  pipeline run --from-github              Derive the trigger from GitHub Actions\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--project-root",
        default=None,
        help="Project directory the toolchain runs in (default: paths.project_root).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to pipeline TOML config (default: ./pipeline.toml if present).",
    )
    common.add_argument(
        "--catalog",
        default=None,
        help="Path to a YAML step catalog (default: bundled React Native catalog).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    trigger = argparse.ArgumentParser(add_help=False)
    trigger.add_argument(
        "--trigger",
        choices=[kind.value for kind in TriggerKind],
        default=None,
        help="CI trigger kind.",
    )
    trigger.add_argument("--ref", default="", help="Git ref that triggered the run.")
    trigger.add_argument(
        "--platform",
        choices=[platform.value for platform in Platform],
        default=None,
        help="Target platform (required for manual_dispatch).",
    )
    trigger.add_argument(
        "--environment",
        choices=[environment.value for environment in Environment],
        default=None,
        help="Deployment environment (required for manual_dispatch).",
    )
    trigger.add_argument(
        "--from-github",
        action="store_true",
        default=False,
        help="Read the trigger from GITHUB_EVENT_NAME/GITHUB_REF/GITHUB_EVENT_PATH.",
    )
    trigger.add_argument("--json", action="store_true", help="Emit deterministic JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # plan ----------------------------------------------------------------
    plan_parser = subparsers.add_parser(
        "plan",
        parents=[common, trigger],
        help="Show the ordered steps a trigger would run",
        description=(
            "Select and order catalog steps for a trigger without executing anything.\n\n"
            "Examples:\n"
            "  pipeline plan --trigger pull_request\n"
            "  pipeline plan --trigger manual_dispatch --platform ios --environment staging\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    plan_parser.set_defaults(handler=_cmd_plan)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common, trigger],
        help="Run the pipeline for a trigger",
        description=(
            "Plan, execute, and report a pipeline run.\n\n"
            "Exit status: 0 success, 1 hard failure, 2 configuration error,\n"
            "3 soft failures only, 4 internal error.\n\n"
            "Examples:\n"
            "  pipeline run --trigger push --ref refs/heads/main\n"
            "  pipeline run --from-github --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument(
        "--retry-bound",
        type=int,
        default=None,
        help="Extra attempts for retryable steps on transient failure (default: 1).",
    )
    run_parser.set_defaults(handler=_cmd_run)

    # doctor --------------------------------------------------------------
    doctor_parser = subparsers.add_parser(
        "doctor",
        parents=[common],
        help="Run every catalog probe and report environment readiness",
        description=(
            "Evaluate all probes (files, tools, versions, secret presence) without\n"
            "running any step.\n\n"
            "Examples:\n"
            "  pipeline doctor\n"
            "  pipeline doctor --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    doctor_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    doctor_parser.set_defaults(handler=_cmd_doctor)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, file, env, and flags.\n\n"
            "Examples:\n"
            "  pipeline config\n"
            "  pipeline config --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_plan(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    toolchain = _toolchain(config)
    catalog = _load_catalog(config, toolchain)
    orchestrator = _orchestrator(catalog, config)
    plan = _plan(orchestrator, _trigger_event(args))

    if _flag(args, "json"):
        _emit_json({"command": "plan", "catalog": catalog.name, "plan": plan.to_dict()})
        return 0

    renderer = _get_renderer(args)
    _render_plan(renderer, plan, orchestrator)
    renderer.next_steps([_run_command_for(plan)])
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    toolchain = _toolchain(config)
    catalog = _load_catalog(config, toolchain)
    orchestrator = _orchestrator(catalog, config)
    plan = _plan(orchestrator, _trigger_event(args))

    run_id = _new_run_id()
    observability = _section(config, "observability")
    setup_logging(observability, run_id=run_id, log_dir=_section(config, "paths")["log_dir"])
    handle = get_active_logging_handle()
    log_path = handle.log_path if handle is not None else None

    token = CancellationToken()
    try:
        with _cancel_on_interrupt(token):
            run = orchestrator.execute(plan, token)
    finally:
        shutdown_logging()

    report = render(run, next_actions=catalog.next_actions)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "run",
                "run_id": run_id,
                "catalog": catalog.name,
                "plan": plan.to_dict(),
                "report": dict(report.payload),
                "log_path": log_path.as_posix() if log_path is not None else None,
            }
        )
        return int(report.exit_status)

    renderer = _get_renderer(args)
    renderer.text(report.text.rstrip("\n"))
    if plan.excluded:
        renderer.section("Excluded (prerequisite not selected):")
        renderer.items(list(plan.excluded))
    if renderer.verbose and log_path is not None:
        renderer.section("Logs:")
        renderer.kv("  Run id", run_id)
        renderer.kv("  Log file", log_path.as_posix())
    return int(report.exit_status)


def _cmd_doctor(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    toolchain = _toolchain(config)
    catalog = _load_catalog(config, toolchain)

    checks: list[dict[str, object]] = []
    blocking_failures = 0
    for probe, outcome in catalog.registry.run_all():
        if outcome.ok:
            status = "ok"
        elif probe.severity is Severity.WARNING:
            status = "warn"
        else:
            status = "fail"
            blocking_failures += 1
        checks.append(
            {
                "name": probe.name,
                "severity": probe.severity.value,
                "status": status,
                "detail": outcome.message,
                "hint": None if outcome.ok else outcome.hint,
            }
        )

    exit_code = 1 if blocking_failures else 0
    if _flag(args, "json"):
        _emit_json(
            {
                "command": "doctor",
                "catalog": catalog.name,
                "project_root": toolchain.project_root.as_posix(),
                "checks": checks,
            }
        )
        return exit_code

    renderer = _get_renderer(args)
    renderer.heading(f"{PROG} doctor ({catalog.name})")
    renderer.kv("Project root", toolchain.project_root.as_posix())
    renderer.text("")
    for check in checks:
        label = f"{check['name']}: {check['detail']}"
        if check["status"] == "ok":
            renderer.ok(label)
            continue
        if check["status"] == "warn":
            renderer.warn(label)
        else:
            renderer.fail(label)
        if check["hint"]:
            renderer.text(f"        {check['hint']}")

    if blocking_failures:
        renderer.text(f"\n{blocking_failures} blocking check(s) failed. See details above.")
    else:
        renderer.text("\nEnvironment is ready.")
    return exit_code


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    redacted = effective_config(config)

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": redacted})
        return 0

    renderer = _get_renderer(args)
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    """Retrieve or create a CLI renderer from the parsed namespace."""

    no_color = _flag(args, "no_color")
    verbose = _flag(args, "verbose")
    return create_renderer(no_color=no_color, verbose=verbose)


def _render_plan(
    renderer: CLIRenderer, plan: PipelinePlan, orchestrator: PipelineOrchestrator
) -> None:
    renderer.heading("Pipeline plan")
    renderer.kv("Trigger", plan.trigger.value)
    if plan.ref:
        renderer.kv("Ref", plan.ref)
    renderer.kv("Platform", plan.platform.value)
    renderer.kv("Environment", plan.environment.value)

    if not plan.selected_steps:
        renderer.text("\nNo steps selected.")
    rows: list[tuple[str, str, str, str]] = []
    for position, step_id in enumerate(plan.selected_steps, start=1):
        step = orchestrator.graph.step(step_id)
        rows.append((str(position), step_id, step.category.value, step.description))
    renderer.table(("#", "STEP", "CATEGORY", "DESCRIPTION"), rows, title="Steps:")

    if plan.excluded:
        renderer.section("Excluded (prerequisite not selected):")
        renderer.items(list(plan.excluded))


def _run_command_for(plan: PipelinePlan) -> str:
    parts = [PROG, "run", "--trigger", plan.trigger.value]
    if plan.ref:
        parts.extend(["--ref", plan.ref])
    parts.extend(["--platform", plan.platform.value, "--environment", plan.environment.value])
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Helpers: config, catalog, trigger resolution
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    overrides: dict[str, object] = {}

    project_root = _optional_str(getattr(args, "project_root", None))
    if project_root is not None:
        overrides["paths.project_root"] = Path(project_root).expanduser().resolve().as_posix()
    catalog = _optional_str(getattr(args, "catalog", None))
    if catalog is not None:
        overrides["paths.catalog"] = Path(catalog).expanduser().resolve().as_posix()
    retry_bound = getattr(args, "retry_bound", None)
    if retry_bound is not None:
        overrides["executor.retry_bound"] = retry_bound

    try:
        return load_config(config_path, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _toolchain(config: Mapping[str, Any]) -> SubprocessToolchain:
    paths = _section(config, "paths")
    project_root = Path(paths["project_root"])
    if not project_root.is_dir():
        raise CLIError(f"project root is not a directory: {project_root}", exit_code=2)
    executor = _section(config, "executor")
    return SubprocessToolchain(
        project_root, default_timeout_seconds=executor["default_timeout_seconds"]
    )


def _load_catalog(config: Mapping[str, Any], toolchain: SubprocessToolchain) -> PipelineCatalog:
    catalog_path = _section(config, "paths")["catalog"]
    try:
        return load_catalog(catalog_path, toolchain)
    except ConfigurationError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _orchestrator(catalog: PipelineCatalog, config: Mapping[str, Any]) -> PipelineOrchestrator:
    retry_bound = _section(config, "executor")["retry_bound"]
    try:
        return PipelineOrchestrator.from_catalog(catalog, retry_bound=retry_bound)
    except ConfigurationError as exc:
        raise CLIError(f"invalid catalog {catalog.source}: {exc}", exit_code=2) from exc


def _plan(orchestrator: PipelineOrchestrator, event: TriggerEvent) -> PipelinePlan:
    try:
        return orchestrator.plan_event(event)
    except ConfigurationError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _trigger_event(args: argparse.Namespace) -> TriggerEvent:
    trigger = _optional_str(getattr(args, "trigger", None))
    platform = _optional_str(getattr(args, "platform", None))
    environment = _optional_str(getattr(args, "environment", None))
    ref = _optional_str(getattr(args, "ref", None)) or ""

    try:
        if _flag(args, "from_github"):
            if trigger is not None:
                raise CLIError("--trigger and --from-github are mutually exclusive", exit_code=2)
            event = trigger_from_github()
            return TriggerEvent(
                kind=event.kind,
                ref=ref or event.ref,
                platform=Platform(platform) if platform is not None else event.platform,
                environment=(
                    Environment(environment) if environment is not None else event.environment
                ),
            )
        if trigger is None:
            raise CLIError("missing --trigger (or use --from-github)", exit_code=2)
        return parse_trigger_event(trigger, ref=ref, platform=platform, environment=environment)
    except ConfigurationError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Turn SIGINT into cooperative cancellation between steps."""

    def _handler(signum: int, frame: object) -> None:
        token.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
        installed = True
    except ValueError:
        # Not on the main thread; leave interrupt handling alone.
        previous, installed = None, False
    try:
        yield
    finally:
        if installed:
            signal.signal(signal.SIGINT, previous)


def _new_run_id() -> str:
    return f"{time.strftime('%Y%m%dT%H%M%SZ', time.gmtime())}-{uuid.uuid4().hex[:8]}"


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = config.get(name)
    if not isinstance(section, Mapping):
        raise CLIError(f"config section [{name}] is missing", exit_code=2)
    return section


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    value = getattr(args, name, False)
    return bool(value)


__all__ = ["CLIError", "build_parser", "main", "run_cli"]


if __name__ == "__main__":
    raise SystemExit(run_cli())
