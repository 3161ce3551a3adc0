"""
YAML pipeline catalogs: probe and step declarations bound to a toolchain.

File: src/pipeline_orchestrator/orchestration/catalog.py

Purpose
- Load the full declared set of probes and steps (the catalog) from YAML.
- Turn each step's ``command`` block into a zero-argument action that calls
  the toolchain, honouring ``only_if``/``unless`` conditions.

Functional requirements
- Unknown keys, wrong types, and unsupported enum values are rejected with a
  ``CatalogLoadError`` naming the file and field path.
- Graph validity (cycles, unknown prerequisites) is left to
  ``DependencyGraph.build``.

Non-functional requirements
- Loading is deterministic; declaration order is preserved.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Final, TypeVar, cast

import yaml

from pipeline_orchestrator.domain.models import (
    Action,
    Environment,
    FailureKind,
    Outcome,
    Platform,
    Probe,
    ProbeKind,
    ProbeQuery,
    Severity,
    Step,
    StepCategory,
    parse_enum_set,
)
from pipeline_orchestrator.errors import CatalogLoadError, ConfigurationError
from pipeline_orchestrator.probes.registry import ProbeRegistry, query_probe

if TYPE_CHECKING:
    from pipeline_orchestrator.execution.toolchain import Toolchain

BUILTIN_CATALOG: Final[str] = "react_native.yaml"

_E = TypeVar("_E", bound=StrEnum)

_ROOT_KEYS: Final[frozenset[str]] = frozenset({"name", "next_actions", "probes", "steps"})
_PROBE_KEYS: Final[frozenset[str]] = frozenset(
    {"name", "kind", "target", "minimum", "pattern", "severity", "hint", "only_if"}
)
_CONDITION_KEYS: Final[frozenset[str]] = frozenset({"kind", "target", "minimum", "message"})
_COMMAND_ONLY_KEYS: Final[frozenset[str]] = frozenset(
    {"args", "cwd", "only_if", "unless", "soft_fail", "transient", "timeout_seconds"}
)
_STEP_KEYS: Final[frozenset[str]] = frozenset(
    {
        "id",
        "category",
        "description",
        "prerequisites",
        "probes",
        "platforms",
        "environments",
        "command",
        "args",
        "cwd",
        "only_if",
        "unless",
        "retryable",
        "transient",
        "soft_fail",
        "timeout_seconds",
        "idempotent",
    }
)


@dataclass(frozen=True, slots=True)
class Condition:
    """Toolchain query deciding whether a command needs to run at all."""

    query: ProbeQuery
    message: str | None = None


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """External command a step runs through the toolchain."""

    command: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    timeout_seconds: float | None = None
    soft_fail: bool = False
    transient: bool = False
    only_if: Condition | None = None
    unless: Condition | None = None

    def display(self) -> str:
        return " ".join([self.command, *self.args])


@dataclass(frozen=True, slots=True)
class PipelineCatalog:
    """Loaded catalog: registered probes, declared steps, and report footer."""

    name: str
    registry: ProbeRegistry = field(compare=False)
    steps: tuple[Step, ...]
    next_actions: tuple[str, ...] = ()
    source: str = ""

    def step_ids(self) -> tuple[str, ...]:
        return tuple(step.id for step in self.steps)


def command_action(cmd: CommandSpec, toolchain: Toolchain) -> Action:
    """Build the action that runs ``cmd`` through ``toolchain``.

    ``only_if`` failing or ``unless`` passing short-circuits to success
    without invoking anything. ``ToolchainTimeout`` propagates to the executor.
    ``transient`` only reclassifies non-zero exits; a missing tool or file
    fails the same way on every attempt.
    """

    def action() -> Outcome:
        if cmd.only_if is not None and not toolchain.probe(cmd.only_if.query).ok:
            return Outcome.success(
                cmd.only_if.message
                or f"not applicable: {cmd.only_if.query.describe()} not present"
            )
        if cmd.unless is not None and toolchain.probe(cmd.unless.query).ok:
            return Outcome.success(
                cmd.unless.message or f"already satisfied: {cmd.unless.query.describe()}"
            )

        outcome = toolchain.invoke(cmd.command, cmd.args, cmd.timeout_seconds, cwd=cmd.cwd)
        if outcome.ok:
            return outcome
        if cmd.soft_fail:
            return Outcome.soft(
                outcome.message,
                failure=outcome.failure,
                transient=outcome.transient,
                hint=outcome.hint,
            )
        if (
            cmd.transient
            and not outcome.transient
            and outcome.failure is FailureKind.COMMAND_FAILED
        ):
            return dataclasses.replace(outcome, transient=True)
        return outcome

    return action


def probes_only_action() -> Outcome:
    """Action for steps that only gate on probes."""
    return Outcome.success("all checks passed")


def load_catalog(
    path: str | Path | None,
    toolchain: Toolchain,
) -> PipelineCatalog:
    """Load a catalog from ``path``, or the bundled catalog when ``path`` is None."""

    if path is None:
        resource = resources.files("pipeline_orchestrator.catalogs").joinpath(BUILTIN_CATALOG)
        source = f"<builtin>/{BUILTIN_CATALOG}"
        try:
            text = resource.read_text(encoding="utf-8")
        except OSError as exc:
            raise CatalogLoadError(f"{source}: unable to read bundled catalog ({exc})") from exc
    else:
        catalog_path = Path(path).expanduser()
        source = catalog_path.as_posix()
        if not catalog_path.is_file():
            raise CatalogLoadError(f"catalog file not found: {source}")
        try:
            text = catalog_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CatalogLoadError(f"{source}: unable to read catalog ({exc})") from exc

    try:
        payload = cast("object", yaml.safe_load(text))
    except yaml.YAMLError as exc:
        raise CatalogLoadError(f"{source}: invalid YAML ({exc})") from exc

    return parse_catalog(payload, toolchain, source=source)


def parse_catalog(
    payload: object,
    toolchain: Toolchain,
    *,
    source: str = "<memory>",
) -> PipelineCatalog:
    """Validate an already-parsed catalog document and bind it to ``toolchain``."""

    try:
        root = _as_mapping(payload, "<root>")
        _reject_unknown_keys(root, _ROOT_KEYS, "<root>")

        name = _optional_str(root.get("name"), "name") or Path(source).stem
        next_actions = _str_list(root.get("next_actions"), "next_actions")

        registry = ProbeRegistry()
        for index, raw_probe in enumerate(_list(root.get("probes"), "probes")):
            registry.register(_parse_probe(raw_probe, f"probes[{index}]", toolchain))

        steps = tuple(
            _parse_step(raw_step, f"steps[{index}]", toolchain)
            for index, raw_step in enumerate(_list(root.get("steps"), "steps"))
        )
    except CatalogLoadError as exc:
        raise CatalogLoadError(f"{source}: {exc}") from exc
    except ConfigurationError:
        raise
    except ValueError as exc:
        raise CatalogLoadError(f"{source}: {exc}") from exc

    return PipelineCatalog(
        name=name,
        registry=registry,
        steps=steps,
        next_actions=next_actions,
        source=source,
    )


def _parse_probe(value: object, path: str, toolchain: Toolchain) -> Probe:
    payload = _as_mapping(value, path)
    _reject_unknown_keys(payload, _PROBE_KEYS, path)
    name = _required_str(payload.get("name"), f"{path}.name")
    query = _parse_query(payload, path)
    severity = _parse_enum(Severity, payload.get("severity", "blocking"), f"{path}.severity")
    hint = _optional_str(payload.get("hint"), f"{path}.hint")
    only_if = _parse_condition(payload.get("only_if"), f"{path}.only_if")
    return query_probe(
        name,
        query,
        toolchain,
        severity=severity,
        hint=hint,
        only_if=only_if.query if only_if is not None else None,
        not_applicable=only_if.message if only_if is not None else None,
    )


def _parse_query(payload: Mapping[str, object], path: str) -> ProbeQuery:
    kind = _parse_enum(ProbeKind, payload.get("kind"), f"{path}.kind")
    target = _required_str(payload.get("target"), f"{path}.target")
    minimum = _optional_int(payload.get("minimum"), f"{path}.minimum")
    pattern = _optional_str(payload.get("pattern"), f"{path}.pattern")
    try:
        return ProbeQuery(kind=kind, target=target, minimum=minimum, pattern=pattern)
    except ValueError as exc:
        raise CatalogLoadError(f"{path}: {exc}") from exc


def _parse_condition(value: object, path: str) -> Condition | None:
    if value is None:
        return None
    payload = _as_mapping(value, path)
    _reject_unknown_keys(payload, _CONDITION_KEYS, path)
    return Condition(
        query=_parse_query(payload, path),
        message=_optional_str(payload.get("message"), f"{path}.message"),
    )


def _parse_step(value: object, path: str, toolchain: Toolchain) -> Step:
    payload = _as_mapping(value, path)
    _reject_unknown_keys(payload, _STEP_KEYS, path)

    step_id = _required_str(payload.get("id"), f"{path}.id")
    probes = _str_list(payload.get("probes"), f"{path}.probes")
    command = _optional_str(payload.get("command"), f"{path}.command")

    if command is None:
        for key in sorted(_COMMAND_ONLY_KEYS):
            if key in payload:
                raise CatalogLoadError(f"{path}.{key}: only valid together with 'command'")
        if not probes:
            raise CatalogLoadError(f"{path}: step must declare a command or at least one probe")
        action: Action = probes_only_action
    else:
        cmd = CommandSpec(
            command=command,
            args=_str_list(payload.get("args"), f"{path}.args"),
            cwd=_optional_str(payload.get("cwd"), f"{path}.cwd"),
            timeout_seconds=_optional_positive_float(
                payload.get("timeout_seconds"), f"{path}.timeout_seconds"
            ),
            soft_fail=_bool(payload.get("soft_fail", False), f"{path}.soft_fail"),
            transient=_bool(payload.get("transient", False), f"{path}.transient"),
            only_if=_parse_condition(payload.get("only_if"), f"{path}.only_if"),
            unless=_parse_condition(payload.get("unless"), f"{path}.unless"),
        )
        action = command_action(cmd, toolchain)

    platforms = parse_enum_set(
        Platform, _str_list(payload.get("platforms"), f"{path}.platforms"), f"{path}.platforms"
    )
    environments = parse_enum_set(
        Environment,
        _str_list(payload.get("environments"), f"{path}.environments"),
        f"{path}.environments",
    )
    prerequisites = _str_list(payload.get("prerequisites"), f"{path}.prerequisites")
    try:
        return Step(
            id=step_id,
            action=action,
            prerequisites=frozenset(prerequisites),
            idempotent=_bool(payload.get("idempotent", True), f"{path}.idempotent"),
            retryable=_bool(payload.get("retryable", False), f"{path}.retryable"),
            category=_parse_enum(
                StepCategory, payload.get("category", "setup"), f"{path}.category"
            ),
            platforms=cast("frozenset[Platform]", platforms),
            environments=cast("frozenset[Environment]", environments),
            probes=probes,
            description=_optional_str(payload.get("description"), f"{path}.description") or "",
        )
    except CatalogLoadError:
        raise
    except ValueError as exc:
        raise CatalogLoadError(f"{path}: {exc}") from exc


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise CatalogLoadError(f"{path}: expected mapping, got {type(value).__name__}")
    for key in value:
        if not isinstance(key, str):
            raise CatalogLoadError(f"{path}: keys must be strings")
    return cast("Mapping[str, object]", value)


def _reject_unknown_keys(
    payload: Mapping[str, object], allowed: frozenset[str], path: str
) -> None:
    unknown = sorted(key for key in payload if key not in allowed)
    if unknown:
        raise CatalogLoadError(f"{path}: unknown field(s): {', '.join(unknown)}")


def _list(value: object, path: str) -> Sequence[object]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise CatalogLoadError(f"{path}: expected list, got {type(value).__name__}")
    return value


def _str_list(value: object, path: str) -> tuple[str, ...]:
    items: list[str] = []
    for index, item in enumerate(_list(value, path)):
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            raise CatalogLoadError(f"{path}[{index}]: expected string, got {type(item).__name__}")
        items.append(str(item))
    return tuple(items)


def _required_str(value: object, path: str) -> str:
    parsed = _optional_str(value, path)
    if parsed is None:
        raise CatalogLoadError(f"{path}: missing required field")
    return parsed


def _optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CatalogLoadError(f"{path}: expected string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise CatalogLoadError(f"{path}: must not be empty")
    return stripped


def _optional_int(value: object, path: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise CatalogLoadError(f"{path}: expected integer, got {type(value).__name__}")
    return value


def _optional_positive_float(value: object, path: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CatalogLoadError(f"{path}: expected number, got {type(value).__name__}")
    if value <= 0:
        raise CatalogLoadError(f"{path}: must be > 0")
    return float(value)


def _bool(value: object, path: str) -> bool:
    if not isinstance(value, bool):
        raise CatalogLoadError(f"{path}: expected boolean, got {type(value).__name__}")
    return value


def _parse_enum(enum_type: type[_E], value: object, path: str) -> _E:
    if not isinstance(value, str):
        raise CatalogLoadError(f"{path}: expected string, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        message = f"{path}: unsupported value {value!r} (allowed: {allowed})"
        raise CatalogLoadError(message) from None


__all__ = [
    "BUILTIN_CATALOG",
    "CommandSpec",
    "Condition",
    "PipelineCatalog",
    "command_action",
    "load_catalog",
    "parse_catalog",
    "probes_only_action",
]
