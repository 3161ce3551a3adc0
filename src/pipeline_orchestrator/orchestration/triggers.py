"""Trigger adapters: CLI arguments or GitHub Actions variables to ``TriggerEvent``."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import Final, TypeVar

from pipeline_orchestrator.domain.models import Environment, Platform, TriggerEvent, TriggerKind
from pipeline_orchestrator.errors import ConfigurationError

_TAG_REF_PREFIX: Final[str] = "refs/tags/"

_E = TypeVar("_E", bound=StrEnum)

_GITHUB_EVENT_KINDS: Final[Mapping[str, TriggerKind]] = {
    "push": TriggerKind.PUSH,
    "pull_request": TriggerKind.PULL_REQUEST,
    "pull_request_target": TriggerKind.PULL_REQUEST,
    "workflow_dispatch": TriggerKind.MANUAL_DISPATCH,
}


def parse_trigger_event(
    kind: TriggerKind | str,
    *,
    ref: str = "",
    platform: Platform | str | None = None,
    environment: Environment | str | None = None,
) -> TriggerEvent:
    """Validate loosely typed trigger fields; blank values count as omitted."""

    return TriggerEvent(
        kind=_parse_choice(TriggerKind, kind, "trigger"),
        ref=ref.strip(),
        platform=_optional_choice(Platform, platform, "platform"),
        environment=_optional_choice(Environment, environment, "environment"),
    )


def trigger_from_github(environ: Mapping[str, str] | None = None) -> TriggerEvent:
    """Build a trigger event from GitHub Actions ``GITHUB_*`` variables.

    A ``push`` to ``refs/tags/*`` becomes ``TAG``. ``workflow_dispatch``
    reads ``platform`` and ``environment`` from the event payload inputs.
    """

    env = os.environ if environ is None else environ
    event_name = env.get("GITHUB_EVENT_NAME", "").strip()
    if not event_name:
        raise ConfigurationError("GITHUB_EVENT_NAME is not set; not running under GitHub Actions?")

    kind = _GITHUB_EVENT_KINDS.get(event_name)
    if kind is None:
        supported = ", ".join(sorted(_GITHUB_EVENT_KINDS))
        raise ConfigurationError(
            f"unsupported GitHub event {event_name!r} (supported: {supported})"
        )

    ref = env.get("GITHUB_REF", "").strip()
    if kind is TriggerKind.PUSH and ref.startswith(_TAG_REF_PREFIX):
        kind = TriggerKind.TAG

    inputs: Mapping[str, object] = {}
    if kind is TriggerKind.MANUAL_DISPATCH:
        inputs = _dispatch_inputs(env.get("GITHUB_EVENT_PATH", "").strip())

    return parse_trigger_event(
        kind,
        ref=ref,
        platform=_input_text(inputs, "platform"),
        environment=_input_text(inputs, "environment"),
    )


def _dispatch_inputs(event_path: str) -> Mapping[str, object]:
    if not event_path:
        return {}
    path = Path(event_path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"unable to read GitHub event payload {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"invalid JSON in GitHub event payload {path}: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"GitHub event payload must be an object: {path}")
    inputs = payload.get("inputs")
    if inputs is None:
        return {}
    if not isinstance(inputs, Mapping):
        raise ConfigurationError(f"GitHub event payload 'inputs' must be an object: {path}")
    return inputs


def _input_text(inputs: Mapping[str, object], key: str) -> str | None:
    value = inputs.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"workflow_dispatch input {key!r} must be a string")
    return value


def _optional_choice(enum_type: type[_E], value: _E | str | None, label: str) -> _E | None:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return _parse_choice(enum_type, value, label)


def _parse_choice(enum_type: type[_E], value: _E | str, label: str) -> _E:
    if isinstance(value, enum_type):
        return value
    normalized = str(value).strip().lower().replace("-", "_")
    try:
        return enum_type(normalized)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ConfigurationError(f"unsupported {label} {value!r} (allowed: {allowed})") from None


__all__ = ["parse_trigger_event", "trigger_from_github"]
