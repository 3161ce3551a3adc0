"""Unit tests for orchestration.triggers."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from pipeline_orchestrator.domain.models import Environment, Platform, TriggerKind
from pipeline_orchestrator.errors import ConfigurationError
from pipeline_orchestrator.orchestration.triggers import parse_trigger_event, trigger_from_github

if TYPE_CHECKING:
    from pathlib import Path


def test_parse_trigger_event_normalizes_values() -> None:
    event = parse_trigger_event(
        "Manual-Dispatch", ref=" refs/heads/main ", platform="IOS", environment="production"
    )

    assert event.kind is TriggerKind.MANUAL_DISPATCH
    assert event.ref == "refs/heads/main"
    assert event.platform is Platform.IOS
    assert event.environment is Environment.PRODUCTION


def test_parse_trigger_event_blank_values_are_omitted() -> None:
    event = parse_trigger_event(TriggerKind.PUSH, platform="  ", environment="")

    assert event.platform is None
    assert event.environment is None


@pytest.mark.parametrize(
    ("kind", "options", "message"),
    [
        ("nightly", {}, "unsupported trigger 'nightly'"),
        ("push", {"platform": "windows"}, "unsupported platform 'windows'"),
        ("push", {"environment": "qa"}, "unsupported environment 'qa'"),
    ],
)
def test_parse_trigger_event_rejects_unknown_values(
    kind: str, options: dict[str, str], message: str
) -> None:
    with pytest.raises(ConfigurationError, match=message):
        parse_trigger_event(kind, **options)


def test_github_push_to_branch() -> None:
    event = trigger_from_github({"GITHUB_EVENT_NAME": "push", "GITHUB_REF": "refs/heads/main"})

    assert event.kind is TriggerKind.PUSH
    assert event.ref == "refs/heads/main"
    assert event.platform is None


def test_github_push_to_tag_is_a_tag_trigger() -> None:
    event = trigger_from_github({"GITHUB_EVENT_NAME": "push", "GITHUB_REF": "refs/tags/v1.4.0"})

    assert event.kind is TriggerKind.TAG


@pytest.mark.parametrize("name", ["pull_request", "pull_request_target"])
def test_github_pull_request_events(name: str) -> None:
    event = trigger_from_github({"GITHUB_EVENT_NAME": name, "GITHUB_REF": "refs/pull/7/merge"})

    assert event.kind is TriggerKind.PULL_REQUEST


def test_github_workflow_dispatch_reads_inputs(tmp_path: Path) -> None:
    payload = tmp_path / "event.json"
    payload.write_text(
        json.dumps({"inputs": {"platform": "android", "environment": "production"}}),
        encoding="utf-8",
    )

    event = trigger_from_github(
        {
            "GITHUB_EVENT_NAME": "workflow_dispatch",
            "GITHUB_REF": "refs/heads/main",
            "GITHUB_EVENT_PATH": str(payload),
        }
    )

    assert event.kind is TriggerKind.MANUAL_DISPATCH
    assert event.platform is Platform.ANDROID
    assert event.environment is Environment.PRODUCTION


def test_github_workflow_dispatch_without_payload_leaves_arguments_unset() -> None:
    event = trigger_from_github({"GITHUB_EVENT_NAME": "workflow_dispatch"})

    assert event.platform is None
    assert event.environment is None


def test_github_workflow_dispatch_with_invalid_payload(tmp_path: Path) -> None:
    payload = tmp_path / "event.json"
    payload.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="invalid JSON"):
        trigger_from_github(
            {"GITHUB_EVENT_NAME": "workflow_dispatch", "GITHUB_EVENT_PATH": str(payload)}
        )


@pytest.mark.parametrize(
    ("environ", "message"),
    [
        ({}, "GITHUB_EVENT_NAME is not set"),
        ({"GITHUB_EVENT_NAME": "schedule"}, "unsupported GitHub event 'schedule'"),
    ],
)
def test_github_event_errors(environ: dict[str, str], message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        trigger_from_github(environ)
