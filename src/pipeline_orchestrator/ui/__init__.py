"""UI package exports for the command-line interface and text rendering."""

from pipeline_orchestrator.ui.cli import CLIError, build_parser, main, run_cli
from pipeline_orchestrator.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "main",
    "run_cli",
]
