"""Version-control checkout driver.

Boundary rules:
- Backends are static `BackendDescriptor` values held by `registry`.
- Only `runner` spawns processes; the driver talks to it through templates.
- Failure diagnostics go to an injected `DiagnosticSink`.
"""

from .diagnostics import LoggerDiagnosticSink, StreamDiagnosticSink
from .driver import RepositoryDriver, driver_for_locator, driver_for_tool, parse_version
from .interface import (
    BackendDescriptor,
    DiagnosticSink,
    ExternalToolError,
    InMemoryDiagnosticSink,
    TemplateError,
    ToolNotFoundError,
    VCSError,
    VersionRef,
)
from .registry import BACKENDS, GIT, default_for_locator, lookup_by_tool
from .runner import CommandRunner, expand_template, keyval_to_mapping

__all__ = [
    "BACKENDS",
    "BackendDescriptor",
    "CommandRunner",
    "DiagnosticSink",
    "ExternalToolError",
    "GIT",
    "InMemoryDiagnosticSink",
    "LoggerDiagnosticSink",
    "RepositoryDriver",
    "StreamDiagnosticSink",
    "TemplateError",
    "ToolNotFoundError",
    "VCSError",
    "VersionRef",
    "default_for_locator",
    "driver_for_locator",
    "driver_for_tool",
    "expand_template",
    "keyval_to_mapping",
    "lookup_by_tool",
    "parse_version",
]
