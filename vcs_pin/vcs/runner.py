"""Subprocess execution of backend command templates."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from typing import IO, Callable, Dict, List, Mapping, Optional, Sequence

from .. import config as pin_config
from .diagnostics import LoggerDiagnosticSink
from .interface import (
    BackendDescriptor,
    DiagnosticSink,
    ExternalToolError,
    TemplateError,
    ToolNotFoundError,
    VCSError,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")
TRUNCATION_MARKER = b"\n[... output truncated ...]\n"
READ_CHUNK_SIZE = 64 * 1024


def keyval_to_mapping(keyval: Sequence[str]) -> Dict[str, str]:
    """Build a substitution mapping from alternating key, value items.

    Raises:
        ValueError: If the sequence has odd length
    """
    if len(keyval) % 2:
        raise ValueError(f"odd number of key/value items: {list(keyval)}")
    return {keyval[i]: keyval[i + 1] for i in range(0, len(keyval), 2)}


def expand_template(
    template: str,
    substitutions: Mapping[str, str],
    strict: bool = True,
) -> List[str]:
    """Split ``template`` into arguments and expand ``{key}`` in each one.

    Splitting happens before substitution, so a value containing whitespace
    always stays a single argument.

    Args:
        template: Command template, e.g. "clone {repo} {dir} -b {branch}"
        substitutions: Values for the placeholders
        strict: Raise TemplateError on unresolved placeholders instead of
            leaving them in place

    Returns:
        Expanded argument list

    Examples:
        >>> expand_template("checkout {version}", {"version": "abc123"})
        ['checkout', 'abc123']
    """
    missing: List[str] = []

    def _substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in substitutions:
            return substitutions[key]
        if key not in missing:
            missing.append(key)
        return match.group(0)

    args = [PLACEHOLDER_RE.sub(_substitute, token) for token in template.split()]
    if missing and strict:
        raise TemplateError(template, missing)
    return args


def format_command(cwd: str, tool: str, args: Sequence[str]) -> str:
    """Render the shell-equivalent form of an invocation for diagnostics."""
    return f"# cd {cwd}; {' '.join([tool, *args])}"


def _read_bounded(stream: IO[bytes], limit: int) -> bytes:
    """Read ``stream`` to EOF keeping at most ``limit`` bytes (0 = unbounded)."""
    buf = bytearray()
    truncated = False
    while True:
        chunk = stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        if limit and len(buf) + len(chunk) > limit:
            buf.extend(chunk[: max(limit - len(buf), 0)])
            truncated = True
            continue
        buf.extend(chunk)
    if truncated:
        buf.extend(TRUNCATION_MARKER)
    return bytes(buf)


class CommandRunner:
    """Runs a backend's command templates as subprocesses.

    Each call is independent: the runner keeps no state beyond its
    configuration, and no command is retried.
    """

    def __init__(
        self,
        descriptor: BackendDescriptor,
        sink: Optional[DiagnosticSink] = None,
        output_limit: Optional[int] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        """Initialize runner.

        Args:
            descriptor: Backend whose tool is executed
            sink: Destination for failure diagnostics (default: LoggerDiagnosticSink)
            output_limit: Max captured bytes (default from config, 0 = unbounded)
            which: Executable resolver, replaceable in tests

        Raises:
            ValueError: If output_limit is negative
        """
        self.descriptor = descriptor
        self.sink = sink if sink is not None else LoggerDiagnosticSink()
        self.output_limit = (
            pin_config.vcs_pin_output_limit() if output_limit is None else output_limit
        )
        if self.output_limit < 0:
            raise ValueError(f"output_limit must be >= 0, got {self.output_limit}")
        self._which = which

    def execute(
        self,
        cwd: str,
        template: str,
        substitutions: Mapping[str, str],
        verbose: bool = True,
        strict: bool = True,
    ) -> bytes:
        """Expand ``template`` and run it with the backend tool in ``cwd``.

        Args:
            cwd: Working directory of the child process
            template: Command template
            substitutions: Placeholder values
            verbose: Report the command line and its output to the sink on failure
            strict: Reject unresolved placeholders. Pass False for commands
                carrying literal braces, e.g. "rev-parse HEAD@{upstream}"

        Returns:
            Combined stdout/stderr of the command

        Raises:
            TemplateError: If a placeholder has no value
            ToolNotFoundError: If the tool is not on the search path
            ExternalToolError: If the command exits non-zero
            VCSError: If the process could not be started
        """
        args = expand_template(template, substitutions, strict=strict)

        tool = self.descriptor.tool_id
        tool_path = self._which(tool)
        if tool_path is None:
            self.sink.write_line(
                f"vcs-pin: missing {self.descriptor.name} command. "
                f"See {pin_config.vcs_pin_help_url()}"
            )
            raise ToolNotFoundError(tool)

        logger.debug("Running: %s", format_command(cwd, tool, args))
        try:
            with subprocess.Popen(
                [tool_path, *args],
                cwd=cwd,
                env=dict(os.environ),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            ) as proc:
                output = _read_bounded(proc.stdout, self.output_limit)
                returncode = proc.wait()
        except OSError as exc:
            raise VCSError(f"failed to start {tool} in {cwd}: {exc}", cause=exc)

        if returncode != 0:
            if verbose:
                self.sink.write_line(format_command(cwd, tool, args))
                self.sink.write_output(output)
            raise ExternalToolError(
                [tool, *args],
                returncode,
                cwd,
                cause=subprocess.CalledProcessError(returncode, [tool, *args]),
            )
        return output

    def run(self, cwd: str, template: str, *, strict: bool = True, **substitutions: str) -> None:
        """Run a command, reporting failures and discarding output."""
        self.execute(cwd, template, substitutions, verbose=True, strict=strict)

    def run_verbose_only(
        self, cwd: str, template: str, *, strict: bool = True, **substitutions: str
    ) -> None:
        """Like run(), but reports failures only when verbose mode is configured."""
        self.execute(
            cwd, template, substitutions, verbose=pin_config.vcs_pin_verbose(), strict=strict
        )

    def run_output(
        self, cwd: str, template: str, *, strict: bool = True, **substitutions: str
    ) -> bytes:
        """Like run(), but returns the command output."""
        return self.execute(cwd, template, substitutions, verbose=True, strict=strict)
