from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple


@dataclass(frozen=True)
class BackendDescriptor:
    """Static description of one version-control tool.

    - tool_id: executable name, also the registry lookup key
    - marker_name: entry whose presence inside a directory marks a checkout
    - *_template: whitespace-separated argument templates with {key} placeholders
    - locator_patterns: regexes recognizing repository locators for this tool
    """

    name: str
    tool_id: str
    marker_name: str
    create_template: str
    update_template: str
    checkout_template: str
    locator_patterns: Tuple[str, ...] = ()


@dataclass(frozen=True)
class VersionRef:
    """Parsed version identifier: a reference name and an optional commit."""

    tag: str
    commit: str = ""

    @property
    def is_pinned(self) -> bool:
        return bool(self.commit)


class DiagnosticSink(Protocol):
    """Destination for human-readable failure diagnostics."""

    def write_line(self, text: str) -> None:  # pragma: no cover - protocol
        ...

    def write_output(self, data: bytes) -> None:  # pragma: no cover - protocol
        ...


class VCSError(RuntimeError):
    """Base class for failures of a version-control operation."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ToolNotFoundError(VCSError):
    """Raised when the backend executable is not on the search path."""

    def __init__(self, tool_id: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{tool_id}: command not found", cause=cause)
        self.tool_id = tool_id


class ExternalToolError(VCSError):
    """Raised when the backend tool exits with a non-zero status."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        cwd: str,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"{' '.join(command)} (in {cwd}) exited with status {returncode}",
            cause=cause,
        )
        self.command = tuple(command)
        self.returncode = returncode
        self.cwd = cwd


class TemplateError(VCSError):
    """Raised when a command template references keys nobody supplied."""

    def __init__(self, template: str, missing: Sequence[str]) -> None:
        super().__init__(
            f"unresolved placeholder(s) {', '.join(missing)} in template {template!r}"
        )
        self.template = template
        self.missing = tuple(missing)


class InMemoryDiagnosticSink:
    """Simple accumulating sink useful for tests and bootstrap wiring."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._output: bytearray = bytearray()

    def write_line(self, text: str) -> None:
        self._lines.append(text)

    def write_output(self, data: bytes) -> None:
        self._output.extend(data)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def output(self) -> bytes:
        return bytes(self._output)
