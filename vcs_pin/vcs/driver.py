"""Repository driver: pins a working directory to a repository version."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .. import config as pin_config
from . import registry
from .interface import BackendDescriptor, DiagnosticSink, VersionRef
from .runner import CommandRunner

logger = logging.getLogger(__name__)

COMMIT_PREFIX = "sha:"


def parse_version(version: str) -> VersionRef:
    """Split a version identifier into a reference and an optional commit.

    Examples:
        >>> parse_version("sha:abc123")
        VersionRef(tag='master', commit='abc123')
        >>> parse_version("v1.2.0")
        VersionRef(tag='v1.2.0', commit='')
    """
    if version.startswith(COMMIT_PREFIX):
        return VersionRef(
            tag=pin_config.vcs_pin_default_branch(),
            commit=version[len(COMMIT_PREFIX):],
        )
    return VersionRef(tag=version, commit="")


class RepositoryDriver:
    """Creates and updates checkouts of one backend kind.

    The driver holds no per-repository state; every call re-parses the
    version and re-inspects the directory.
    """

    def __init__(
        self,
        descriptor: BackendDescriptor,
        runner: Optional[CommandRunner] = None,
        sink: Optional[DiagnosticSink] = None,
    ) -> None:
        self.descriptor = descriptor
        self.runner = runner if runner is not None else CommandRunner(descriptor, sink=sink)

    def exists(self, directory: str) -> bool:
        """Check whether ``directory`` already holds a checkout.

        Errors other than "not found" while probing the marker are treated as
        an existing checkout, so a failing probe never leads to a second
        create over the same directory.
        """
        marker = os.path.join(directory, self.descriptor.marker_name)
        try:
            os.stat(marker)
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Cannot probe %s (%s), assuming checkout exists", marker, exc)
            return True
        return True

    def create(self, directory: str, repo: str, version: str) -> None:
        """Create a fresh checkout of ``repo`` at ``version`` in ``directory``.

        The parent of ``directory`` must exist and ``directory`` must not.
        A failure may leave a partial ``directory`` behind.

        Raises:
            ToolNotFoundError: If the backend tool is missing
            ExternalToolError: If clone or checkout fails
        """
        ref = parse_version(version)
        logger.info(
            "Creating %s checkout: %s -> %s (%s)", self.descriptor.name, repo, directory, version
        )
        self.runner.run(
            ".",
            self.descriptor.create_template,
            dir=directory,
            repo=repo,
            branch=ref.tag,
        )
        if ref.is_pinned:
            self.runner.run(directory, self.descriptor.checkout_template, version=ref.commit)
        logger.info("Checkout created: %s", directory)

    def checkout(self, directory: str, version: str) -> None:
        """Switch the existing checkout in ``directory`` to ``version``.

        Raises:
            ToolNotFoundError: If the backend tool is missing
            ExternalToolError: If the checkout command fails
        """
        ref = parse_version(version)
        logger.debug("Parsed version %s: tag=%s commit=%s", version, ref.tag, ref.commit)
        if ref.is_pinned:
            self.runner.run(directory, self.descriptor.checkout_template, version=ref.commit)
        else:
            self.runner.run(directory, self.descriptor.update_template, tag=ref.tag)
        logger.info("Switched %s to %s", directory, version)

    def ensure(self, directory: str, repo: str, version: str) -> bool:
        """Create or update ``directory`` so it is checked out at ``version``.

        Returns:
            True if a new checkout was created
        """
        if self.exists(directory):
            self.checkout(directory, version)
            return False
        self.create(directory, repo, version)
        return True

    def run(
        self, directory: str, template: str, *, strict: bool = True, **substitutions: str
    ) -> None:
        """Run an arbitrary backend command template in ``directory``.

        With ``strict=False`` unmatched ``{...}`` tokens reach the tool as
        written, which git revision syntax such as ``stash@{0}`` needs.
        """
        self.runner.run(directory, template, strict=strict, **substitutions)

    def run_output(
        self, directory: str, template: str, *, strict: bool = True, **substitutions: str
    ) -> bytes:
        """Run an arbitrary backend command template and return its output."""
        return self.runner.run_output(directory, template, strict=strict, **substitutions)


def driver_for_locator(
    locator: str,
    sink: Optional[DiagnosticSink] = None,
) -> RepositoryDriver:
    """Factory returning a driver for the backend that handles ``locator``.

    Example:
        driver = driver_for_locator("https://example.com/r.git")
        driver.ensure("/tmp/w", "https://example.com/r.git", "v1.2.0")
    """
    return RepositoryDriver(registry.default_for_locator(locator), sink=sink)


def driver_for_tool(
    tool_id: str,
    sink: Optional[DiagnosticSink] = None,
) -> RepositoryDriver:
    """Factory returning a driver for the backend invoked as ``tool_id``.

    Raises:
        ValueError: If no backend is registered for ``tool_id``
    """
    descriptor = registry.lookup_by_tool(tool_id)
    if descriptor is None:
        raise ValueError(f"Unsupported VCS tool: {tool_id}")
    return RepositoryDriver(descriptor, sink=sink)
