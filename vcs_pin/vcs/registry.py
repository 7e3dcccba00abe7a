"""Registry of known version-control backends."""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from .. import config as pin_config
from .interface import BackendDescriptor

logger = logging.getLogger(__name__)


GIT = BackendDescriptor(
    name="Git",
    tool_id="git",
    marker_name=".git",
    create_template="clone {repo} {dir} -b {branch}",
    update_template="checkout -f tags/{tag}",
    checkout_template="checkout {version}",
    locator_patterns=(
        r'^git://',
        r'^git\+https?://',
        r'^ssh://',
        r'^[\w.-]+@[\w.-]+:',
        r'^https?://.*\.git/?$',
        r'^https?://github\.com/',
        r'^https?://gitlab\.com/',
    ),
)

BACKENDS: Tuple[BackendDescriptor, ...] = (GIT,)


def lookup_by_tool(tool_id: str) -> Optional[BackendDescriptor]:
    """Return the backend invoked as ``tool_id``, or None if unknown."""
    for backend in BACKENDS:
        if backend.tool_id == tool_id:
            return backend
    return None


def matches_locator(backend: BackendDescriptor, locator: str) -> bool:
    """Check whether ``locator`` has the shape this backend recognizes.

    Examples:
        >>> matches_locator(GIT, "https://github.com/user/repo.git")
        True
        >>> matches_locator(GIT, "svn://example.com/repo")
        False
    """
    for pattern in backend.locator_patterns:
        if re.match(pattern, locator):
            return True
    return False


def default_for_locator(locator: str) -> BackendDescriptor:
    """Pick the backend for a repository locator.

    The first backend whose locator patterns match wins. Otherwise the
    configured default tool is used, then the first registered backend.
    """
    for backend in BACKENDS:
        if matches_locator(backend, locator):
            return backend

    fallback = lookup_by_tool(pin_config.vcs_pin_default_tool())
    if fallback is None:
        logger.warning(
            "Configured default tool %r is not registered, using %s",
            pin_config.vcs_pin_default_tool(),
            BACKENDS[0].tool_id,
        )
        fallback = BACKENDS[0]
    logger.debug("No backend matched %s, falling back to %s", locator, fallback.name)
    return fallback
