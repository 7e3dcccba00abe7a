"""Integration tests driving a real git binary against a local repository."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

import pytest

from vcs_pin import config as pin_config
from vcs_pin.vcs.driver import driver_for_tool
from vcs_pin.vcs.interface import ExternalToolError, InMemoryDiagnosticSink

logger = logging.getLogger(__name__)

# Marker for tests requiring the git executable
requires_git = pytest.mark.skipif(
    shutil.which("git") is None,
    reason="git executable not available",
)


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    return result.stdout.decode().strip()


@pytest.fixture(autouse=True)
def git_identity(monkeypatch):
    """Give git a committer identity and isolate it from user config."""
    pin_config.reset_config()
    for var in ("VCS_PIN_CONFIG", "VCS_PIN_DEFAULT_BRANCH", "VCS_PIN_OUTPUT_LIMIT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "vcs-pin tests")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "tests@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "vcs-pin tests")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tests@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("HOME", "/nonexistent")
    yield
    pin_config.reset_config()


@pytest.fixture
def upstream(tmp_path):
    """Source repository on master with tags v1.0 and v2.0.

    Returns:
        Tuple of (repo path, {tag: commit sha})
    """
    repo = tmp_path / "upstream"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/master")

    commits = {}
    for tag in ("v1.0", "v2.0"):
        (repo / "VERSION").write_text(f"{tag}\n")
        _git(repo, "add", "VERSION")
        _git(repo, "commit", "-q", "-m", f"release {tag}")
        _git(repo, "tag", tag)
        commits[tag] = _git(repo, "rev-parse", "HEAD")

    logger.debug("Upstream repository at %s: %s", repo, commits)
    return repo, commits


@requires_git
class TestGitCheckout:
    """Create and switch real checkouts."""

    def test_create_at_tag(self, upstream, tmp_path):
        repo, commits = upstream
        target = tmp_path / "work"
        driver = driver_for_tool("git", sink=InMemoryDiagnosticSink())

        assert driver.exists(str(target)) is False
        driver.create(str(target), str(repo), "v1.0")

        assert driver.exists(str(target)) is True
        assert (target / "VERSION").read_text() == "v1.0\n"
        assert _git(target, "rev-parse", "HEAD") == commits["v1.0"]

    def test_create_at_commit(self, upstream, tmp_path):
        repo, commits = upstream
        target = tmp_path / "work"
        driver = driver_for_tool("git", sink=InMemoryDiagnosticSink())

        driver.create(str(target), str(repo), f"sha:{commits['v1.0']}")

        assert _git(target, "rev-parse", "HEAD") == commits["v1.0"]

    def test_checkout_tag_then_commit(self, upstream, tmp_path):
        repo, commits = upstream
        target = tmp_path / "work"
        driver = driver_for_tool("git", sink=InMemoryDiagnosticSink())
        driver.create(str(target), str(repo), "v1.0")

        driver.checkout(str(target), "v2.0")
        assert (target / "VERSION").read_text() == "v2.0\n"

        driver.checkout(str(target), f"sha:{commits['v1.0']}")
        assert (target / "VERSION").read_text() == "v1.0\n"

    def test_ensure_creates_then_updates(self, upstream, tmp_path):
        repo, commits = upstream
        target = tmp_path / "work"
        driver = driver_for_tool("git", sink=InMemoryDiagnosticSink())

        assert driver.ensure(str(target), str(repo), "v1.0") is True
        assert driver.ensure(str(target), str(repo), "v2.0") is False
        assert _git(target, "rev-parse", "HEAD") == commits["v2.0"]

    def test_run_output(self, upstream, tmp_path):
        repo, commits = upstream
        target = tmp_path / "work"
        driver = driver_for_tool("git", sink=InMemoryDiagnosticSink())
        driver.create(str(target), str(repo), "v2.0")

        output = driver.run_output(str(target), "rev-parse {ref}", ref="HEAD")

        assert output.decode().strip() == commits["v2.0"]

    def test_unknown_tag_reports_failure(self, upstream, tmp_path):
        repo, _ = upstream
        target = tmp_path / "work"
        sink = InMemoryDiagnosticSink()
        driver = driver_for_tool("git", sink=sink)
        driver.create(str(target), str(repo), "v1.0")

        with pytest.raises(ExternalToolError) as excinfo:
            driver.checkout(str(target), "v9.9")

        assert excinfo.value.returncode != 0
        assert sink.lines == [f"# cd {target}; git checkout -f tags/v9.9"]
        assert b"v9.9" in sink.output
        assert (target / "VERSION").read_text() == "v1.0\n"

    def test_clone_of_missing_repository_fails(self, tmp_path):
        target = tmp_path / "work"
        sink = InMemoryDiagnosticSink()
        driver = driver_for_tool("git", sink=sink)

        with pytest.raises(ExternalToolError):
            driver.create(str(target), str(tmp_path / "missing"), "v1.0")

        assert sink.lines[0].startswith("# cd .; git clone")
        assert sink.output
