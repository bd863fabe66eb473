"""Publish the site by committing it to a branch of a Git repository."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Sequence
from urllib.parse import urlsplit, urlunsplit

from ..core.errors import PublishError
from ..settings import PublishSettings
from ..utils.file_helper import clear_directory, copy_contents, write_text
from ..utils.logging import get_logger
from .base import ArtifactSet, PublishResult, SitePublisher

LOGGER = get_logger(__name__)


class GitCommand:
    """Runs ``git`` and raises :class:`PublishError` on a non-zero exit."""

    def __init__(self, executable: str = "git", *, secrets: Sequence[str] = ()) -> None:
        self._executable = executable
        self._secrets = [secret for secret in secrets if secret]

    @property
    def executable(self) -> str:
        return self._executable

    def __call__(self, *args: str, cwd: Path) -> subprocess.CompletedProcess[str]:
        command = self._redact(" ".join(args))
        try:
            result = subprocess.run(
                [self._executable, *args],
                cwd=cwd,
                text=True,
                check=False,
                capture_output=True,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except OSError as exc:
            raise PublishError(f"git {command} could not be started: {exc}") from exc
        if result.returncode != 0:
            raise PublishError(f"git {command} failed: {self._redact(result.stderr.strip())}")
        return result

    def _redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text


def with_token(url: str, token: str | None) -> str:
    """Embed ``token`` into an https URL so pushes authenticate non-interactively."""

    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme != "https" or "@" in parts.netloc:
        return url
    return urlunsplit(parts._replace(netloc=f"x-access-token:{token}@{parts.netloc}"))


class GitBranchPublisher(SitePublisher):
    """Replaces the tree of ``settings.branch`` with the artifact set and pushes it.

    The branch is cloned shallowly into a scratch directory; when it does not
    exist yet an orphan branch is started. History on the branch is kept, one
    commit per deploy that changes something.
    """

    name = "git"

    def __init__(
        self,
        settings: PublishSettings,
        *,
        project_root: Path,
        git: GitCommand | None = None,
    ) -> None:
        self._settings = settings
        self._project_root = project_root
        self._token = os.environ.get(settings.token_env) if settings.token_env else None
        self._git = git or GitCommand(secrets=[self._token] if self._token else ())
        self._repository: str | None = None

    @property
    def repository(self) -> str:
        if self._repository is None:
            raise PublishError("Publisher has not been prepared")
        return self._repository

    def prepare(self) -> None:
        if shutil.which(self._git.executable) is None:
            raise PublishError(f"'{self._git.executable}' executable not found on PATH")
        repository = self._settings.repository
        if not repository:
            result = self._git("remote", "get-url", self._settings.remote, cwd=self._project_root)
            repository = result.stdout.strip()
        self._repository = repository
        LOGGER.debug(
            "Resolved deploy repository",
            extra={"event": "publish.git", "repository": repository, "branch": self._settings.branch},
        )

    def publish(self, artifacts: ArtifactSet) -> PublishResult:
        if not artifacts.root.is_dir():
            raise PublishError(f"Artifact directory does not exist: {artifacts.root}")

        settings = self._settings
        url = with_token(self.repository, self._token)
        with tempfile.TemporaryDirectory(prefix="sitepub-deploy-") as scratch:
            checkout = Path(scratch) / "site"
            self._checkout(url, checkout)
            self._stage(artifacts, checkout)

            self._git("add", "--all", cwd=checkout)
            status = self._git("status", "--porcelain", cwd=checkout)
            if not status.stdout.strip():
                LOGGER.info(
                    "Deployment target already up to date",
                    extra={"event": "publish.git", "branch": settings.branch, "changed": False},
                )
                return PublishResult(self.name, self._head(checkout), changed=False, location=settings.branch)

            message = settings.commit_message.format(
                digest=artifacts.short_digest,
                branch=settings.branch,
            )
            self._git(
                "-c",
                f"user.name={settings.author_name}",
                "-c",
                f"user.email={settings.author_email}",
                "commit",
                "--quiet",
                "-m",
                message,
                cwd=checkout,
            )
            reference = self._head(checkout)
            self._git("push", "--quiet", "origin", f"HEAD:refs/heads/{settings.branch}", cwd=checkout)

        LOGGER.info(
            "Deployed artifacts",
            extra={"event": "publish.git", "branch": settings.branch, "commit": reference, "changed": True},
        )
        return PublishResult(self.name, reference, changed=True, location=settings.branch)

    def _stage(self, artifacts: ArtifactSet, checkout: Path) -> None:
        settings = self._settings
        try:
            clear_directory(checkout, keep=(".git",))
            copy_contents(artifacts.root, checkout)
            if settings.nojekyll:
                write_text(checkout / ".nojekyll", "")
            if settings.cname:
                write_text(checkout / "CNAME", f"{settings.cname}\n")
        except OSError as exc:
            raise PublishError(f"Staging artifacts in {checkout} failed: {exc}") from exc

    def _checkout(self, url: str, checkout: Path) -> None:
        branch = self._settings.branch
        workdir = checkout.parent
        listing = self._git("ls-remote", "--heads", url, branch, cwd=workdir)
        if listing.stdout.strip():
            self._git(
                "clone",
                "--quiet",
                "--depth",
                "1",
                "--single-branch",
                "--branch",
                branch,
                url,
                str(checkout),
                cwd=workdir,
            )
            return

        LOGGER.info(
            "Deploy branch missing, starting orphan branch",
            extra={"event": "publish.git", "branch": branch},
        )
        try:
            checkout.mkdir(parents=True)
        except OSError as exc:
            raise PublishError(f"Creating {checkout} failed: {exc}") from exc
        self._git("init", "--quiet", cwd=checkout)
        self._git("symbolic-ref", "HEAD", f"refs/heads/{branch}", cwd=checkout)
        self._git("remote", "add", "origin", url, cwd=checkout)

    def _head(self, checkout: Path) -> str | None:
        try:
            return self._git("rev-parse", "HEAD", cwd=checkout).stdout.strip()
        except PublishError:
            # orphan branch with nothing committed yet
            return None


__all__ = ["GitBranchPublisher", "GitCommand", "with_token"]
