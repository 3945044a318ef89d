"""Publishes a build artifact to the hosting branch through a throwaway worktree."""

import re
import shutil
import uuid
import logging
import tempfile
import time
from pathlib import Path
from typing import Optional

import git
from git import Repo, GitCommandError

from docs_pipeline.core.errors import PublishError, RunTimeoutError
from docs_pipeline.core.simple_config import PipelineSettings
from docs_pipeline.pipeline.models import BuildArtifact, PublishResult

logger = logging.getLogger(__name__)

NOJEKYLL = ".nojekyll"

_AUTH_ERROR = re.compile(
    r"authentication failed"
    r"|could not read username"
    r"|permission denied"
    r"|(?:error:|http|returned error:)\s*40[13]\b",
    re.IGNORECASE,
)


def redact(text: str, token: Optional[str]) -> str:
    """Strip the token and any URL credentials from text meant for logs."""
    if token:
        text = text.replace(token, "***")
    return re.sub(r"(https?://)[^/@\s]+@", r"\1***@", text)


class HostingBranchPublisher:
    """Replaces (or overlays) the hosting branch with a build artifact.

    The new tree is prepared in a detached worktree and committed with
    plumbing commands, so no local branch is ever created or switched. The
    remote branch only moves when the final force-push succeeds.
    """

    def __init__(self, settings: PipelineSettings, worktree_base: Optional[Path] = None):
        """Initialize publisher.

        Args:
            settings: Pipeline settings
            worktree_base: Directory for temporary worktrees (defaults to the system temp dir)
        """
        self.settings = settings
        self.base_path = worktree_base or Path(tempfile.gettempdir()) / "docs-pipeline-worktrees"
        self.base_path.mkdir(parents=True, exist_ok=True)

        try:
            self.repo = Repo(settings.checkout_dir, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            raise PublishError(f"Not a git repository: {settings.checkout_dir}")

        logger.info(f"[PUBLISH] Publisher initialized for {self.repo.working_dir}")

    def _remote_url(self, token: Optional[str]) -> str:
        """Resolve the configured remote to a URL, adding the token for https."""
        remote = self.settings.remote
        names = [r.name for r in self.repo.remotes]
        url = self.repo.remote(remote).url if remote in names else remote

        if token and url.startswith("https://"):
            url = re.sub(r"^https://([^/@]+@)?", f"https://x-access-token:{token}@", url)
        return url

    def _time_left(self, deadline: Optional[float]) -> Optional[float]:
        """Seconds until the deadline, for kill_after_timeout; None means no limit."""
        if deadline is None:
            return None
        left = deadline - time.monotonic()
        if left <= 0:
            raise RunTimeoutError("Publish ran out of time", stage="publish")
        return left

    def _fetch_hosting_head(
        self, url: str, temp_ref: str, deadline: Optional[float] = None
    ) -> Optional[str]:
        """Fetch the hosting branch into a private ref.

        Returns:
            Commit SHA of the remote hosting branch, or None if it does not exist yet
        """
        branch = self.settings.hosting_branch
        heads = self.repo.git.ls_remote(
            "--heads", url, branch, kill_after_timeout=self._time_left(deadline)
        )
        if not heads.strip():
            logger.info(f"[PUBLISH] Hosting branch '{branch}' does not exist yet, starting orphan history")
            return None

        self.repo.git.fetch(
            "--no-tags", url, f"+refs/heads/{branch}:{temp_ref}",
            kill_after_timeout=self._time_left(deadline),
        )
        sha = self.repo.git.rev_parse(temp_ref)
        logger.info(f"[PUBLISH] Current hosting head: {sha}")
        return sha

    def _clear_worktree(self, worktree_path: Path) -> None:
        """Remove every entry from the worktree except its .git link."""
        for entry in worktree_path.iterdir():
            if entry.name == ".git":
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

    def _cleanup_worktree(self, worktree_path: Path, temp_ref: str) -> None:
        """Remove the temporary worktree and private ref."""
        try:
            self.repo.git.worktree("remove", "--force", str(worktree_path))
        except GitCommandError as e:
            logger.warning(f"[PUBLISH] Failed to remove worktree via git: {e}")
            if worktree_path.exists():
                shutil.rmtree(worktree_path, ignore_errors=True)
            self.repo.git.worktree("prune")

        try:
            self.repo.git.update_ref("-d", temp_ref)
        except GitCommandError:
            logger.debug(f"[PUBLISH] No private ref {temp_ref} to delete")

    def publish(
        self,
        artifact: BuildArtifact,
        message: Optional[str] = None,
        run_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> PublishResult:
        """Commit the artifact onto the hosting branch and push it.

        Args:
            artifact: Build output to publish
            message: Optional commit message
            run_id: Identifier used to name the temporary worktree
            timeout: Seconds the network git calls may take in total (None for no limit)

        Returns:
            PublishResult with the resulting commit

        Raises:
            PublishError: If the artifact is missing or any git step fails
            RunTimeoutError: If the time budget runs out
        """
        run_id = run_id or uuid.uuid4().hex[:12]
        branch = self.settings.hosting_branch
        deadline = time.monotonic() + timeout if timeout is not None else None
        token = self.settings.get_token()

        logger.info(f"[PUBLISH:{run_id}] ========== PUBLISH START ==========")
        logger.info(f"[PUBLISH:{run_id}] Artifact: {artifact.path}")
        logger.info(f"[PUBLISH:{run_id}] Target branch: {branch} (clean={self.settings.clean})")

        if not artifact.path.is_dir():
            raise PublishError(f"Artifact directory not found: {artifact.path}")

        worktree_path = self.base_path / f"wt_publish_{run_id}"
        temp_ref = f"refs/docs-pipeline/{run_id}"
        url = self._remote_url(token)
        logger.info(f"[PUBLISH:{run_id}] Remote: {redact(url, token)}")

        try:
            parent_sha = self._fetch_hosting_head(url, temp_ref, deadline)

            # Detached checkout: orphan publishes start from HEAD and are cleared below
            start_point = parent_sha or "HEAD"
            self.repo.git.worktree("add", "--detach", str(worktree_path), start_point)
            worktree_repo = Repo(str(worktree_path))

            if self.settings.clean or parent_sha is None:
                logger.info(f"[PUBLISH:{run_id}] Clearing existing hosting content")
                self._clear_worktree(worktree_path)

            shutil.copytree(artifact.path, worktree_path, dirs_exist_ok=True)
            (worktree_path / NOJEKYLL).touch()

            worktree_repo.git.add("-A", "-f", ".")
            tree_sha = worktree_repo.git.write_tree()
            files_published = len(worktree_repo.git.ls_files().splitlines())

            if parent_sha and worktree_repo.commit(parent_sha).tree.hexsha == tree_sha:
                logger.info(f"[PUBLISH:{run_id}] Hosting branch already matches artifact, nothing to push")
                return PublishResult(
                    status="up_to_date",
                    branch=branch,
                    commit_sha=parent_sha,
                    files_published=files_published,
                )

            commit_message = message or "Deploy documentation site"
            parent_args = ["-p", parent_sha] if parent_sha else []
            with worktree_repo.git.custom_environment(
                GIT_AUTHOR_NAME=self.settings.commit_author_name,
                GIT_AUTHOR_EMAIL=self.settings.commit_author_email,
                GIT_COMMITTER_NAME=self.settings.commit_author_name,
                GIT_COMMITTER_EMAIL=self.settings.commit_author_email,
            ):
                commit_sha = worktree_repo.git.commit_tree(
                    tree_sha, *parent_args, "-m", commit_message
                )
            logger.info(f"[PUBLISH:{run_id}] Created commit {commit_sha} ({files_published} files)")

            # Force: the hosting branch mirrors whichever build finished last
            self.repo.git.push(
                "--force", url, f"{commit_sha}:refs/heads/{branch}",
                kill_after_timeout=self._time_left(deadline),
            )
            logger.info(f"[PUBLISH:{run_id}] ✓ Pushed {commit_sha[:8]} to {branch}")
            logger.info(f"[PUBLISH:{run_id}] ========== PUBLISH COMPLETE ==========")

            return PublishResult(
                status="published",
                branch=branch,
                commit_sha=commit_sha,
                files_published=files_published,
            )

        except GitCommandError as e:
            detail = redact(str(e), token)
            if deadline is not None and time.monotonic() >= deadline:
                raise RunTimeoutError(
                    f"Publishing to '{branch}' did not finish within {timeout:.0f}s", stage="publish"
                )
            if _AUTH_ERROR.search(detail):
                raise PublishError(f"Not authorized to push to '{branch}': {detail}")
            raise PublishError(f"Git failed while publishing to '{branch}': {detail}")
        except OSError as e:
            raise PublishError(f"Could not stage artifact for publishing: {e}")
        finally:
            self._cleanup_worktree(worktree_path, temp_ref)
