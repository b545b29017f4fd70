"""
Commit/push pipeline for the local mirror.

Builds commits by hand rather than with `git commit` so the shape of every
commit is fixed:

    stage   git add -- <path relative to the mirror root>
    commit  git write-tree             -> tree
            git var GIT_AUTHOR_IDENT   (configured author must exist)
            git commit-tree tree -p HEAD -m <timestamp>
            git update-ref HEAD <new> <old>
    push    git push <remote> refs/heads/<branch>:refs/heads/<branch>

Every commit has exactly one parent, the HEAD it was built on. History stays
linear: no merges, no amends. A failed push leaves the local commit in place
ahead of the remote; push() can be called again without re-committing.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from mirror.git_runner import PUSH_TIMEOUT, GitRunner
from mirror.repository import Repository
from sync.errors import CommitFailedError, PushFailedError, StageFailedError

logger = logging.getLogger(__name__)

__all__ = [
    'CommitPipeline',
    'COMMIT_TIMESTAMP_FORMAT',
]

# e.g. 07_Mar_24-14_05
COMMIT_TIMESTAMP_FORMAT = '%d_%b_%y-%H_%M'


class CommitPipeline:
    """Stages, commits and pushes buffer changes."""

    def __init__(self, runner: GitRunner, clock: Callable[[], datetime] = datetime.now):
        self.runner = runner
        self.clock = clock

    async def stage(self, buffer_path: Path, repo: Repository) -> str:
        """
        Add a buffer file to the index and write the index to disk.

        Args:
            buffer_path: Absolute path of the modified buffer
            repo: Ready repository

        Returns:
            Path of the buffer relative to the repository root

        Raises:
            StageFailedError: If the path is outside the mirror or git add fails
        """
        try:
            rel_path = Path(buffer_path).resolve().relative_to(repo.path.resolve())
        except ValueError:
            raise StageFailedError(f"Buffer {buffer_path} is outside the mirror {repo.path}")

        rel = rel_path.as_posix()
        result = await self.runner.run(['add', '--', rel], cwd=repo.path)
        if result.returncode != 0:
            error = self.runner.error_text(result, "git add failed")
            raise StageFailedError(f"Cannot stage {rel}: {error}")

        logger.debug(f"Staged {rel}")
        return rel

    async def commit(self, repo: Repository) -> str:
        """
        Commit the current index on top of HEAD.

        The message is the local timestamp (day_month_year-hour_minute);
        author and committer come from the repository's git configuration.

        Args:
            repo: Ready repository

        Returns:
            SHA of the new commit

        Raises:
            CommitFailedError: If any step fails or HEAD moved meanwhile
        """
        tree = await self._git_output(repo, ['write-tree'], "Cannot write tree")
        parent = await self._git_output(repo, ['rev-parse', '--verify', 'HEAD^{commit}'], "Cannot resolve HEAD")
        author = await self._git_output(repo, ['var', 'GIT_AUTHOR_IDENT'], "No author identity configured")

        message = self.clock().strftime(COMMIT_TIMESTAMP_FORMAT)
        commit = await self._git_output(
            repo,
            ['commit-tree', tree, '-p', parent, '-m', message],
            "Cannot create commit"
        )

        # Compare-and-swap against the parent so a moved HEAD is an error
        await self._git_output(
            repo,
            ['update-ref', '-m', f'commit: {message}', 'HEAD', commit, parent],
            "Cannot advance HEAD",
            expect_output=False
        )

        logger.info(f"Committed {commit[:12]} on {repo.branch} ({message}) as {author.rsplit(' ', 2)[0]}")
        return commit

    async def push(self, repo: Repository, config) -> None:
        """
        Push the local branch to the identically named remote branch.

        Not retried. On failure the local commit stays in place.

        Args:
            repo: Ready repository
            config: SyncConfig (remote name)

        Raises:
            PushFailedError: If the push is rejected or cannot reach the remote
        """
        refspec = f"{repo.branch_ref}:{repo.branch_ref}"
        result = await self.runner.run(
            ['push', config.remote_name, refspec],
            cwd=repo.path,
            timeout=PUSH_TIMEOUT
        )
        if result.returncode != 0:
            error = self.runner.error_text(result, "Push failed")
            raise PushFailedError(f"Push of {repo.branch} to {config.remote_name} failed: {error}")

        logger.info(f"Pushed {repo.branch} to {config.remote_name}")

    async def _git_output(self, repo: Repository, args, failure: str, expect_output: bool = True) -> str:
        result = await self.runner.run(args, cwd=repo.path)
        if result.returncode != 0 or (expect_output and not result.stdout.strip()):
            error = self.runner.error_text(result, "no output")
            raise CommitFailedError(f"{failure}: {error}")
        return result.stdout.strip()
